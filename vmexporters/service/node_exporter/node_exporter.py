import tarfile
from pathlib import Path
from typing import List, Optional

from vmexporters.api import download, http_get, run_command, wait_for
from vmexporters.configuration import Configuration
from vmexporters.constants import (
    NODE_EXPORTER_OPTIONS,
    NODE_EXPORTER_SERVICE,
    NODE_EXPORTER_UNIT,
    NODE_EXPORTER_URL,
    NODE_EXPORTER_USER,
)
from vmexporters.detection import get_machine, node_exporter_package
from vmexporters.errors import NotReadyError, ServiceNotActiveError
from vmexporters.log import getLogger
from vmexporters.objects import Step, StepResult, StepStatus
from vmexporters.templates import render
from vmexporters import systemd

from ..service import Service

logger = getLogger(__name__, tags=["node_exporter"])

ENABLED_COLLECTORS = ["mountstats", "cpu.info"]

DISABLED_COLLECTORS = [
    "arp",
    "bcache",
    "bonding",
    "btrfs",
    "conntrack",
    "cpufreq",
    "dmi",
    "edac",
    "entropy",
    "fibrechannel",
    "filefd",
    "hwmon",
    "ipvs",
    "mdadm",
    "netclass",
    "netstat",
    "nfs",
    "nfsd",
    "nvme",
    "os",
    "powersupplyclass",
    "pressure",
    "rapl",
    "schedstat",
    "selinux",
    "sockstat",
    "softnet",
    "tapestats",
    "textfile",
    "thermal_zone",
    "timex",
    "udp_queues",
    "watchdog",
    "xfs",
    "zfs",
]

RESTART_SEC = 15


def collector_flags(
    enabled: List[str] = ENABLED_COLLECTORS, disabled: List[str] = DISABLED_COLLECTORS
) -> List[str]:
    return [f"--collector.{c}" for c in enabled] + [
        f"--no-collector.{c}" for c in disabled
    ]


def _strip_first_component(tar: tarfile.TarFile) -> List[tarfile.TarInfo]:
    """Same as tar --strip-components=1."""
    members = []
    for member in tar.getmembers():
        parts = Path(member.name).parts[1:]
        if not parts:
            continue
        member.name = str(Path(*parts))
        members.append(member)
    return members


def extract(archive: Path, dest: Path):
    with tarfile.open(archive) as tar:
        members = _strip_first_component(tar)
        kwargs = {}
        if hasattr(tarfile, "data_filter"):
            kwargs.update(filter="data")
        tar.extractall(path=str(dest), members=members, **kwargs)


class NodeExporter(Service):
    def __init__(
        self,
        conf: Configuration,
        *,
        machine: Optional[str] = None,
        unit_file: Path = NODE_EXPORTER_UNIT,
        options_file: Path = NODE_EXPORTER_OPTIONS,
    ):
        """Deploy the Prometheus node exporter on the host.

        The binary goes in ``conf.node_exporter_dir``; if this directory
        already exists the download is skipped entirely (no version check).
        The unit and options files are rewritten on each deployment.

        Args:
            conf: the configuration to deploy
            machine: machine hardware name used to pick the release
                archive (detected if None)
            unit_file: where to write the systemd unit
            options_file: where to write the collector options
        """
        self.conf = conf
        self.machine = machine if machine is not None else get_machine()
        self.unit_file = Path(unit_file)
        self.options_file = Path(options_file)
        self.service = NODE_EXPORTER_SERVICE
        self.user = NODE_EXPORTER_USER
        self.group = NODE_EXPORTER_USER

    @property
    def package(self) -> str:
        return node_exporter_package(self.conf.node_exporter_version, self.machine)

    @property
    def url(self) -> str:
        return NODE_EXPORTER_URL.format(
            version=self.conf.node_exporter_version, package=self.package
        )

    @property
    def metrics_url(self) -> str:
        return f"http://localhost:{self.conf.node_exporter_port}/metrics"

    def install_binary(self) -> bool:
        """Download and extract the release.

        Returns:
            True iff something has been installed.
        """
        install_dir = self.conf.node_exporter_dir
        logger.info(
            f"Installing Node Exporter version {self.conf.node_exporter_version}..."
        )
        if install_dir.exists():
            logger.info("Node Exporter directory already exists, skipping download")
            return False

        archive = install_dir.parent / self.package
        install_dir.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading {self.package}...")
        try:
            download(self.url, archive)
            install_dir.mkdir()
            logger.info("Extracting Node Exporter...")
            extract(archive, install_dir)
        finally:
            if archive.exists():
                archive.unlink()

        run_command(["chown", "-R", "root:root", str(install_dir)])
        binary = self.conf.node_exporter_binary
        binary.chmod(binary.stat().st_mode | 0o111)
        logger.info(f"Node Exporter binary installed to {install_dir}/")
        return True

    def create_user(self):
        logger.info(f"Creating {self.user} user and group...")
        if not run_command(["getent", "group", self.group], check=False).ok():
            run_command(["groupadd", "-r", self.group])
            logger.info(f"Created {self.group} group")

        if not run_command(["id", "-u", self.user], check=False).ok():
            run_command(
                [
                    "useradd",
                    "-r",
                    "-g",
                    self.group,
                    "-s",
                    "/sbin/nologin",
                    "-d",
                    str(self.conf.node_exporter_dir),
                    self.user,
                ]
            )
            logger.info(f"Created {self.user} user")

    def render_unit(self) -> str:
        return render(
            "node_exporter.service.j2",
            user=self.user,
            group=self.group,
            options_file=str(self.options_file),
            binary=str(self.conf.node_exporter_binary),
            port=self.conf.node_exporter_port,
            restart_sec=RESTART_SEC,
        )

    def render_options(self) -> str:
        return render(
            "node_exporter.options.j2", options=" \\\n".join(collector_flags())
        )

    def create_service(self):
        logger.info("Creating Node Exporter systemd service...")
        self.unit_file.parent.mkdir(parents=True, exist_ok=True)
        self.unit_file.write_text(self.render_unit())
        self.options_file.parent.mkdir(parents=True, exist_ok=True)
        self.options_file.write_text(self.render_options())
        logger.info("Node Exporter systemd service created")

    def start(self):
        logger.info("Starting Node Exporter service...")
        systemd.daemon_reload()
        systemd.enable(self.service)
        systemd.start(self.service)

    def check(self) -> StepResult:
        """Wait for the service and probe its metrics endpoint.

        Raises:
            ServiceNotActiveError: if the service isn't active in time
        """
        try:
            wait_for(
                lambda: systemd.is_active(self.service),
                task_name=f"{self.service} service",
            )
        except NotReadyError:
            status = systemd.status(self.service)
            logger.error("Node Exporter service failed to start")
            logger.error(status)
            raise ServiceNotActiveError(self.service, status)

        logger.info("Node Exporter service started successfully")
        port = self.conf.node_exporter_port
        if http_get(self.metrics_url) is None:
            msg = f"Node Exporter service is running but not responding on port {port}"
            logger.warning(msg)
            return StepResult(Step.SUPERVISE_NODE_EXPORTER, StepStatus.WARNING, msg)
        msg = f"Node Exporter is responding on port {port}"
        logger.info(msg)
        return StepResult(Step.SUPERVISE_NODE_EXPORTER, StepStatus.OK, msg)

    def install(self):
        """Everything but the supervision."""
        self.install_binary()
        self.create_user()
        self.create_service()
        self.start()

    def deploy(self) -> StepResult:
        """Deploy the node exporter and check it's running."""
        self.install()
        return self.check()

    def destroy(self):
        """Stop the service and remove its unit.

        The binary and the service account are kept.
        """
        logger.info("Removing Node Exporter systemd service...")
        systemd.stop(self.service)
        systemd.disable(self.service)
        for f in (self.unit_file, self.options_file):
            if f.exists():
                f.unlink()
        systemd.daemon_reload()

from typing import List, Optional

from vmexporters.api import fetch, http_get, run_command, wait_for
from vmexporters.configuration import Configuration
from vmexporters.constants import COUNTERS_CONTAINER_PATH, DCGM_METRIC_PREFIX
from vmexporters.counters import render_counters
from vmexporters.errors import ContainerNotRunningError, NotReadyError
from vmexporters.log import getLogger
from vmexporters.objects import Step, StepResult, StepStatus

from ..service import Service

logger = getLogger(__name__, tags=["dcgm_exporter"])


def count_metrics(text: str, prefix: str = DCGM_METRIC_PREFIX) -> int:
    """Number of exposition lines starting with prefix."""
    return sum(1 for line in text.splitlines() if line.startswith(prefix))


def container_names(include_stopped: bool = False) -> List[str]:
    cmd = ["docker", "ps", "--format", "{{.Names}}"]
    if include_stopped:
        cmd.insert(2, "-a")
    result = run_command(cmd, check=False)
    if not result.ok():
        return []
    return [n.strip() for n in result.stdout.splitlines() if n.strip()]


class DCGMExporter(Service):
    def __init__(self, conf: Configuration):
        """Deploy the DCGM exporter container.

        Any container with the same name is stopped and removed first, so
        that exactly one instance runs once deployed.

        Args:
            conf: the configuration to deploy
        """
        self.conf = conf
        self.name = conf.container_name

    @property
    def metrics_url(self) -> str:
        return f"http://localhost:{self.conf.dcgm_exporter_port}/metrics"

    def write_counters(self):
        logger.info("Creating DCGM custom counters configuration...")
        self.conf.dcgm_exporter_dir.mkdir(parents=True, exist_ok=True)
        counters_file = self.conf.counters_file
        url = self.conf.custom_counters_url
        if url:
            logger.info(f"Downloading custom counters from: {url}")
            counters_file.write_bytes(fetch(url))
        else:
            logger.info("Creating custom counters file with comprehensive GPU metrics")
            counters_file.write_text(render_counters())
        logger.info(f"DCGM custom counters file created at {counters_file}")

    def exists(self) -> bool:
        return self.name in container_names(include_stopped=True)

    def is_running(self) -> bool:
        return self.name in container_names()

    def remove_container(self):
        if not self.exists():
            return
        logger.info("Stopping existing DCGM Exporter container...")
        # the container runs with --rm: it may be gone once stopped
        run_command(["docker", "stop", self.name], check=False)
        run_command(["docker", "rm", self.name], check=False)

    def run_cmd(self) -> List[str]:
        port = self.conf.dcgm_exporter_port
        return [
            "docker",
            "run",
            "--name",
            self.name,
            "-v",
            f"{self.conf.counters_file}:{COUNTERS_CONTAINER_PATH}:ro",
            "-d",
            "--gpus",
            "all",
            "--cap-add",
            "SYS_ADMIN",
            "--rm",
            "-p",
            f"{port}:{port}",
            self.conf.dcgm_image_ref,
            "-f",
            COUNTERS_CONTAINER_PATH,
        ]

    def run_container(self):
        logger.info("Starting DCGM Exporter container...")
        run_command(self.run_cmd(), task_name=f"docker run {self.name}")

    def logs(self) -> str:
        result = run_command(["docker", "logs", self.name], check=False)
        return f"{result.stdout or ''}{result.stderr or ''}"

    def status(self) -> Optional[str]:
        """Status of the container as `docker ps` prints it."""
        result = run_command(
            ["docker", "ps", "--filter", f"name={self.name}", "--format", "{{.Status}}"],
            check=False,
        )
        if not result.ok():
            return None
        lines = result.stdout.splitlines()
        return lines[0].strip() if lines else None

    def check(self) -> StepResult:
        """Wait for the container and probe its metrics endpoint.

        Raises:
            ContainerNotRunningError: if the container isn't running in time
        """
        try:
            wait_for(self.is_running, task_name=f"{self.name} container")
        except NotReadyError:
            logs = self.logs()
            logger.error("DCGM Exporter container failed to start")
            logger.error(logs)
            raise ContainerNotRunningError(self.name, logs)

        logger.info("DCGM Exporter container started successfully")
        port = self.conf.dcgm_exporter_port
        r = http_get(self.metrics_url)
        if r is None:
            msg = f"DCGM Exporter container is running but not responding on port {port}"
            logger.warning(msg)
            return StepResult(Step.SUPERVISE_DCGM_EXPORTER, StepStatus.WARNING, msg)
        logger.info(f"DCGM Exporter is responding on port {port}")
        msg = f"Exposing {count_metrics(r.text)} DCGM metrics"
        logger.info(msg)
        return StepResult(Step.SUPERVISE_DCGM_EXPORTER, StepStatus.OK, msg)

    def install(self):
        """Everything but the supervision."""
        self.write_counters()
        self.remove_container()
        self.run_container()

    def deploy(self) -> StepResult:
        """Deploy the DCGM exporter and check it's running."""
        logger.info("Installing and starting DCGM Exporter...")
        self.install()
        return self.check()

    def destroy(self):
        """Stop and remove the container."""
        self.remove_container()

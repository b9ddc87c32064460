from pathlib import Path
from typing import Dict, Optional

from vmexporters.api import fetch, run_command, which
from vmexporters.log import getLogger
from vmexporters.packages import DOCKER_PACKAGES, Apt, PackageManager
from vmexporters.templates import render
from vmexporters import systemd

from ..service import Service

logger = getLogger(__name__, tags=["docker"])

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_APT_REPOSITORY = "https://download.docker.com/linux/ubuntu"
APT_KEYRINGS = Path("/etc/apt/keyrings")
APT_SOURCES = Path("/etc/apt/sources.list.d/docker.list")
APT_PREREQUISITES = ["ca-certificates", "curl", "gnupg"]
OS_RELEASE = Path("/etc/os-release")


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse the content of /etc/os-release."""
    release = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        release[key] = value.strip().strip('"').strip("'")
    return release


def docker_version() -> Optional[str]:
    if which("docker") is None:
        return None
    result = run_command(["docker", "--version"], check=False)
    return result.stdout.strip() if result.ok() else None


class Docker(Service):
    def __init__(
        self,
        package_manager: PackageManager,
        *,
        os_release: Path = OS_RELEASE,
        keyrings: Path = APT_KEYRINGS,
        sources: Path = APT_SOURCES,
    ):
        """Deploy the docker engine on the host.

        Nothing is done if a ``docker`` client is already available.
        Otherwise the Docker CE repository is added for the package manager
        of the host and the engine, the cli and the plugins get installed.

        Args:
            package_manager: the package manager of the host (as returned
                by :py:func:`~vmexporters.packages.detect_package_manager`)
            os_release: where to read the distribution codename from (apt)
            keyrings: where to store the repository signing key (apt)
            sources: the apt source file to write (apt)
        """
        self.pm = package_manager
        self.os_release = Path(os_release)
        self.keyrings = Path(keyrings)
        self.sources = Path(sources)

    @property
    def keyring(self) -> Path:
        return self.keyrings / "docker.gpg"

    def _add_apt_repository(self):
        self.pm.update()
        self.pm.install(*APT_PREREQUISITES)

        self.keyrings.mkdir(parents=True, exist_ok=True)
        self.keyrings.chmod(0o755)
        key = fetch(DOCKER_GPG_URL)
        run_command(
            ["gpg", "--batch", "--yes", "--dearmor", "-o", str(self.keyring)],
            input=key,
            text=False,
        )
        self.keyring.chmod(0o644)

        arch = run_command(["dpkg", "--print-architecture"]).stdout.strip()
        release = parse_os_release(self.os_release.read_text())
        self.sources.parent.mkdir(parents=True, exist_ok=True)
        self.sources.write_text(
            render(
                "docker.list.j2",
                arch=arch,
                keyring=str(self.keyring),
                repository=DOCKER_APT_REPOSITORY,
                codename=release.get("VERSION_CODENAME", ""),
            )
        )

    def deploy(self):
        """Install docker (if needed) and start the daemon."""
        version = docker_version()
        if version is not None:
            logger.info(f"Docker already installed: {version}")
            return

        logger.info("Installing Docker...")
        if isinstance(self.pm, Apt):
            self._add_apt_repository()
        else:
            self.pm.add_docker_repository()
        self.pm.update()
        self.pm.install(*DOCKER_PACKAGES)

        systemd.start("docker")
        systemd.enable("docker")
        logger.info(f"Docker installed successfully: {docker_version()}")

    def destroy(self):
        """(Not implemented) Destroy docker.

        The engine is left in place, other workloads may use it.
        """
        pass

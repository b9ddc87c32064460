"""Package managers known by vmexporters.

The first one found on the host wins (in the order of
:py:data:`PACKAGE_MANAGERS`).
"""
import logging
from typing import List, Optional, Type

from vmexporters.api import run, run_command, which
from vmexporters.errors import UnsupportedPackageManager

logger = logging.getLogger(__name__)

DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


class PackageManager:
    """Base class for the package managers.

    Subclasses set the executable name and the commands used to refresh the
    indexes.
    """

    name: str = ""
    # repository plugin package and the config manager invocation to add a repo
    repo_plugin: Optional[str] = None
    docker_repo: Optional[str] = None

    def update_cmd(self) -> List[str]:
        return [self.name, "update", "-y"]

    def install_cmd(self, *packages: str) -> List[str]:
        return [self.name, "install", "-y", *packages]

    def add_repo_cmd(self, url: str) -> List[str]:
        return [self.name, "config-manager", "--add-repo", url]

    def update(self):
        logger.info(f"Refreshing the package indexes ({self.name})")
        run(self.update_cmd())

    def install(self, *packages: str):
        logger.info(f"Installing {' '.join(packages)}")
        run(self.install_cmd(*packages))

    def add_docker_repository(self):
        """Make the Docker CE packages available."""
        self.update()
        if self.repo_plugin:
            self.install(self.repo_plugin)
        if self.docker_repo:
            run_command(self.add_repo_cmd(self.docker_repo))

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"


class Apt(PackageManager):
    name = "apt-get"

    def update_cmd(self) -> List[str]:
        return [self.name, "update"]


class Yum(PackageManager):
    name = "yum"
    repo_plugin = "yum-utils"
    docker_repo = "https://download.docker.com/linux/centos/docker-ce.repo"

    def add_repo_cmd(self, url: str) -> List[str]:
        return ["yum-config-manager", "--add-repo", url]


class Dnf(PackageManager):
    name = "dnf"
    repo_plugin = "dnf-plugins-core"
    docker_repo = "https://download.docker.com/linux/fedora/docker-ce.repo"


PACKAGE_MANAGERS: List[Type[PackageManager]] = [Apt, Yum, Dnf]


def detect_package_manager() -> PackageManager:
    """Get the package manager of the host.

    Raises:
        UnsupportedPackageManager: if none of the known package managers
            is available.
    """
    for pm_cls in PACKAGE_MANAGERS:
        if which(pm_cls.name) is not None:
            logger.debug(f"Found {pm_cls.name}")
            return pm_cls()
    raise UnsupportedPackageManager()


def install_dependencies(packages: List[str]) -> PackageManager:
    """Refresh the package indexes and install the baseline packages.

    Returns:
        The package manager that has been used.
    """
    logger.info("Installing dependencies...")
    pm = detect_package_manager()
    pm.update()
    if packages:
        pm.install(*packages)
    return pm

"""Learn about the host we are provisioning.

Detection is read-only: the functions of this module only run probing
commands and log what they found.
"""
import os
import platform
from typing import List, Optional

from vmexporters.api import run_command, which
from vmexporters.log import getLogger
from vmexporters.packages import PackageManager, detect_package_manager

logger = getLogger(__name__, tags=["detection"])

ARM64_MACHINES = {"aarch64"}
NVIDIA_SMI = "nvidia-smi"

__all__ = [
    "detect_gpus",
    "detect_package_manager",
    "get_machine",
    "has_gpu",
    "host_summary",
    "is_root",
    "node_exporter_package",
    "primary_ip",
    "PackageManager",
]


def is_root() -> bool:
    return os.geteuid() == 0


def get_machine() -> str:
    """Machine hardware name (as `uname -m` reports it)."""
    return platform.machine()


def node_exporter_package(version: str, machine: str) -> str:
    """Name of the node exporter release archive for the machine.

    Only two flavors are shipped: arm64 for aarch64 hosts, amd64 for the
    others.
    """
    arch = "arm64" if machine in ARM64_MACHINES else "amd64"
    return f"node_exporter-{version}.linux-{arch}.tar.gz"


def detect_gpus() -> Optional[List[str]]:
    """List the NVIDIA GPUs of the host.

    A missing or failing ``nvidia-smi`` means no GPU: this is never an error.

    Returns:
        One line per GPU as printed by ``nvidia-smi -L``, None if the GPU
        probe failed.
    """
    logger.info("Checking for NVIDIA GPU...")
    if which(NVIDIA_SMI) is None:
        logger.warning(f"{NVIDIA_SMI} not found. DCGM Exporter will be skipped.")
        return None

    result = run_command([NVIDIA_SMI, "-L"], check=False)
    if not result.ok():
        logger.warning(f"{NVIDIA_SMI} command failed. DCGM Exporter will be skipped.")
        return None

    gpus = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    logger.info(f"Found {len(gpus)} NVIDIA GPU(s)")
    for gpu in gpus:
        logger.info(f"  {gpu}")
    return gpus


def has_gpu() -> bool:
    return detect_gpus() is not None


def host_summary() -> str:
    """The equivalent of `uname -a`."""
    return " ".join(platform.uname())


def primary_ip() -> Optional[str]:
    """First address reported by ``hostname -I``."""
    result = run_command(["hostname", "-I"], check=False)
    if not result.ok():
        return None
    addresses = result.stdout.split()
    if not addresses:
        return None
    return addresses[0]

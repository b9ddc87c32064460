# flake8: noqa
from vmexporters.api import (
    STATUS_FAILED,
    STATUS_OK,
    CommandResult,
    http_get,
    run,
    run_command,
    wait_for,
    which,
)
from vmexporters.config import config_context, get_config, set_config
from vmexporters.configuration import Configuration
from vmexporters.counters import COUNTERS, Counter, parse_counters, render_counters
from vmexporters.detection import (
    detect_gpus,
    detect_package_manager,
    has_gpu,
    is_root,
    node_exporter_package,
)
from vmexporters.log import init_logging
from vmexporters.objects import Step, StepResult, StepStatus
from vmexporters.orchestrator import Provisioner, provision

# Services
from vmexporters.service.dcgm.dcgm import DCGMExporter
from vmexporters.service.docker.docker import Docker
from vmexporters.service.node_exporter.node_exporter import NodeExporter

from .version import __source__, __version__

"""
Library-level objects: the steps of a provisioning run and their outcome.
"""
from dataclasses import dataclass
from enum import Enum


class Step(Enum):
    CHECK_ROOT = "check_root"
    INSTALL_DEPS = "install_deps"
    INSTALL_NODE_EXPORTER = "install_node_exporter"
    SUPERVISE_NODE_EXPORTER = "supervise_node_exporter"
    DETECT_GPU = "detect_gpu"
    INSTALL_RUNTIME = "install_runtime"
    INSTALL_DCGM_EXPORTER = "install_dcgm_exporter"
    SUPERVISE_DCGM_EXPORTER = "supervise_dcgm_exporter"
    DONE = "done"


class StepStatus(Enum):
    OK = "OK"
    WARNING = "WARNING"
    SKIPPED = "SKIPPED"
    FATAL = "FATAL"


@dataclass
class StepResult:
    step: Step
    status: StepStatus
    message: str = ""

    def ok(self) -> bool:
        return self.status != StepStatus.FATAL

    def to_dict(self):
        return dict(step=self.step.value, status=self.status.value, message=self.message)

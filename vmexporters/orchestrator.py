"""The provisioning run.

A single forward pass over the steps::

    check_root -> install_deps -> install_node_exporter -> supervise_node_exporter
        -> detect_gpu --yes--> install_runtime -> install_dcgm_exporter
                                -> supervise_dcgm_exporter -> done
                      --no---> done

Any fatal error stops the run right away (exit code 1). Nothing that has
already been applied is rolled back.
"""
import logging
from typing import Callable, List, Optional, TypeVar

import requests

from vmexporters.configuration import Configuration
from vmexporters.detection import (
    detect_gpus,
    get_machine,
    host_summary,
    is_root,
    primary_ip,
)
from vmexporters.errors import ExporterError, NotRootError
from vmexporters.objects import Step, StepResult, StepStatus
from vmexporters.packages import PackageManager, install_dependencies
from vmexporters.service.dcgm.dcgm import DCGMExporter
from vmexporters.service.docker.docker import Docker
from vmexporters.service.node_exporter.node_exporter import NodeExporter
from vmexporters import systemd

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

# what makes a step fatal
FATAL_ERRORS = (ExporterError, requests.RequestException, OSError)

T = TypeVar("T")


class Provisioner:
    def __init__(self, conf: Configuration, machine: Optional[str] = None):
        """Install the monitoring exporters on the local host.

        Args:
            conf: what to install
            machine: machine hardware name (detected if None)
        """
        self.conf = conf
        self.machine = machine if machine is not None else get_machine()
        self.results: List[StepResult] = []
        self.gpus: Optional[List[str]] = None
        self.node_exporter = NodeExporter(conf, machine=self.machine)
        self.dcgm_exporter = DCGMExporter(conf)
        self._step: Step = Step.CHECK_ROOT

    def _record(self, status: StepStatus, message: str = "") -> StepResult:
        result = StepResult(self._step, status, message)
        self.results.append(result)
        return result

    def _run_step(self, step: Step, f: Callable[[], T]) -> T:
        self._step = step
        value = f()
        if isinstance(value, StepResult):
            self.results.append(value)
        else:
            self._record(StepStatus.OK)
        return value

    def check_root(self):
        if not is_root():
            raise NotRootError()

    def install_deps(self) -> PackageManager:
        return install_dependencies(self.conf.packages)

    def detect_gpu(self) -> Optional[List[str]]:
        self.gpus = detect_gpus()
        return self.gpus

    def _header(self):
        logger.info("Starting monitoring exporters installation...")
        logger.info(f"System: {host_summary()}")
        logger.info(f"Architecture: {self.machine}")
        logger.info(f"Node Exporter Version: {self.conf.node_exporter_version}")
        logger.info(f"DCGM Exporter Version: {self.conf.dcgm_exporter_version}")

    def _summary(self):
        ip = primary_ip() or "localhost"
        if self.gpus is not None:
            logger.info(
                "Both Node Exporter and DCGM Exporter installation "
                "completed successfully!"
            )
        else:
            logger.info("Node Exporter installation completed successfully!")
            logger.info("DCGM Exporter skipped (no NVIDIA GPU detected)")
        logger.info(
            f"Node Exporter metrics: http://{ip}:{self.conf.node_exporter_port}/metrics"
        )
        if self.gpus is not None:
            logger.info(
                f"DCGM Exporter metrics: http://{ip}:{self.conf.dcgm_exporter_port}/metrics"
            )
        logger.info("Installation summary:")
        logger.info(
            f"  Node Exporter: {systemd.active_state(self.node_exporter.service)}"
        )
        if self.gpus is not None:
            logger.info(f"  DCGM Exporter: {self.dcgm_exporter.status()}")

    def provision(self):
        """The steps, raises on the first fatal error."""
        self._run_step(Step.CHECK_ROOT, self.check_root)
        self._header()
        pm = self._run_step(Step.INSTALL_DEPS, self.install_deps)

        logger.info("=== Installing Node Exporter ===")
        self._run_step(Step.INSTALL_NODE_EXPORTER, self.node_exporter.install)
        self._run_step(Step.SUPERVISE_NODE_EXPORTER, self.node_exporter.check)

        gpus = self._run_step(Step.DETECT_GPU, self.detect_gpu)
        if gpus is None:
            for step in (
                Step.INSTALL_RUNTIME,
                Step.INSTALL_DCGM_EXPORTER,
                Step.SUPERVISE_DCGM_EXPORTER,
            ):
                self.results.append(
                    StepResult(step, StepStatus.SKIPPED, "no NVIDIA GPU detected")
                )
        else:
            logger.info("=== Installing DCGM Exporter ===")
            self._run_step(Step.INSTALL_RUNTIME, Docker(pm).deploy)
            self._run_step(Step.INSTALL_DCGM_EXPORTER, self.dcgm_exporter.install)
            self._run_step(Step.SUPERVISE_DCGM_EXPORTER, self.dcgm_exporter.check)

        self._step = Step.DONE
        self._summary()
        self._record(StepStatus.OK)

    def run(self) -> int:
        """Run the provisioning.

        Returns:
            the exit code: 0 on success (GPU exporter skipped or not), 1 on
            a fatal error.
        """
        self.results = []
        self._step = Step.CHECK_ROOT
        try:
            self.provision()
        except FATAL_ERRORS as err:
            logger.error(f"ERROR: {err}")
            self._record(StepStatus.FATAL, str(err))
            return EXIT_FAILURE
        return EXIT_OK


def provision(conf: Optional[Configuration] = None) -> int:
    """Provision the local host, see :py:class:`Provisioner`."""
    if conf is None:
        conf = Configuration()
    return Provisioner(conf).run()

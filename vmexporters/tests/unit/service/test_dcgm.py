from unittest import mock

from vmexporters.api import STATUS_FAILED, STATUS_OK, CommandResult
from vmexporters.configuration import Configuration
from vmexporters.counters import enabled_counters, parse_counters, render_counters
from vmexporters.errors import ContainerNotRunningError
from vmexporters.objects import Step, StepStatus
from vmexporters.service.dcgm.dcgm import DCGMExporter, count_metrics

from .. import ExporterTest

MODULE = "vmexporters.service.dcgm.dcgm"

METRICS = """# HELP DCGM_FI_DEV_SM_CLOCK SM clock frequency (in MHz).
# TYPE DCGM_FI_DEV_SM_CLOCK gauge
DCGM_FI_DEV_SM_CLOCK{gpu="0",UUID="GPU-6f2e"} 1410
DCGM_FI_DEV_SM_CLOCK{gpu="1",UUID="GPU-0a1b"} 1410
# HELP DCGM_FI_DEV_GPU_TEMP GPU temperature (in C).
# TYPE DCGM_FI_DEV_GPU_TEMP gauge
DCGM_FI_DEV_GPU_TEMP{gpu="0",UUID="GPU-6f2e"} 34
"""


def _result(rc=0, stdout="", stderr=""):
    return CommandResult(
        "localhost",
        "task",
        STATUS_OK if rc == 0 else STATUS_FAILED,
        dict(stdout=stdout, stderr=stderr, rc=rc),
    )


class FakeDocker:
    """Just enough of the docker cli to follow the containers' lifecycle."""

    def __init__(self, running=(), stopped=(), start_fails=False):
        # name -> running?
        self.containers = {n: True for n in running}
        self.containers.update({n: False for n in stopped})
        self.start_fails = start_fails
        self.commands = []

    def __call__(self, cmd, task_name=None, check=True, **kwargs):
        self.commands.append(cmd)
        sub = cmd[1]
        if sub == "ps":
            show_all = "-a" in cmd
            if "--filter" in cmd:
                name = cmd[cmd.index("--filter") + 1].split("=", 1)[1]
                status = "Up 5 seconds" if self.containers.get(name) else ""
                return _result(stdout=f"{status}\n" if status else "")
            names = [n for n, up in self.containers.items() if up or show_all]
            return _result(stdout="".join(f"{n}\n" for n in names))
        if sub == "stop":
            name = cmd[2]
            if name not in self.containers:
                return _result(rc=1, stderr="No such container")
            # started with --rm
            del self.containers[name]
            return _result()
        if sub == "rm":
            if cmd[2] not in self.containers:
                return _result(rc=1, stderr="No such container")
            del self.containers[cmd[2]]
            return _result()
        if sub == "run":
            name = cmd[cmd.index("--name") + 1]
            if name in self.containers:
                return _result(rc=125, stderr="Conflict")
            if not self.start_fails:
                self.containers[name] = True
            return _result(stdout="c0ffee\n")
        if sub == "logs":
            return _result(stderr="Error: no GPU found")
        raise AssertionError(f"unexpected command {cmd}")

    def running(self, name):
        return [n for n, up in self.containers.items() if up and n == name]


class DCGMTest(ExporterTest):
    def setUp(self):
        super().setUp()
        self.tmp = self.tmp_dir()
        self.conf = Configuration.from_settings(dcgm_exporter_dir=self.tmp / "dcgm")
        self.dcgm = DCGMExporter(self.conf)


class TestCounters(DCGMTest):
    def test_builtin(self):
        self.dcgm.write_counters()
        text = self.conf.counters_file.read_text()
        self.assertEqual(render_counters(), text)
        self.assertEqual(len(enabled_counters()), len(parse_counters(text)))

    @mock.patch(f"{MODULE}.fetch")
    def test_remote(self, fetch):
        content = b"DCGM_FI_DEV_GPU_UTIL,  gauge, GPU utilization (in %).\r\n\xe2\x9c\x93"
        fetch.return_value = content
        self.conf.custom_counters_url = "https://example.org/counters.csv"
        self.dcgm.write_counters()
        fetch.assert_called_once_with("https://example.org/counters.csv")
        self.assertEqual(content, self.conf.counters_file.read_bytes())

    def test_overwritten(self):
        self.conf.dcgm_exporter_dir.mkdir()
        self.conf.counters_file.write_text("stale")
        self.dcgm.write_counters()
        self.assertEqual(render_counters(), self.conf.counters_file.read_text())


class TestContainer(DCGMTest):
    def test_run_cmd(self):
        self.assertEqual(
            [
                "docker",
                "run",
                "--name",
                "dcgm-exporter",
                "-v",
                f"{self.conf.counters_file}:/etc/dcgm-exporter/custom-counters.csv:ro",
                "-d",
                "--gpus",
                "all",
                "--cap-add",
                "SYS_ADMIN",
                "--rm",
                "-p",
                "9400:9400",
                "nvcr.io/nvidia/k8s/dcgm-exporter:4.2.3-4.1.3-ubuntu22.04",
                "-f",
                "/etc/dcgm-exporter/custom-counters.csv",
            ],
            self.dcgm.run_cmd(),
        )

    def test_replace_running(self):
        docker = FakeDocker(running=["dcgm-exporter", "other"])
        with mock.patch(f"{MODULE}.run_command", side_effect=docker), mock.patch(
            f"{MODULE}.http_get", return_value=mock.Mock(text=METRICS)
        ):
            self.dcgm.deploy()
        self.assertEqual(["dcgm-exporter"], docker.running("dcgm-exporter"))
        self.assertIn("other", docker.containers)
        subs = [c[1] for c in docker.commands if c[1] in ("stop", "rm", "run")]
        # rm fails since the container was started with --rm, that's fine
        self.assertEqual(["stop", "rm", "run"], subs)

    def test_replace_stopped(self):
        docker = FakeDocker(stopped=["dcgm-exporter"])
        with mock.patch(f"{MODULE}.run_command", side_effect=docker):
            self.dcgm.remove_container()
        self.assertNotIn("dcgm-exporter", docker.containers)

    def test_nothing_to_remove(self):
        docker = FakeDocker()
        with mock.patch(f"{MODULE}.run_command", side_effect=docker):
            self.dcgm.remove_container()
        self.assertEqual([], [c for c in docker.commands if c[1] in ("stop", "rm")])

    def test_status(self):
        docker = FakeDocker(running=["dcgm-exporter"])
        with mock.patch(f"{MODULE}.run_command", side_effect=docker):
            self.assertEqual("Up 5 seconds", self.dcgm.status())
        docker = FakeDocker()
        with mock.patch(f"{MODULE}.run_command", side_effect=docker):
            self.assertIsNone(self.dcgm.status())


class TestCheck(DCGMTest):
    def test_count_metrics(self):
        self.assertEqual(3, count_metrics(METRICS))
        self.assertEqual(0, count_metrics(""))

    def test_running_responding(self):
        docker = FakeDocker(running=["dcgm-exporter"])
        with mock.patch(f"{MODULE}.run_command", side_effect=docker), mock.patch(
            f"{MODULE}.http_get", return_value=mock.Mock(text=METRICS)
        ) as http_get:
            result = self.dcgm.check()
        http_get.assert_called_once_with("http://localhost:9400/metrics")
        self.assertEqual(Step.SUPERVISE_DCGM_EXPORTER, result.step)
        self.assertEqual(StepStatus.OK, result.status)
        self.assertEqual("Exposing 3 DCGM metrics", result.message)

    def test_running_not_responding(self):
        docker = FakeDocker(running=["dcgm-exporter"])
        with mock.patch(f"{MODULE}.run_command", side_effect=docker), mock.patch(
            f"{MODULE}.http_get", return_value=None
        ):
            result = self.dcgm.check()
        self.assertEqual(StepStatus.WARNING, result.status)

    def test_not_running(self):
        docker = FakeDocker(start_fails=True)
        with mock.patch(f"{MODULE}.run_command", side_effect=docker), mock.patch(
            f"{MODULE}.http_get"
        ) as http_get:
            self.dcgm.write_counters()
            self.dcgm.run_container()
            with self.assertRaises(ContainerNotRunningError) as ctx:
                self.dcgm.check()
        self.assertEqual("dcgm-exporter", ctx.exception.container)
        self.assertIn("no GPU found", ctx.exception.logs)
        http_get.assert_not_called()

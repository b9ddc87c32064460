import io
import tarfile
from pathlib import Path
from unittest import mock

from vmexporters.api import STATUS_FAILED, STATUS_OK, CommandResult
from vmexporters.configuration import Configuration
from vmexporters.errors import ServiceNotActiveError
from vmexporters.objects import Step, StepStatus
from vmexporters.service.node_exporter.node_exporter import (
    DISABLED_COLLECTORS,
    NodeExporter,
    collector_flags,
)

from .. import ExporterTest

MODULE = "vmexporters.service.node_exporter.node_exporter"


def _result(rc=0, stdout=""):
    return CommandResult(
        "localhost",
        "task",
        STATUS_OK if rc == 0 else STATUS_FAILED,
        dict(stdout=stdout, stderr="", rc=rc),
    )


def _make_release(dest: Path, top: str = "node_exporter-1.9.1.linux-amd64"):
    with tarfile.open(dest, "w:gz") as tar:
        for name, content in [
            ("node_exporter", b"#!/bin/sh\necho node_exporter\n"),
            ("LICENSE", b"Apache License"),
        ]:
            info = tarfile.TarInfo(f"{top}/{name}")
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return dest


class NodeExporterTest(ExporterTest):
    def setUp(self):
        super().setUp()
        self.tmp = self.tmp_dir()
        self.conf = Configuration.from_settings(
            node_exporter_dir=self.tmp / "opt" / "node_exporter"
        )
        self.ne = NodeExporter(
            self.conf,
            machine="x86_64",
            unit_file=self.tmp / "systemd" / "node_exporter.service",
            options_file=self.tmp / "sysconfig" / "node_exporter",
        )


class TestInstallBinary(NodeExporterTest):
    def test_url(self):
        self.assertEqual(
            "https://github.com/prometheus/node_exporter/releases/download/"
            "v1.9.1/node_exporter-1.9.1.linux-amd64.tar.gz",
            self.ne.url,
        )
        ne = NodeExporter(self.conf, machine="aarch64")
        self.assertTrue(ne.url.endswith("node_exporter-1.9.1.linux-arm64.tar.gz"))

    @mock.patch(f"{MODULE}.run_command")
    @mock.patch(f"{MODULE}.download")
    def test_install(self, download, run_command):
        download.side_effect = lambda url, dest: _make_release(dest)
        self.assertTrue(self.ne.install_binary())

        install_dir = self.conf.node_exporter_dir
        download.assert_called_once_with(
            self.ne.url, install_dir.parent / self.ne.package
        )
        binary = install_dir / "node_exporter"
        self.assertTrue(binary.is_file())
        self.assertTrue(binary.stat().st_mode & 0o100)
        # leading component stripped
        self.assertTrue((install_dir / "LICENSE").is_file())
        self.assertFalse((install_dir / "node_exporter-1.9.1.linux-amd64").exists())
        # archive removed
        self.assertFalse((install_dir.parent / self.ne.package).exists())
        run_command.assert_called_once_with(
            ["chown", "-R", "root:root", str(install_dir)]
        )

    @mock.patch(f"{MODULE}.run_command")
    @mock.patch(f"{MODULE}.download")
    def test_skip_existing(self, download, run_command):
        install_dir = self.conf.node_exporter_dir
        install_dir.mkdir(parents=True)
        marker = install_dir / "node_exporter"
        marker.write_text("old binary")

        self.assertFalse(self.ne.install_binary())

        download.assert_not_called()
        run_command.assert_not_called()
        self.assertEqual("old binary", marker.read_text())
        self.assertEqual(["node_exporter"], [p.name for p in install_dir.iterdir()])


class TestCreateUser(NodeExporterTest):
    @mock.patch(f"{MODULE}.run_command")
    def test_create_both(self, run_command):
        def _run(cmd, check=True):
            if cmd[0] in ("getent", "id"):
                return _result(rc=2)
            return _result()

        run_command.side_effect = _run
        self.ne.create_user()
        run_command.assert_any_call(["groupadd", "-r", "node_exporter"])
        run_command.assert_any_call(
            [
                "useradd",
                "-r",
                "-g",
                "node_exporter",
                "-s",
                "/sbin/nologin",
                "-d",
                str(self.conf.node_exporter_dir),
                "node_exporter",
            ]
        )

    @mock.patch(f"{MODULE}.run_command", return_value=_result())
    def test_already_there(self, run_command):
        self.ne.create_user()
        commands = [c.args[0][0] for c in run_command.call_args_list]
        self.assertEqual(["getent", "id"], commands)

    @mock.patch(f"{MODULE}.run_command")
    def test_only_user_missing(self, run_command):
        run_command.side_effect = lambda cmd, check=True: (
            _result(rc=1) if cmd[0] == "id" else _result()
        )
        self.ne.create_user()
        commands = [c.args[0][0] for c in run_command.call_args_list]
        self.assertEqual(["getent", "id", "useradd"], commands)


class TestCreateService(NodeExporterTest):
    def test_unit(self):
        unit = self.ne.render_unit()
        self.assertIn("User=node_exporter", unit)
        self.assertIn("Group=node_exporter", unit)
        self.assertIn(f"EnvironmentFile={self.ne.options_file}", unit)
        self.assertIn(
            f"ExecStart={self.conf.node_exporter_binary} "
            "--web.listen-address=:9100 $OPTIONS",
            unit,
        )
        self.assertIn("Restart=always", unit)
        self.assertIn("RestartSec=15", unit)
        self.assertIn("NoNewPrivileges=yes", unit)
        self.assertIn("ProtectSystem=strict", unit)
        self.assertIn("WantedBy=multi-user.target", unit)

    def test_options(self):
        options = self.ne.render_options()
        self.assertIn('OPTIONS="--collector.mountstats \\\n--collector.cpu.info', options)
        self.assertIn("--no-collector.zfs\"", options)
        flags = collector_flags()
        self.assertEqual(37, len(flags))
        self.assertEqual(35, len(DISABLED_COLLECTORS))
        for flag in flags:
            self.assertIn(flag, options)

    def test_create_overwrites(self):
        self.ne.unit_file.parent.mkdir(parents=True)
        self.ne.unit_file.write_text("stale")
        self.ne.create_service()
        self.assertEqual(self.ne.render_unit(), self.ne.unit_file.read_text())
        self.assertEqual(self.ne.render_options(), self.ne.options_file.read_text())


class TestCheck(NodeExporterTest):
    @mock.patch(f"{MODULE}.http_get", return_value=mock.Mock())
    @mock.patch(f"{MODULE}.systemd")
    def test_active_responding(self, systemd, http_get):
        systemd.is_active.return_value = True
        result = self.ne.check()
        self.assertEqual(Step.SUPERVISE_NODE_EXPORTER, result.step)
        self.assertEqual(StepStatus.OK, result.status)
        http_get.assert_called_once_with("http://localhost:9100/metrics")

    @mock.patch(f"{MODULE}.http_get", return_value=None)
    @mock.patch(f"{MODULE}.systemd")
    def test_active_not_responding(self, systemd, http_get):
        systemd.is_active.return_value = True
        result = self.ne.check()
        self.assertEqual(StepStatus.WARNING, result.status)
        self.assertTrue(result.ok())

    @mock.patch(f"{MODULE}.http_get")
    @mock.patch(f"{MODULE}.systemd")
    def test_eventually_active(self, systemd, http_get):
        systemd.is_active.side_effect = [False, False, True]
        self.assertEqual(StepStatus.OK, self.ne.check().status)

    @mock.patch(f"{MODULE}.http_get")
    @mock.patch(f"{MODULE}.systemd")
    def test_not_active(self, systemd, http_get):
        systemd.is_active.return_value = False
        systemd.status.return_value = "Active: failed"
        with self.assertRaises(ServiceNotActiveError) as ctx:
            self.ne.check()
        self.assertEqual("node_exporter", ctx.exception.service)
        self.assertEqual("Active: failed", ctx.exception.status)
        http_get.assert_not_called()


class TestLifecycle(NodeExporterTest):
    @mock.patch(f"{MODULE}.systemd")
    def test_start(self, systemd):
        self.ne.start()
        self.assertEqual(
            [
                mock.call.daemon_reload(),
                mock.call.enable("node_exporter"),
                mock.call.start("node_exporter"),
            ],
            systemd.mock_calls,
        )

    @mock.patch(f"{MODULE}.systemd")
    def test_destroy(self, systemd):
        self.ne.create_service()
        self.ne.destroy()
        self.assertFalse(self.ne.unit_file.exists())
        self.assertFalse(self.ne.options_file.exists())
        systemd.stop.assert_called_once_with("node_exporter")
        systemd.disable.assert_called_once_with("node_exporter")

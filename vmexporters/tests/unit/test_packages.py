from unittest import mock

from ddt import data, ddt, unpack

from vmexporters.errors import UnsupportedPackageManager
from vmexporters.packages import (
    Apt,
    Dnf,
    Yum,
    detect_package_manager,
    install_dependencies,
)

from . import ExporterTest


def _which(*available):
    def which(name):
        return f"/usr/bin/{name}" if name in available else None

    return which


@ddt
class TestDetectPackageManager(ExporterTest):
    @data(
        (("apt-get",), Apt),
        (("yum",), Yum),
        (("dnf",), Dnf),
        # first match wins
        (("apt-get", "yum", "dnf"), Apt),
        (("yum", "dnf"), Yum),
    )
    @unpack
    def test_detect(self, available, expected):
        with mock.patch("vmexporters.packages.which", side_effect=_which(*available)):
            self.assertIsInstance(detect_package_manager(), expected)

    def test_unsupported(self):
        with mock.patch("vmexporters.packages.which", side_effect=_which()):
            with self.assertRaises(UnsupportedPackageManager):
                detect_package_manager()


class TestCommands(ExporterTest):
    def test_apt(self):
        self.assertEqual(["apt-get", "update"], Apt().update_cmd())
        self.assertEqual(
            ["apt-get", "install", "-y", "wget", "curl"],
            Apt().install_cmd("wget", "curl"),
        )

    def test_yum(self):
        self.assertEqual(["yum", "update", "-y"], Yum().update_cmd())
        self.assertEqual(
            ["yum-config-manager", "--add-repo", "https://r"], Yum().add_repo_cmd("https://r")
        )

    def test_dnf(self):
        self.assertEqual(["dnf", "install", "-y", "curl"], Dnf().install_cmd("curl"))
        self.assertEqual(
            ["dnf", "config-manager", "--add-repo", "https://r"],
            Dnf().add_repo_cmd("https://r"),
        )

    @mock.patch("vmexporters.packages.run_command")
    @mock.patch("vmexporters.packages.run")
    def test_add_docker_repository_dnf(self, run, run_command):
        Dnf().add_docker_repository()
        run.assert_any_call(["dnf", "install", "-y", "dnf-plugins-core"])
        run_command.assert_called_once_with(
            [
                "dnf",
                "config-manager",
                "--add-repo",
                "https://download.docker.com/linux/fedora/docker-ce.repo",
            ]
        )


class TestInstallDependencies(ExporterTest):
    @mock.patch("vmexporters.packages.run")
    @mock.patch("vmexporters.packages.which", side_effect=_which("apt-get"))
    def test_apt(self, which, run):
        pm = install_dependencies(["wget", "curl"])
        self.assertIsInstance(pm, Apt)
        self.assertEqual(
            [
                mock.call(["apt-get", "update"]),
                mock.call(["apt-get", "install", "-y", "wget", "curl"]),
            ],
            run.call_args_list,
        )

    @mock.patch("vmexporters.packages.run")
    @mock.patch("vmexporters.packages.which", side_effect=_which())
    def test_unsupported(self, which, run):
        with self.assertRaises(UnsupportedPackageManager):
            install_dependencies(["wget", "curl"])
        run.assert_not_called()

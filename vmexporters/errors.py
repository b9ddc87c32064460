class ExporterError(Exception):
    pass


class NotRootError(ExporterError):
    def __init__(self):
        super().__init__("This script must be run as root")


class UnsupportedPackageManager(ExporterError):
    def __init__(self, msg="Unsupported package manager"):
        super().__init__(msg)


class CommandError(ExporterError):
    def __init__(self, result):
        super().__init__(
            f"Command `{result.task}` failed (rc={result.rc}): {result.stderr}"
        )
        self.result = result


class NotReadyError(ExporterError):
    def __init__(self, msg):
        super().__init__(msg)


class ServiceNotActiveError(ExporterError):
    def __init__(self, service, status=""):
        super().__init__(f"{service} service failed to start")
        self.service = service
        self.status = status


class ContainerNotRunningError(ExporterError):
    def __init__(self, container, logs=""):
        super().__init__(f"{container} container failed to start")
        self.container = container
        self.logs = logs


class ExporterFilePathError(ExporterError):
    def __init__(self, filepath, msg=""):
        super().__init__(msg)
        self.filepath = filepath

from abc import ABCMeta, abstractmethod


class Service(metaclass=ABCMeta):
    """A service is a piece of software we install on the host."""

    @abstractmethod
    def deploy(self):
        """(abstract) Deploy the service."""
        ...

    @abstractmethod
    def destroy(self):
        """(abstract) Destroy the service."""
        ...

    def backup(self):
        """Backup the service.

        None of our services hold data worth saving, this is a no-op by default.
        """
        pass

    def __enter__(self):
        self.destroy()
        self.deploy()
        return self

    def __exit__(self, *args):
        self.destroy()

import tempfile
import unittest
from pathlib import Path

from vmexporters.config import config_context


class ExporterTest(unittest.TestCase):
    """Base class of the unit tests.

    Readiness checks don't wait during the tests.
    """

    def setUp(self):
        super().setUp()
        ctx = config_context(readiness_delay=0, readiness_retries=3)
        ctx.__enter__()
        self.addCleanup(ctx.__exit__, None, None, None)

    def tmp_dir(self) -> Path:
        d = tempfile.TemporaryDirectory()
        self.addCleanup(d.cleanup)
        return Path(d.name)

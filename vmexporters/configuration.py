import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import jsonschema
import yaml

from vmexporters.constants import (
    BASE_PACKAGES,
    COUNTERS_FILENAME,
    DCGM_CONTAINER_NAME,
    DCGM_EXPORTER_DIR,
    DCGM_EXPORTER_IMAGE,
    DCGM_EXPORTER_PORT,
    DCGM_EXPORTER_VERSION,
    LOG_FILE,
    NODE_EXPORTER_DIR,
    NODE_EXPORTER_PORT,
    NODE_EXPORTER_VERSION,
)
from vmexporters.errors import ExporterFilePathError
from vmexporters.schema import SCHEMA

logger = logging.getLogger(__name__)


class Configuration:
    """What to install on the host and where.

    Build it programmatically (``Configuration.from_settings(...)``), from a
    dictionary or from a YAML file. Every key is optional, the defaults
    reproduce the reference deployment (node exporter on 9100, DCGM exporter on
    9400, built-in counters).

    Examples:

        .. code-block:: yaml

            node_exporter_version: 1.9.1
            dcgm_exporter_port: 9400
            custom_counters_url: https://example.org/counters.csv
    """

    _SCHEMA: Dict[str, Any] = SCHEMA

    def __init__(self):
        self.node_exporter_version: str = NODE_EXPORTER_VERSION
        self.node_exporter_port: int = NODE_EXPORTER_PORT
        self.node_exporter_dir: Path = NODE_EXPORTER_DIR
        self.dcgm_exporter_version: str = DCGM_EXPORTER_VERSION
        self.dcgm_image: str = DCGM_EXPORTER_IMAGE
        self.dcgm_exporter_port: int = DCGM_EXPORTER_PORT
        self.dcgm_exporter_dir: Path = DCGM_EXPORTER_DIR
        self.container_name: str = DCGM_CONTAINER_NAME
        self.custom_counters_url: Optional[str] = None
        self.packages: List[str] = list(BASE_PACKAGES)
        self.log_file: Path = LOG_FILE

    @classmethod
    def from_dictionary(cls, dictionary: Mapping, validate: bool = True):
        """Alternative constructor. Build the configuration from a
        dictionary."""
        if validate:
            cls.validate(dictionary)
        self = cls()
        self.set(**dictionary)
        self.finalize()
        return self

    @classmethod
    def from_settings(cls, **kwargs):
        """Alternative constructor. Build the configuration from
        the kwargs."""
        self = cls()
        self.set(**kwargs)
        return self

    @classmethod
    def from_file(cls, path: Union[Path, str]):
        """Alternative constructor. Build the configuration from a YAML file."""
        _path = Path(path)
        if not _path.is_file():
            raise ExporterFilePathError(_path, f"{_path} doesn't exist")
        with _path.open() as f:
            dictionary = yaml.safe_load(f) or {}
        return cls.from_dictionary(dictionary)

    @classmethod
    def validate(cls, dictionary: Mapping, schema: Optional[Dict] = None):
        if schema is None:
            schema = cls._SCHEMA
        jsonschema.validate(dictionary, schema)

    @property
    def node_exporter_binary(self) -> Path:
        return self.node_exporter_dir / "node_exporter"

    @property
    def counters_file(self) -> Path:
        return self.dcgm_exporter_dir / COUNTERS_FILENAME

    @property
    def dcgm_image_ref(self) -> str:
        return f"{self.dcgm_image}:{self.dcgm_exporter_version}"

    def to_dict(self) -> Dict:
        d = dict(
            node_exporter_version=self.node_exporter_version,
            node_exporter_port=self.node_exporter_port,
            node_exporter_dir=str(self.node_exporter_dir),
            dcgm_exporter_version=self.dcgm_exporter_version,
            dcgm_image=self.dcgm_image,
            dcgm_exporter_port=self.dcgm_exporter_port,
            dcgm_exporter_dir=str(self.dcgm_exporter_dir),
            container_name=self.container_name,
            packages=list(self.packages),
            log_file=str(self.log_file),
        )
        if self.custom_counters_url:
            d.update(custom_counters_url=self.custom_counters_url)
        return d

    def finalize(self):
        d = self.to_dict()
        logger.debug(json.dumps(d, indent=4))
        self.validate(d)
        return self

    def set(self, **kwargs):
        for k, v in kwargs.items():
            if k not in self._SCHEMA["properties"]:
                raise jsonschema.ValidationError(
                    f"Additional properties are not allowed ('{k}' was unexpected)"
                )
            if k in ("node_exporter_dir", "dcgm_exporter_dir", "log_file"):
                v = Path(v)
            setattr(self, k, v)
        return self

    def __repr__(self) -> str:
        r = f"Conf@{hex(id(self))}\n"
        r += json.dumps(self.to_dict(), indent=4)
        return r

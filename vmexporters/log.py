import logging
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Sequence, Tuple, Union

FILE_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class TagsAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs) -> Tuple[str, MutableMapping]:
        tags = self.extra["tags"]  # type: ignore
        if not tags:
            return msg, kwargs
        prefix = ",".join(tags)
        return f"[{prefix}] {msg}", kwargs


class DisableLogging:
    """Silence the messages up to `level` (included) in a block."""

    def __init__(self, level: Optional[int] = None):
        self.level = level

    def __enter__(self):
        if self.level is not None:
            logging.disable(self.level)

    def __exit__(self, et, ev, tb):
        logging.disable(logging.NOTSET)


def getLogger(name: str, tags: Optional[Sequence[str]] = None) -> TagsAdapter:
    logger = TagsAdapter(logging.getLogger(name), dict(tags=tags))
    return logger


def _file_handler(log_file: Union[Path, str]) -> Optional[logging.Handler]:
    """Build the handler appending to the install log.

    None is returned when the file can't be opened (e.g. not running as root).
    """
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(log_file), mode="a")
    except OSError as err:
        logging.getLogger(__name__).warning(
            "Unable to write the log file %s: %s", log_file, err
        )
        return None
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
    return handler


def init_logging(
    level=logging.INFO, log_file: Optional[Union[Path, str]] = None, **kwargs
):
    """Enable Rich display of log messages.

    Args:
        level: the logging level
        log_file: if set, every message is also appended to this file
        kwargs: kwargs passed to RichHandler.
          vmexporters chooses some defaults for you
            show_time=True, show_path=False
    """
    from rich.logging import RichHandler

    default_kwargs: Dict[str, Any] = dict(
        show_time=True,
        show_path=False,
    )
    default_kwargs.update(**kwargs)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%Y-%m-%d %X]",
        handlers=[RichHandler(**default_kwargs)],
        force=True,
    )

    if log_file is not None:
        handler = _file_handler(log_file)
        if handler is not None:
            logging.getLogger().addHandler(handler)

    return logging

"""
Manage the runtime knobs of vmexporters.

These are process-wide settings that don't belong to a host description
(see :py:class:`~vmexporters.configuration.Configuration` for the latter):
how long to wait for a service to come up, how long to wait for HTTP
answers...
"""
import copy
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_config = dict(
    readiness_retries=5,
    readiness_delay=3,
    readiness_backoff=2,
    http_timeout=10,
    download_timeout=300,
)


def get_config() -> Dict:
    """Get (a copy of) the current config."""
    return copy.deepcopy(_config)


def _set(key: str, value: Optional[Any]):
    if value is not None:
        _config[key] = value


def set_config(
    readiness_retries: Optional[int] = None,
    readiness_delay: Optional[float] = None,
    readiness_backoff: Optional[float] = None,
    http_timeout: Optional[float] = None,
    download_timeout: Optional[float] = None,
):
    """Set a specific config value.

    Args:
        readiness_retries: number of readiness checks made on a freshly
            started service (or container) before giving up
        readiness_delay: seconds to wait before the first readiness check
        readiness_backoff: the delay is multiplied by this factor after
            each failed check
        http_timeout: timeout (in seconds) of the metrics endpoint checks
        download_timeout: timeout (in seconds) of the artifacts download
    """
    if readiness_retries is not None and readiness_retries < 1:
        raise ValueError("readiness_retries must be at least 1")
    _set("readiness_retries", readiness_retries)
    _set("readiness_delay", readiness_delay)
    _set("readiness_backoff", readiness_backoff)
    _set("http_timeout", http_timeout)
    _set("download_timeout", download_timeout)

    logger.debug("config = %s", get_config())


@contextmanager
def config_context(**new_config):
    """A context manager to manage a config specific to a portion of code.

    The previous config is restored when exiting the context manager.

    Args:
        new_config: any keyword argument supported by
            :py:func:`~vmexporters.config.set_config`

    Examples:

        .. code-block:: python

            from vmexporters.config import config_context

            ...
            with config_context(readiness_delay=0):
                # don't wait before checking the service
                ...

            # the config goes back to its previous state here
    """
    old_config = get_config()
    set_config(**new_config)
    try:
        yield
    finally:
        set_config(**old_config)

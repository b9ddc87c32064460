"""Need to run some actions on the host? This module is tailored for this
purpose.

Everything runs on the local machine: commands are spawned with
:py:mod:`subprocess` and their outcome is wrapped in a
:py:class:`CommandResult`. HTTP interactions (artifact downloads, metrics
endpoint probes) go through requests.
"""
import logging
import shlex
import shutil
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests

from vmexporters.config import get_config
from vmexporters.errors import CommandError, NotReadyError

logger = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_FAILED = "FAILED"
# what a shell reports when the command can't be found
RC_NOT_FOUND = 127

Command = Union[str, Sequence[str]]


@dataclass
class CommandResult:
    host: str
    task: str
    status: str
    payload: Dict

    def _payload_keys(self):
        return ["stdout", "stderr", "rc"]

    def ok(self):
        return self.status == STATUS_OK

    def match(self, **kwargs):
        for k, v in kwargs.items():
            attr_value = getattr(self, k)
            if attr_value != v:
                return False
        return True

    def __getattr__(self, name: str) -> Any:
        """missing method."""
        if name not in self._payload_keys():
            raise AttributeError(name)
        return self.payload.get(name)

    def to_dict(self, include_payload: bool = False) -> Dict:
        """A representation as a Dict.

        Use case: json serialization

        Args:
            include_payload: True wheter the payload must be included.

        Returns:
            A dict representing the object
        """
        d = {name: self.payload.get(name) for name in self._payload_keys()}
        if include_payload:
            d.update(payload=self.payload)
        return dict(host=self.host, task=self.task, status=self.status, **d)


def _to_args(cmd: Command) -> List[str]:
    if isinstance(cmd, str):
        return shlex.split(cmd)
    return [str(c) for c in cmd]


def _task_name(cmd: Command, args: List[str]) -> str:
    # quoting preserved
    if isinstance(cmd, str):
        return cmd
    return shlex.join(args)


def run_command(
    cmd: Command,
    task_name: Optional[str] = None,
    check: bool = True,
    input: Optional[Union[str, bytes]] = None,
    text: bool = True,
    **kwargs,
) -> CommandResult:
    """Run a command on the local host.

    Args:
        cmd: the command to run, either as a list of arguments or as a string
            (split with shell-like syntax, no shell is involved)
        task_name: name of the task, used in logs and results
            (defaults to the command line)
        check: raise a :py:class:`~vmexporters.errors.CommandError` if the
            command fails
        input: data sent to the command standard input
        text: decode the outputs as text
        kwargs: keyword arguments passed to :py:func:`subprocess.run`

    Returns:
        The :py:class:`CommandResult` of the command.
    """
    args = _to_args(cmd)
    if task_name is None:
        task_name = _task_name(cmd, args)
    logger.debug("Running %s", task_name)
    try:
        completed = subprocess.run(
            args,
            input=input,
            capture_output=True,
            text=text,
            **kwargs,
        )
        payload = dict(
            stdout=completed.stdout,
            stderr=completed.stderr,
            rc=completed.returncode,
        )
    except FileNotFoundError as err:
        payload = dict(stdout="", stderr=str(err), rc=RC_NOT_FOUND)

    status = STATUS_OK if payload["rc"] == 0 else STATUS_FAILED
    result = CommandResult(
        host=socket.gethostname(), task=task_name, status=status, payload=payload
    )
    if check and not result.ok():
        raise CommandError(result)
    return result


def run(cmd: Command, **kwargs) -> CommandResult:
    """Run a command and stream its output.

    Used for long running commands (package installation...) so that the
    operator sees the progress. Nothing is captured.
    """
    check = kwargs.pop("check", True)
    task_name = kwargs.pop("task_name", None)
    args = _to_args(cmd)
    if task_name is None:
        task_name = _task_name(cmd, args)
    logger.debug("Running %s", task_name)
    try:
        rc = subprocess.call(args, **kwargs)
        payload = dict(stdout=None, stderr=None, rc=rc)
    except FileNotFoundError as err:
        payload = dict(stdout=None, stderr=str(err), rc=RC_NOT_FOUND)
    status = STATUS_OK if payload["rc"] == 0 else STATUS_FAILED
    result = CommandResult(
        host=socket.gethostname(), task=task_name, status=status, payload=payload
    )
    if check and not result.ok():
        raise CommandError(result)
    return result


def which(name: str) -> Optional[str]:
    """Path to the executable `name` or None if it isn't in the PATH."""
    return shutil.which(name)


def wait_for(
    probe: Callable[[], Any],
    retries: Optional[int] = None,
    delay: Optional[float] = None,
    backoff: Optional[float] = None,
    task_name: str = "probe",
) -> Any:
    """Wait for something to be ready.

    The probe is called up to `retries` times. We sleep `delay` seconds
    before the first call and the delay is multiplied by `backoff` after
    each unsuccessful call.

    Args:
        probe: a callable returning a truthy value when ready
        retries: maximum number of calls to probe
        delay: initial delay in seconds
        backoff: delay multiplier
        task_name: what we are waiting for (used in logs)

    Returns:
        The first truthy value returned by the probe

    Raises:
        NotReadyError: if the probe never succeeded
    """
    config = get_config()
    retries = config["readiness_retries"] if retries is None else retries
    delay = config["readiness_delay"] if delay is None else delay
    backoff = config["readiness_backoff"] if backoff is None else backoff

    for i in range(0, retries):
        time.sleep(delay)
        ready = probe()
        if ready:
            return ready
        logger.info(f"Waiting for {task_name}... {i + 1}/{retries}")
        delay = delay * backoff
    else:
        raise NotReadyError(f"{task_name}: maximum retries reached")


def http_get(url: str, timeout: Optional[float] = None) -> Optional[requests.Response]:
    """GET url.

    Returns:
        The response if the endpoint answered successfully, None otherwise.
    """
    if timeout is None:
        timeout = get_config()["http_timeout"]
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as err:
        logger.debug("GET %s failed: %s", url, err)
        return None
    return r


def fetch(url: str, timeout: Optional[float] = None) -> bytes:
    """Fetch the content of url (raises on failure)."""
    if timeout is None:
        timeout = get_config()["download_timeout"]
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.content


def download(url: str, dest: Path, timeout: Optional[float] = None) -> Path:
    """Download url into dest (raises on failure)."""
    if timeout is None:
        timeout = get_config()["download_timeout"]
    with requests.get(url, stream=True, timeout=timeout) as r:
        r.raise_for_status()
        with dest.open("wb") as f:
            for chunk in r.iter_content(chunk_size=1 << 16):
                f.write(chunk)
    return dest

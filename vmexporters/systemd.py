"""Thin wrappers around ``systemctl``."""
from vmexporters.api import CommandResult, run_command

SYSTEMCTL = "systemctl"


def _systemctl(*args: str, check: bool = True) -> CommandResult:
    return run_command([SYSTEMCTL, *args], check=check)


def daemon_reload():
    _systemctl("daemon-reload")


def enable(unit: str):
    _systemctl("enable", unit)


def disable(unit: str):
    _systemctl("disable", unit, check=False)


def start(unit: str):
    _systemctl("start", unit)


def stop(unit: str):
    _systemctl("stop", unit, check=False)


def is_active(unit: str) -> bool:
    return _systemctl("is-active", "--quiet", unit, check=False).ok()


def active_state(unit: str) -> str:
    """The ActiveState of the unit (active, inactive, failed...)."""
    result = _systemctl("is-active", unit, check=False)
    state = (result.stdout or "").strip()
    return state if state else "unknown"


def status(unit: str) -> str:
    result = _systemctl("status", "--no-pager", unit, check=False)
    return f"{result.stdout or ''}{result.stderr or ''}"

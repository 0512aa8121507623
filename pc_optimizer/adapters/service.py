"""
ScServiceController - Manages Windows services through ``sc.exe``.

Provides:
- Run status (sc query)
- Startup mode (sc qc / sc config start=)
- Stop with bounded wait (sc stop + polling)

All calls go through a CommandRunner so they share its timeout and
process-group cleanup.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from .base import CommandRunner, CommandResult, ServiceController, ServiceStatus, StartupMode
from ..protocol.errors import (
    AdapterError,
    AdapterTimeoutError,
    CommandCancelledError,
    PermissionDeniedError,
    ServiceNotFoundError,
)

logger = logging.getLogger(__name__)

# Win32 error codes reported by sc.exe as its exit status
ERROR_ACCESS_DENIED = 5
ERROR_SERVICE_NOT_ACTIVE = 1062
ERROR_SERVICE_DOES_NOT_EXIST = 1060

_STATE_RE = re.compile(r"STATE\s*:\s*(\d+)\s+(\w+)")
_START_TYPE_RE = re.compile(r"START_TYPE\s*:\s*(\d+)\s+(\w+)")
_FAILED_RE = re.compile(r"FAILED\s+(\d+)")

_START_TYPES = {
    "2": StartupMode.AUTOMATIC,
    "3": StartupMode.MANUAL,
    "4": StartupMode.DISABLED,
}

_SC_START_ARG = {
    StartupMode.AUTOMATIC: "auto",
    StartupMode.MANUAL: "demand",
    StartupMode.DISABLED: "disabled",
}


@dataclass
class ServiceConfig:
    """Configuration for the sc.exe service controller."""
    executable: str = "sc.exe"
    query_timeout: float = 10.0   # seconds
    config_timeout: float = 15.0  # seconds
    probe_interval: float = 0.5   # seconds between status polls while stopping


class ScServiceController(ServiceController):
    """
    Controls Windows services.

    Privilege failures surface as PermissionDeniedError, unknown services
    as ServiceNotFoundError; neither is absorbed here.
    """

    def __init__(self, runner: CommandRunner, config: Optional[ServiceConfig] = None):
        self.runner = runner
        self.config = config or ServiceConfig()

    def _sc(
        self,
        args: List[str],
        timeout: float,
        name: str,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        """Run sc.exe and translate well-known error codes."""
        result = self.runner.run(self.config.executable, args, timeout, cancel=cancel)
        code = self._error_code(result)
        if code == ERROR_ACCESS_DENIED:
            raise PermissionDeniedError(
                f"Access denied: sc {' '.join(args)} (run as administrator)", target=name
            )
        if code == ERROR_SERVICE_DOES_NOT_EXIST:
            raise ServiceNotFoundError(f"Service not installed: {name}", target=name)
        return result

    @staticmethod
    def _error_code(result: CommandResult) -> int:
        if result.exit_code != 0:
            return result.exit_code
        match = _FAILED_RE.search(result.stdout)
        return int(match.group(1)) if match else 0

    def get_status(self, name: str, cancel: Optional[threading.Event] = None) -> ServiceStatus:
        result = self._sc(["query", name], self.config.query_timeout, name, cancel)
        if not result.ok:
            raise AdapterError(f"sc query {name} failed ({result.exit_code})", target=name)

        match = _STATE_RE.search(result.stdout)
        if not match:
            return ServiceStatus.UNKNOWN
        state = match.group(2).upper()
        if state == "RUNNING":
            return ServiceStatus.RUNNING
        if state == "STOPPED":
            return ServiceStatus.STOPPED
        return ServiceStatus.UNKNOWN

    def get_startup_mode(self, name: str, cancel: Optional[threading.Event] = None) -> StartupMode:
        result = self._sc(["qc", name], self.config.query_timeout, name, cancel)
        if not result.ok:
            raise AdapterError(f"sc qc {name} failed ({result.exit_code})", target=name)

        match = _START_TYPE_RE.search(result.stdout)
        if not match or match.group(1) not in _START_TYPES:
            raise AdapterError(f"Unrecognised start type for {name}", target=name)
        return _START_TYPES[match.group(1)]

    def set_startup_mode(
        self, name: str, mode: StartupMode, cancel: Optional[threading.Event] = None
    ) -> None:
        # sc.exe requires the space after "start="
        args = ["config", name, "start=", _SC_START_ARG[mode]]
        result = self._sc(args, self.config.config_timeout, name, cancel)
        if not result.ok:
            raise AdapterError(
                f"sc config {name} start= {_SC_START_ARG[mode]} failed ({result.exit_code})",
                target=name,
            )
        logger.debug("Service %s startup mode -> %s", name, mode.value)

    def stop(self, name: str, timeout: float, cancel: Optional[threading.Event] = None) -> None:
        deadline = time.monotonic() + timeout
        result = self._sc(["stop", name], min(timeout, self.config.query_timeout), name, cancel)
        if not result.ok and result.exit_code != ERROR_SERVICE_NOT_ACTIVE:
            raise AdapterError(f"sc stop {name} failed ({result.exit_code})", target=name)

        while time.monotonic() < deadline:
            if self.get_status(name, cancel) == ServiceStatus.STOPPED:
                logger.debug("Service %s stopped", name)
                return
            waiter = cancel or threading.Event()
            if waiter.wait(self.config.probe_interval):
                raise CommandCancelledError(f"Cancelled while stopping {name}", target=name)

        raise AdapterTimeoutError(f"Service {name} did not stop within {timeout:.0f}s", target=name)

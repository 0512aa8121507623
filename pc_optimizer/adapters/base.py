"""
Adapter interfaces consumed by the catalog, snapshot manager and probe.

Three capabilities are needed to mutate and inspect a host:
- ConfigStore: typed key/value configuration (the registry on Windows)
- ServiceController: service startup mode and run status
- CommandRunner: bounded invocation of host-tuning utilities

Concrete backends live in registry.py, service.py, command.py and
simulated.py. Failures are raised as AdapterError subclasses.
"""

import base64
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union


# Configuration values: REG_DWORD/QWORD, REG_SZ, REG_BINARY
ConfigValue = Union[int, str, bytes]


def encode_value(value: Optional[ConfigValue]) -> Optional[Dict[str, Any]]:
    """Encode a config value as a JSON-safe ``{"type", "value"}`` dict."""
    if value is None:
        return None
    if isinstance(value, bytes):
        return {"type": "bytes", "value": base64.b64encode(value).decode("ascii")}
    if isinstance(value, bool):
        return {"type": "int", "value": int(value)}
    if isinstance(value, int):
        return {"type": "int", "value": value}
    if isinstance(value, str):
        return {"type": "str", "value": value}
    raise TypeError(f"Unsupported config value type: {type(value).__name__}")


def decode_value(data: Optional[Dict[str, Any]]) -> Optional[ConfigValue]:
    """Inverse of encode_value."""
    if data is None:
        return None
    kind = data.get("type")
    if kind == "bytes":
        return base64.b64decode(data["value"])
    if kind == "int":
        return int(data["value"])
    if kind == "str":
        return str(data["value"])
    raise ValueError(f"Unknown config value type: {kind!r}")


class StartupMode(str, Enum):
    """Boot-time startup mode of a service."""
    AUTOMATIC = "Automatic"
    MANUAL = "Manual"
    DISABLED = "Disabled"


class ServiceStatus(str, Enum):
    """Transient run status of a service."""
    RUNNING = "Running"
    STOPPED = "Stopped"
    UNKNOWN = "Unknown"


@dataclass
class CommandResult:
    """Outcome of a completed external command."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ConfigStore(ABC):
    """Typed get/set over a persistent key/value configuration backend."""

    @abstractmethod
    def get(self, path: str, name: str) -> Optional[ConfigValue]:
        """Return the value, or None if the key or value is absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, path: str, name: str, value: ConfigValue) -> None:
        """Create or overwrite a value, creating the key path if needed."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, path: str, name: str) -> None:
        """Remove a value. Deleting an absent value is not an error."""
        raise NotImplementedError


class ServiceController(ABC):
    """
    Query and change OS service startup mode and status.

    Every call accepts the batch ``cancel`` event; backends that shell
    out must abandon the call with CommandCancelledError once it is set.
    """

    @abstractmethod
    def get_status(self, name: str, cancel: Optional[threading.Event] = None) -> ServiceStatus:
        raise NotImplementedError

    @abstractmethod
    def get_startup_mode(self, name: str, cancel: Optional[threading.Event] = None) -> StartupMode:
        raise NotImplementedError

    @abstractmethod
    def set_startup_mode(
        self, name: str, mode: StartupMode, cancel: Optional[threading.Event] = None
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self, name: str, timeout: float, cancel: Optional[threading.Event] = None) -> None:
        """Stop a service and wait up to ``timeout`` seconds for it."""
        raise NotImplementedError


class CommandRunner(ABC):
    """Run short-lived external utilities with an enforced timeout."""

    @abstractmethod
    def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        """
        Run ``executable`` with ``args`` and wait at most ``timeout`` seconds.

        Raises:
            CommandTimeoutError: the deadline passed; the process was killed
            CommandCancelledError: ``cancel`` was set while running
            NotFoundError: the executable does not exist
        """
        raise NotImplementedError


@dataclass
class HostAdapters:
    """The adapter set handed to every MutationUnit.apply call."""
    config_store: ConfigStore
    services: ServiceController
    commands: CommandRunner
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def run_command(self, executable: str, args: Sequence[str], timeout: float) -> CommandResult:
        """Run a command wired to this batch's cancellation event."""
        return self.commands.run(executable, args, timeout, cancel=self.cancel_event)

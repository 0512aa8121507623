"""
Simulated backends - file-backed stand-ins for the registry, the service
manager and external utilities.

Used when the host is not Windows (or ``[backend] mode = "simulated"``),
so that batches, snapshots and restores can be exercised end to end
without touching real system state. State persists as JSON under the
data directory.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .base import (
    CommandResult,
    CommandRunner,
    ConfigStore,
    ConfigValue,
    ServiceController,
    ServiceStatus,
    StartupMode,
    decode_value,
    encode_value,
)
from ..protocol.errors import ServiceNotFoundError

logger = logging.getLogger(__name__)


def _key(path: str, name: str) -> Tuple[str, str]:
    # Registry lookups are case-insensitive
    return path.lower(), name.lower()


class SimulatedConfigStore(ConfigStore):
    """In-memory ConfigStore, optionally persisted to a JSON file."""

    def __init__(
        self,
        state_file: Optional[Path] = None,
        initial: Optional[Dict[Tuple[str, str], ConfigValue]] = None,
    ):
        self.state_file = state_file
        self._lock = threading.Lock()
        self._values: Dict[Tuple[str, str], Tuple[str, str, ConfigValue]] = {}

        if state_file is not None and state_file.exists():
            self._load()
        for (path, name), value in (initial or {}).items():
            self._values[_key(path, name)] = (path, name, value)

    def get(self, path: str, name: str) -> Optional[ConfigValue]:
        with self._lock:
            entry = self._values.get(_key(path, name))
        return entry[2] if entry else None

    def set(self, path: str, name: str, value: ConfigValue) -> None:
        with self._lock:
            self._values[_key(path, name)] = (path, name, value)
            self._save()

    def delete(self, path: str, name: str) -> None:
        with self._lock:
            if self._values.pop(_key(path, name), None) is not None:
                self._save()

    def items(self) -> List[Tuple[str, str, ConfigValue]]:
        """All stored values as (path, name, value), for inspection."""
        with self._lock:
            return list(self._values.values())

    def _load(self):
        with open(self.state_file) as f:
            data = json.load(f)
        for entry in data.get("values", []):
            value = decode_value(entry["value"])
            self._values[_key(entry["path"], entry["name"])] = (entry["path"], entry["name"], value)

    def _save(self):
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "values": [
                {"path": path, "name": name, "value": encode_value(value)}
                for path, name, value in self._values.values()
            ]
        }
        with open(self.state_file, "w") as f:
            json.dump(data, f, indent=2)


class SimulatedServiceController(ServiceController):
    """
    Service table kept in memory, optionally persisted to a JSON file.

    Services not present in the table behave like services that are not
    installed.
    """

    def __init__(
        self,
        state_file: Optional[Path] = None,
        services: Optional[Dict[str, Tuple[StartupMode, ServiceStatus]]] = None,
    ):
        self.state_file = state_file
        self._lock = threading.Lock()
        self._services: Dict[str, Dict[str, str]] = {}

        if state_file is not None and state_file.exists():
            self._load()
        for name, (mode, status) in (services or {}).items():
            self._services[name.lower()] = {"name": name, "startup": mode.value, "status": status.value}

    def _entry(self, name: str) -> Dict[str, str]:
        entry = self._services.get(name.lower())
        if entry is None:
            raise ServiceNotFoundError(f"Service not installed: {name}", target=name)
        return entry

    def get_status(self, name: str, cancel: Optional[threading.Event] = None) -> ServiceStatus:
        with self._lock:
            return ServiceStatus(self._entry(name)["status"])

    def get_startup_mode(self, name: str, cancel: Optional[threading.Event] = None) -> StartupMode:
        with self._lock:
            return StartupMode(self._entry(name)["startup"])

    def set_startup_mode(
        self, name: str, mode: StartupMode, cancel: Optional[threading.Event] = None
    ) -> None:
        with self._lock:
            self._entry(name)["startup"] = mode.value
            self._save()

    def stop(self, name: str, timeout: float, cancel: Optional[threading.Event] = None) -> None:
        with self._lock:
            self._entry(name)["status"] = ServiceStatus.STOPPED.value
            self._save()

    def _load(self):
        with open(self.state_file) as f:
            data = json.load(f)
        for entry in data.get("services", []):
            self._services[entry["name"].lower()] = dict(entry)

    def _save(self):
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w") as f:
            json.dump({"services": list(self._services.values())}, f, indent=2)


class DryRunCommandRunner(CommandRunner):
    """Records invocations instead of spawning processes; always exits 0."""

    def __init__(self):
        self._lock = threading.Lock()
        self.invocations: List[Tuple[str, Tuple[str, ...]]] = []

    def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        with self._lock:
            self.invocations.append((executable, tuple(args)))
        logger.info("dry run: %s %s", executable, " ".join(args))
        return CommandResult(exit_code=0)


# Stock startup modes of a fresh Windows install, used to seed an empty
# simulated service table
DEFAULT_SERVICES: Dict[str, Tuple[StartupMode, ServiceStatus]] = {
    "SysMain": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    "WSearch": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    "Spooler": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    "Fax": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "TabletInputService": (StartupMode.MANUAL, ServiceStatus.RUNNING),
    "WbioSrvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "WMPNetworkSvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "XblAuthManager": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "XblGameSave": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "XboxNetApiSvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "XboxGipSvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "MapsBroker": (StartupMode.AUTOMATIC, ServiceStatus.STOPPED),
    "lfsvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "DiagTrack": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    "dmwappushservice": (StartupMode.MANUAL, ServiceStatus.STOPPED),
    "TrkWks": (StartupMode.AUTOMATIC, ServiceStatus.RUNNING),
    "WerSvc": (StartupMode.MANUAL, ServiceStatus.STOPPED),
}

"""
Mutation unit model.

A MutationUnit is a frozen, ordered list of steps for one category plus
the indicator the verification probe reads back. Steps are plain data;
all host access goes through the HostAdapters passed to ``apply``.
"""

import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union

from ..adapters.base import ConfigValue, HostAdapters, ServiceStatus, StartupMode
from ..protocol.category import Category
from ..protocol.errors import AdapterError, CommandFailedError, ServiceNotFoundError
from ..protocol.result import UnitResult

logger = logging.getLogger(__name__)

# Upper bounds for adapter calls that carry no explicit timeout
CONFIG_CALL_BUDGET = 2.0      # one registry read/write
SERVICE_CALL_BUDGET = 15.0    # one sc.exe query/config call


class KeyRef(NamedTuple):
    """A configuration value address."""
    path: str
    name: str

    def __str__(self) -> str:
        return f"{self.path}\\{self.name}"


# =========================================================================
# Steps
# =========================================================================

@dataclass(frozen=True)
class SetValue:
    """Write one configuration value."""
    path: str
    name: str
    value: ConfigValue

    def describe(self) -> str:
        return f"set {self.path}\\{self.name} = {self.value!r}"

    def keys(self) -> Tuple[KeyRef, ...]:
        return (KeyRef(self.path, self.name),)

    def services(self) -> Tuple[str, ...]:
        return ()

    def time_budget(self) -> float:
        return CONFIG_CALL_BUDGET

    def run(self, adapters: HostAdapters) -> Optional[str]:
        adapters.config_store.set(self.path, self.name, self.value)
        return None


@dataclass(frozen=True)
class DisableService:
    """Stop a service if it is running, then set its startup mode to Disabled."""
    name: str
    stop_timeout: float = 30.0

    def describe(self) -> str:
        return f"disable service {self.name}"

    def keys(self) -> Tuple[KeyRef, ...]:
        return ()

    def services(self) -> Tuple[str, ...]:
        return (self.name,)

    def time_budget(self) -> float:
        return self.stop_timeout + 3 * SERVICE_CALL_BUDGET

    def run(self, adapters: HostAdapters) -> Optional[str]:
        cancel = adapters.cancel_event
        try:
            if adapters.services.get_status(self.name, cancel) == ServiceStatus.RUNNING:
                adapters.services.stop(self.name, self.stop_timeout, cancel)
            adapters.services.set_startup_mode(self.name, StartupMode.DISABLED, cancel)
        except ServiceNotFoundError:
            logger.debug("Service %s not installed, skipping", self.name)
            return f"{self.name} not installed"
        return None


@dataclass(frozen=True)
class RunCommand:
    """Run an external utility; a non-zero exit fails the step."""
    executable: str
    args: Tuple[str, ...]
    timeout: float = 30.0

    def describe(self) -> str:
        return f"run {self.executable} {' '.join(self.args)}"

    def keys(self) -> Tuple[KeyRef, ...]:
        return ()

    def services(self) -> Tuple[str, ...]:
        return ()

    def time_budget(self) -> float:
        return self.timeout

    def run(self, adapters: HostAdapters) -> Optional[str]:
        result = adapters.run_command(self.executable, self.args, self.timeout)
        if not result.ok:
            output = (result.stderr or result.stdout).strip()
            raise CommandFailedError(
                f"{self.executable} exited with {result.exit_code}"
                + (f": {output.splitlines()[-1]}" if output else ""),
                target=self.executable,
                exit_code=result.exit_code,
                output=output,
            )
        return None


Step = Union[SetValue, DisableService, RunCommand]


# =========================================================================
# Indicators
# =========================================================================

@dataclass(frozen=True)
class KeyIndicator:
    """Primary indicator stored in the config store."""
    path: str
    name: str
    expected: ConfigValue

    def expected_values(self) -> Tuple[ConfigValue, ...]:
        return (self.expected,)

    def read(self, adapters: HostAdapters) -> Optional[ConfigValue]:
        return adapters.config_store.get(self.path, self.name)


@dataclass(frozen=True)
class ServiceIndicator:
    """Primary indicator is a service's startup mode."""
    name: str
    expected: StartupMode = StartupMode.DISABLED

    def expected_values(self) -> Tuple[str, ...]:
        return (self.expected.value,)

    def read(self, adapters: HostAdapters) -> Optional[str]:
        return adapters.services.get_startup_mode(self.name, adapters.cancel_event).value


_GUID_RE = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})", re.IGNORECASE
)


def parse_scheme_guid(output: str) -> Optional[str]:
    """
    Extract the active power scheme GUID from ``powercfg /getactivescheme``.

    Returns None for output that does not contain a GUID.
    """
    match = _GUID_RE.search(output or "")
    return match.group(1).lower() if match else None


@dataclass(frozen=True)
class PowerSchemeIndicator:
    """Primary indicator is the active power scheme, read via powercfg."""
    expected: Tuple[str, ...]
    timeout: float = 10.0

    def expected_values(self) -> Tuple[str, ...]:
        return self.expected

    def read(self, adapters: HostAdapters) -> Optional[str]:
        result = adapters.run_command("powercfg", ("/getactivescheme",), self.timeout)
        if not result.ok:
            return None
        return parse_scheme_guid(result.stdout)


Indicator = Union[KeyIndicator, ServiceIndicator, PowerSchemeIndicator]


# =========================================================================
# Mutation unit
# =========================================================================

@dataclass(frozen=True)
class MutationUnit:
    """
    One independently applicable bundle of configuration changes.

    ``apply`` runs the steps in order and stops at the first adapter
    failure. Writes made before the failure are kept; rollback is the
    snapshot's job, not the unit's.
    """
    id: str
    category: Category
    description: str
    steps: Tuple[Step, ...]
    indicator: Indicator

    def touched_keys(self) -> List[KeyRef]:
        return list(OrderedDict.fromkeys(k for step in self.steps for k in step.keys()))

    def touched_services(self) -> List[str]:
        return list(OrderedDict.fromkeys(s for step in self.steps for s in step.services()))

    def timeout_budget(self) -> float:
        """Longest this unit can take if every adapter honours its timeout."""
        return sum(step.time_budget() for step in self.steps)

    def apply(self, adapters: HostAdapters) -> UnitResult:
        started = time.monotonic()
        total = len(self.steps)
        notes: List[str] = []

        for index, step in enumerate(self.steps, 1):
            if adapters.cancelled:
                return self._result(False, f"cancelled before step {index}/{total} ({step.describe()})", started)
            try:
                note = step.run(adapters)
            except AdapterError as e:
                logger.warning("%s: step %d/%d failed: %s", self.id, index, total, e)
                return self._result(False, f"step {index}/{total} ({step.describe()}) failed: {e}", started)
            if note:
                notes.append(note)

        detail = f"{total} steps applied"
        if notes:
            detail += f" ({'; '.join(notes)})"
        return self._result(True, detail, started)

    def _result(self, success: bool, detail: str, started: float) -> UnitResult:
        return UnitResult(
            success=success,
            detail=detail,
            unit_id=self.id,
            category=self.category,
            duration_seconds=time.monotonic() - started,
        )


class MutationCatalog:
    """The fixed set of mutation units, one per category."""

    def __init__(self, units: Iterable[MutationUnit]):
        self._units: Dict[Category, MutationUnit] = {}
        for unit in units:
            if unit.category in self._units:
                raise ValueError(f"Duplicate unit for category {unit.category.value}")
            self._units[unit.category] = unit

        for key, categories in self.shared_keys().items():
            logger.warning(
                "Key %s is touched by several units (%s); concurrent writes are unordered",
                key, ", ".join(c.value for c in categories),
            )

    def __iter__(self) -> Iterator[MutationUnit]:
        return (self._units[c] for c in Category if c in self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, category: Category) -> bool:
        return category in self._units

    def categories(self) -> List[Category]:
        return [unit.category for unit in self]

    def get(self, category: Category) -> MutationUnit:
        try:
            return self._units[category]
        except KeyError:
            raise ValueError(f"No mutation unit for category {category.value}") from None

    def select(self, categories: Iterable[Category]) -> List[MutationUnit]:
        """Units for the given categories, deduplicated, in catalog order."""
        wanted = set(categories)
        for category in wanted:
            self.get(category)
        return [unit for unit in self if unit.category in wanted]

    def shared_keys(self) -> Dict[KeyRef, List[Category]]:
        """Keys touched by more than one unit."""
        owners: Dict[KeyRef, List[Category]] = {}
        for unit in self:
            for key in unit.touched_keys():
                owners.setdefault(KeyRef(key.path.lower(), key.name.lower()), []).append(unit.category)
        return {key: cats for key, cats in owners.items() if len(cats) > 1}

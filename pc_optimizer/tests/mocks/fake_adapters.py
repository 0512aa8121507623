"""
Fake host adapters for testing.

Builds on the simulated backends and adds failure injection, a stateful
powercfg and commands that hang, so batches can be driven through their
failure paths without a Windows host.
"""

import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pc_optimizer.adapters.base import CommandResult, CommandRunner, ConfigValue
from pc_optimizer.adapters.simulated import SimulatedConfigStore
from pc_optimizer.protocol.errors import (
    CommandCancelledError,
    CommandTimeoutError,
    PermissionDeniedError,
)

BALANCED_SCHEME = "381b4222-f694-41f0-9685-ff5bb260df2e"
HIGH_PERFORMANCE_SCHEME = "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c"


class FaultyConfigStore(SimulatedConfigStore):
    """SimulatedConfigStore that denies access below selected paths.

    Paths are matched case-insensitively by prefix.
    """

    def __init__(
        self,
        deny_writes: Iterable[str] = (),
        deny_reads: Iterable[str] = (),
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.deny_writes = [p.lower() for p in deny_writes]
        self.deny_reads = [p.lower() for p in deny_reads]

    @staticmethod
    def _denied(path: str, prefixes: List[str]) -> bool:
        return any(path.lower().startswith(prefix) for prefix in prefixes)

    def get(self, path: str, name: str) -> Optional[ConfigValue]:
        if self._denied(path, self.deny_reads):
            raise PermissionDeniedError(f"Access denied: {path}", target=path)
        return super().get(path, name)

    def set(self, path: str, name: str, value: ConfigValue) -> None:
        if self._denied(path, self.deny_writes):
            raise PermissionDeniedError(f"Access denied: {path}", target=path)
        super().set(path, name, value)

    def delete(self, path: str, name: str) -> None:
        if self._denied(path, self.deny_writes):
            raise PermissionDeniedError(f"Access denied: {path}", target=path)
        super().delete(path, name)


class FakeCommandRunner(CommandRunner):
    """Scripted CommandRunner.

    - powercfg keeps an active scheme: ``/setactive <guid>`` changes it,
      ``/getactivescheme`` reports it
    - executables in ``hang`` block until their timeout (or the cancel
      event) and then raise like the real runner
    - executables in ``ignore_timeout`` block until ``release()`` is
      called, simulating a call that cannot be interrupted
    - ``exit_codes`` forces a non-zero exit for an executable
    """

    def __init__(
        self,
        active_scheme: str = BALANCED_SCHEME,
        hang: Iterable[str] = (),
        ignore_timeout: Iterable[str] = (),
        exit_codes: Optional[Dict[str, int]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.active_scheme = active_scheme
        self.hang = {h.lower() for h in hang}
        self.ignore_timeout = {h.lower() for h in ignore_timeout}
        self.exit_codes = {k.lower(): v for k, v in (exit_codes or {}).items()}
        self.delays = {k.lower(): v for k, v in (delays or {}).items()}
        self.invocations: List[Tuple[str, Tuple[str, ...]]] = []
        self._released = threading.Event()
        self._lock = threading.Lock()

    def release(self):
        """Let calls blocked by ``ignore_timeout`` return."""
        self._released.set()

    def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        exe = executable.lower()
        args = tuple(args)
        with self._lock:
            self.invocations.append((executable, args))

        if exe in self.ignore_timeout:
            self._released.wait()
            return CommandResult(exit_code=0)

        if exe in self.hang:
            waiter = cancel or threading.Event()
            if waiter.wait(timeout):
                raise CommandCancelledError(f"Cancelled: {executable}", target=executable)
            raise CommandTimeoutError(
                f"Timed out after {timeout}s: {executable}", target=executable, timeout=timeout
            )

        if exe in self.delays:
            time.sleep(self.delays[exe])

        if exe in self.exit_codes:
            return CommandResult(exit_code=self.exit_codes[exe], stderr=f"{executable} failed")

        if exe == "powercfg":
            return self._powercfg(args)
        return CommandResult(exit_code=0)

    def _powercfg(self, args: Tuple[str, ...]) -> CommandResult:
        if args and args[0].lower() == "/getactivescheme":
            return CommandResult(
                exit_code=0,
                stdout=f"Power Scheme GUID: {self.active_scheme}  (Current)\n",
            )
        if len(args) == 2 and args[0].lower() == "/setactive" and args[1] != "SCHEME_CURRENT":
            with self._lock:
                self.active_scheme = args[1].lower()
        return CommandResult(exit_code=0)

    def calls_to(self, executable: str) -> List[Tuple[str, ...]]:
        return [a for e, a in self.invocations if e.lower() == executable.lower()]


class CountingStep:
    """Step that records how often it ran; optionally raises."""

    def __init__(self, on_run: Optional[Callable] = None):
        self.runs = 0
        self.on_run = on_run

    def describe(self) -> str:
        return "counting step"

    def keys(self):
        return ()

    def services(self):
        return ()

    def time_budget(self) -> float:
        return 1.0

    def run(self, adapters) -> Optional[str]:
        self.runs += 1
        if self.on_run is not None:
            self.on_run(adapters)
        return None

"""
SubprocessCommandRunner - bounded invocation of host-tuning utilities.

Each command is spawned in its own process group (POSIX session or
Windows process group) so that a timeout or a batch cancellation can kill
the utility together with anything it spawned.
"""

import logging
import os
import signal
import subprocess
import threading
import time
from typing import List, Optional, Sequence

from .base import CommandRunner, CommandResult
from ..protocol.errors import (
    AdapterError,
    CommandCancelledError,
    CommandTimeoutError,
    NotFoundError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


class SubprocessCommandRunner(CommandRunner):
    """
    Runs commands with ``subprocess.Popen`` and enforces the timeout itself.

    The wait loop polls in short slices so that a set cancel event is
    noticed promptly. On expiry the process group is killed and the child
    is reaped; if the child cannot be reaped within ``kill_grace`` seconds
    a warning is logged and the call still reports a timeout.
    """

    def __init__(self, kill_grace: float = 5.0, poll_interval: float = 0.1):
        self.kill_grace = kill_grace
        self.poll_interval = poll_interval

    def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> CommandResult:
        cmd = [executable, *args]
        display = " ".join(cmd)
        started = time.monotonic()
        deadline = started + timeout

        try:
            proc = subprocess.Popen(cmd, **self._popen_kwargs())
        except FileNotFoundError:
            raise NotFoundError(f"Executable not found: {executable}", target=executable)
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot execute {executable}: {e}", target=executable)
        except OSError as e:
            raise AdapterError(f"Failed to start {display}: {e}", target=executable)

        logger.debug("Started pid %s: %s (timeout %.0fs)", proc.pid, display, timeout)

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    self._terminate(proc, display)
                    raise CommandCancelledError(f"Cancelled: {display}", target=executable)
                if time.monotonic() >= deadline:
                    self._terminate(proc, display)
                    raise CommandTimeoutError(
                        f"Timed out after {timeout:.0f}s: {display}",
                        target=executable,
                        timeout=timeout,
                    )

        duration = time.monotonic() - started
        logger.debug("pid %s exited %s after %.2fs", proc.pid, proc.returncode, duration)
        return CommandResult(
            exit_code=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration_seconds=duration,
        )

    def _popen_kwargs(self) -> dict:
        kwargs = {
            "stdout": subprocess.PIPE,
            "stderr": subprocess.PIPE,
            "stdin": subprocess.DEVNULL,
            "text": True,
            "errors": "replace",
        }
        if IS_WINDOWS:
            kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
            )
        else:
            kwargs["start_new_session"] = True
        return kwargs

    def _terminate(self, proc: subprocess.Popen, display: str):
        """Kill the process group and reap the child."""
        try:
            if IS_WINDOWS:
                subprocess.run(
                    self._taskkill_command(proc.pid),
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self.kill_grace,
                )
            else:
                os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug("Group kill for pid %s failed (%s), killing process only", proc.pid, e)
            try:
                proc.kill()
            except OSError as kill_error:
                logger.debug("Kill of pid %s failed: %s", proc.pid, kill_error)

        try:
            proc.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            logger.warning(
                "pid %s did not exit within %.0fs of being killed, it may still be running: %s",
                proc.pid, self.kill_grace, display,
            )

    @staticmethod
    def _taskkill_command(pid: int) -> List[str]:
        return ["taskkill", "/F", "/T", "/PID", str(pid)]

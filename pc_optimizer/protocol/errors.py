"""
Error taxonomy for the optimization core.

AdapterError:  a ConfigStore / ServiceController / CommandRunner call failed.
               Caught inside the owning MutationUnit, never unwinds past it.
SnapshotError: snapshot capture, load or restore could not proceed.
               On capture this degrades the batch to "no rollback available".

Verification mismatches and partial batch failures are reported through
result records (see protocol.result), not raised.
"""

from typing import Optional


class AdapterError(Exception):
    """A call into a host adapter failed."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class PermissionDeniedError(AdapterError):
    """The operation requires a privilege the process does not hold."""
    pass


class NotFoundError(AdapterError):
    """The key, service or executable does not exist."""
    pass


class ServiceNotFoundError(NotFoundError):
    """The named service is not installed on this host."""
    pass


class AdapterTimeoutError(AdapterError):
    """The call did not complete within its time bound."""
    pass


class CommandTimeoutError(AdapterTimeoutError):
    """An external command exceeded its timeout and was terminated."""

    def __init__(self, message: str, target: Optional[str] = None, timeout: float = 0.0):
        super().__init__(message, target)
        self.timeout = timeout


class CommandCancelledError(AdapterError):
    """An external command was terminated because the batch was cancelled."""
    pass


class CommandFailedError(AdapterError):
    """An external command exited with a non-zero status."""

    def __init__(self, message: str, target: Optional[str] = None, exit_code: int = 0, output: str = ""):
        super().__init__(message, target)
        self.exit_code = exit_code
        self.output = output


class SnapshotError(Exception):
    """Snapshot capture, persistence or restore failed."""
    pass


class SnapshotNotFoundError(SnapshotError):
    """No snapshot with the requested id (or no snapshot at all)."""
    pass


class EnvironmentMismatchError(SnapshotError):
    """The snapshot was captured on a different host environment."""

    def __init__(self, snapshot_id: str, snapshot_tag: str, current_tag: str):
        super().__init__(
            f"Snapshot {snapshot_id} belongs to environment {snapshot_tag}, "
            f"current environment is {current_tag}"
        )
        self.snapshot_id = snapshot_id
        self.snapshot_tag = snapshot_tag
        self.current_tag = current_tag

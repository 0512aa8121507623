"""
Protocol definitions for pc_optimizer.

Records exchanged between the core and its callers:
- Category: closed set of optimization categories
- UnitResult / OrchestrationResult: batch outcomes
- VerificationReport / VerificationMismatch: read-back comparison
- AdapterError / SnapshotError hierarchies: error taxonomy
"""

from .category import Category
from .result import (
    BatchOutcome,
    OrchestrationResult,
    UnitResult,
    VerificationMismatch,
    VerificationReport,
)
from .errors import (
    AdapterError,
    AdapterTimeoutError,
    CommandCancelledError,
    CommandFailedError,
    CommandTimeoutError,
    EnvironmentMismatchError,
    NotFoundError,
    PermissionDeniedError,
    ServiceNotFoundError,
    SnapshotError,
    SnapshotNotFoundError,
)

__all__ = [
    # Category
    "Category",
    # Result
    "BatchOutcome",
    "OrchestrationResult",
    "UnitResult",
    "VerificationMismatch",
    "VerificationReport",
    # Errors
    "AdapterError",
    "AdapterTimeoutError",
    "CommandCancelledError",
    "CommandFailedError",
    "CommandTimeoutError",
    "EnvironmentMismatchError",
    "NotFoundError",
    "PermissionDeniedError",
    "ServiceNotFoundError",
    "SnapshotError",
    "SnapshotNotFoundError",
]

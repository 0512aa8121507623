"""
Result records - what the core hands back to its callers.

- UnitResult: outcome of one MutationUnit.apply
- OrchestrationResult: aggregated outcome of a batch
- VerificationReport: read-back comparison against expected values

Callers distinguish "succeeded", "succeeded with warnings" and "failed"
from these records alone; the core never raises for a failed batch.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional
import json

from .category import Category


class BatchOutcome(str, Enum):
    """Caller-facing summary of a batch."""
    SUCCEEDED = "SUCCEEDED"
    SUCCEEDED_WITH_WARNINGS = "SUCCEEDED_WITH_WARNINGS"  # no rollback, or verification mismatch
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    FAILED = "FAILED"


@dataclass
class UnitResult:
    """Outcome of applying one mutation unit."""
    success: bool
    detail: str
    unit_id: str = ""
    category: Optional[Category] = None
    duration_seconds: float = 0.0

    @classmethod
    def ok(cls, detail: str, **kwargs) -> "UnitResult":
        return cls(success=True, detail=detail, **kwargs)

    @classmethod
    def failure(cls, detail: str, **kwargs) -> "UnitResult":
        return cls(success=False, detail=detail, **kwargs)


@dataclass
class VerificationMismatch:
    """One category whose live state differs from the expected value."""
    category: Category
    expected: str
    actual: str   # "unknown" when the state could not be read


@dataclass
class VerificationReport:
    """Read-back comparison of live state against expected values."""
    per_category_match: Dict[Category, bool] = field(default_factory=dict)
    mismatches: List[VerificationMismatch] = field(default_factory=list)

    @property
    def overall_match(self) -> bool:
        return bool(self.per_category_match) and all(self.per_category_match.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "per_category_match": {c.value: m for c, m in self.per_category_match.items()},
            "overall_match": self.overall_match,
            "mismatches": [
                {"category": m.category.value, "expected": m.expected, "actual": m.actual}
                for m in self.mismatches
            ],
        }


@dataclass
class OrchestrationResult:
    """
    Aggregated outcome of a batch.

    ``snapshot_id`` is None when capture failed; the batch still ran
    (fail-open) and ``snapshot_error`` says why.
    """
    requested: int
    applied: int
    failed: int
    snapshot_id: Optional[str] = None
    per_unit: List[UnitResult] = field(default_factory=list)
    snapshot_error: Optional[str] = None
    verification: Optional[VerificationReport] = None
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    def __post_init__(self):
        if self.applied + self.failed != self.requested:
            raise ValueError(
                f"applied ({self.applied}) + failed ({self.failed}) != requested ({self.requested})"
            )

    @property
    def overall_success(self) -> bool:
        return self.failed == 0

    @property
    def rollback_available(self) -> bool:
        return self.snapshot_id is not None

    @property
    def outcome(self) -> BatchOutcome:
        if self.applied == 0:
            return BatchOutcome.FAILED
        if self.failed > 0:
            return BatchOutcome.PARTIAL_FAILURE
        if not self.rollback_available:
            return BatchOutcome.SUCCEEDED_WITH_WARNINGS
        if self.verification is not None and not self.verification.overall_match:
            return BatchOutcome.SUCCEEDED_WITH_WARNINGS
        return BatchOutcome.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        per_unit = []
        for r in self.per_unit:
            entry = asdict(r)
            entry["category"] = r.category.value if r.category else None
            per_unit.append(entry)
        return {
            "requested": self.requested,
            "applied": self.applied,
            "failed": self.failed,
            "overall_success": self.overall_success,
            "outcome": self.outcome.value,
            "snapshot_id": self.snapshot_id,
            "snapshot_error": self.snapshot_error,
            "rollback_available": self.rollback_available,
            "cancelled": self.cancelled,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "per_unit": per_unit,
            "verification": self.verification.to_dict() if self.verification else None,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

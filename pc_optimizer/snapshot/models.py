"""
Data models for the snapshot/restore system.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from pathlib import Path
import json
import os
import uuid

from ..adapters.base import ConfigValue, StartupMode, decode_value, encode_value
from ..protocol.errors import SnapshotError


SCHEMA_VERSION = 1

# schema_version -> function upgrading a record to schema_version + 1
MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {}


@dataclass(frozen=True)
class CapturedKey:
    """A config value as it was before the batch; None when absent."""
    path: str
    name: str
    previous: Optional[ConfigValue] = None

    @property
    def label(self) -> str:
        return f"{self.path}\\{self.name}"


@dataclass(frozen=True)
class CapturedService:
    """A service's startup mode before the batch."""
    name: str
    previous_startup_mode: StartupMode


@dataclass(frozen=True)
class Snapshot:
    """Pre-batch state of every key and service a batch is about to touch."""

    # Identity
    id: str
    created_at: str                        # ISO timestamp, UTC
    environment_tag: str                   # host the snapshot belongs to

    # Captured state
    captured_keys: Tuple[CapturedKey, ...] = ()
    captured_services: Tuple[CapturedService, ...] = ()

    # Metadata
    categories: Tuple[str, ...] = ()       # categories of the batch
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def create(
        cls,
        environment_tag: str,
        captured_keys: List[CapturedKey],
        captured_services: List[CapturedService],
        categories: Tuple[str, ...] = (),
    ) -> 'Snapshot':
        """Create a new snapshot with generated ID and timestamp."""
        return cls(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc).isoformat(),
            environment_tag=environment_tag,
            captured_keys=tuple(captured_keys),
            captured_services=tuple(captured_services),
            categories=tuple(categories),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "schema_version": self.schema_version,
            "id": self.id,
            "created_at": self.created_at,
            "environment_tag": self.environment_tag,
            "categories": list(self.categories),
            "captured_keys": [
                {"path": k.path, "name": k.name, "previous": encode_value(k.previous)}
                for k in self.captured_keys
            ],
            "captured_services": [
                {"name": s.name, "previous_startup_mode": s.previous_startup_mode.value}
                for s in self.captured_services
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Snapshot':
        """
        Create from dictionary (JSON deserialization).

        Records written by older versions are upgraded through MIGRATIONS.

        Raises:
            SnapshotError: if the record is from a newer version or malformed
        """
        data = migrate(data)
        try:
            return cls(
                id=data["id"],
                created_at=data["created_at"],
                environment_tag=data["environment_tag"],
                captured_keys=tuple(
                    CapturedKey(k["path"], k["name"], decode_value(k.get("previous")))
                    for k in data.get("captured_keys", [])
                ),
                captured_services=tuple(
                    CapturedService(s["name"], StartupMode(s["previous_startup_mode"]))
                    for s in data.get("captured_services", [])
                ),
                categories=tuple(data.get("categories", [])),
                schema_version=data["schema_version"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Malformed snapshot record: {e}") from e

    def save(self, path: Path) -> None:
        """
        Write the snapshot to a new JSON file.

        The record is written to a temporary file first and then linked
        into place, so readers never see a partial file and an existing
        snapshot is never overwritten.

        Raises:
            SnapshotError: if the file exists or cannot be written
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            with open(tmp, 'x') as f:
                json.dump(self.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp, path)
        except FileExistsError as e:
            raise SnapshotError(f"Snapshot file already exists: {e.filename}") from e
        except OSError as e:
            raise SnapshotError(f"Cannot write snapshot {path}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()

    @classmethod
    def load(cls, path: Path) -> 'Snapshot':
        """Load snapshot from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
        return cls.from_dict(data)


def migrate(data: Dict[str, Any]) -> Dict[str, Any]:
    """Upgrade a snapshot record to SCHEMA_VERSION."""
    version = data.get("schema_version")
    if not isinstance(version, int):
        raise SnapshotError("Snapshot record has no schema_version")
    if version > SCHEMA_VERSION:
        raise SnapshotError(
            f"Snapshot schema version {version} is newer than supported ({SCHEMA_VERSION})"
        )
    while version < SCHEMA_VERSION:
        upgrade = MIGRATIONS.get(version)
        if upgrade is None:
            raise SnapshotError(f"No migration from snapshot schema version {version}")
        data = upgrade(dict(data))
        version += 1
        data["schema_version"] = version
    return data


@dataclass
class SnapshotInfo:
    """Summary info for listing snapshots."""
    id: str
    created_at: str
    environment_tag: str
    categories: Tuple[str, ...]
    key_count: int
    service_count: int

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> 'SnapshotInfo':
        return cls(
            id=snapshot.id,
            created_at=snapshot.created_at,
            environment_tag=snapshot.environment_tag,
            categories=snapshot.categories,
            key_count=len(snapshot.captured_keys),
            service_count=len(snapshot.captured_services),
        )


@dataclass
class RestoreReport:
    """Result of a restore operation."""
    snapshot_id: str
    restored_keys: int = 0
    restored_services: int = 0
    failed_keys: List[str] = field(default_factory=list)       # "path\name"
    failed_services: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_keys and not self.failed_services

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "success": self.success,
            "restored_keys": self.restored_keys,
            "restored_services": self.restored_services,
            "failed_keys": self.failed_keys,
            "failed_services": self.failed_services,
            "errors": self.errors,
        }

"""
Snapshot manager - high-level snapshot operations.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

from .models import RestoreReport, Snapshot, SnapshotInfo
from .capture import SnapshotCapture
from .restore import SnapshotRestore
from ..adapters.base import ConfigStore, ServiceController
from ..catalog.models import KeyRef
from ..protocol.errors import EnvironmentMismatchError, SnapshotError, SnapshotNotFoundError

logger = logging.getLogger(__name__)

_SNAPSHOT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class SnapshotManager:
    """High-level snapshot operations for one host."""

    def __init__(
        self,
        snapshots_dir: Path,
        config_store: ConfigStore,
        services: ServiceController,
        environment_tag: str,
    ):
        """
        Initialize snapshot manager.

        Args:
            snapshots_dir: Directory holding one JSON record per snapshot
            config_store: Store used for capture and restore
            services: Service controller used for capture and restore
            environment_tag: Tag of the current host
        """
        self.snapshots_dir = Path(snapshots_dir)
        self.config_store = config_store
        self.services = services
        self.environment_tag = environment_tag

        # Lazy-initialized components
        self._capture: Optional[SnapshotCapture] = None
        self._restore: Optional[SnapshotRestore] = None

    @property
    def capturer(self) -> SnapshotCapture:
        """Get or create snapshot capture component."""
        if self._capture is None:
            self._capture = SnapshotCapture(self.config_store, self.services)
        return self._capture

    @property
    def restorer(self) -> SnapshotRestore:
        """Get or create snapshot restore component."""
        if self._restore is None:
            self._restore = SnapshotRestore(self.config_store, self.services)
        return self._restore

    def _snapshot_path(self, snapshot_id: str) -> Path:
        """Get path to snapshot file."""
        return self.snapshots_dir / f"{snapshot_id}.json"

    # =========================================================================
    # Core Operations
    # =========================================================================

    def capture(
        self,
        keys: Iterable[KeyRef],
        services: Iterable[str],
        categories: Iterable[str] = (),
    ) -> str:
        """
        Capture and persist the current state of keys and services.

        Args:
            keys: Keys the batch will write
            services: Services the batch will change
            categories: Categories of the batch

        Returns:
            The new snapshot's id

        Raises:
            SnapshotError: if any read fails or the record cannot be written
        """
        snapshot = self.capturer.capture(
            keys=keys,
            services=services,
            environment_tag=self.environment_tag,
            categories=categories,
        )
        snapshot.save(self._snapshot_path(snapshot.id))
        logger.info(
            "Captured snapshot %s (%d keys, %d services)",
            snapshot.id, len(snapshot.captured_keys), len(snapshot.captured_services),
        )
        return snapshot.id

    def restore(self, snapshot_id: str) -> RestoreReport:
        """
        Restore the host to a snapshot.

        Args:
            snapshot_id: Snapshot to restore

        Returns:
            RestoreReport listing what was and was not restored

        Raises:
            SnapshotNotFoundError: no snapshot with this id
            EnvironmentMismatchError: the snapshot was taken on another host
        """
        snapshot = self.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(f"Snapshot '{snapshot_id}' not found")

        if snapshot.environment_tag != self.environment_tag:
            raise EnvironmentMismatchError(snapshot.id, snapshot.environment_tag, self.environment_tag)

        report = self.restorer.restore(snapshot)
        if report.success:
            logger.info(
                "Restored snapshot %s (%d keys, %d services)",
                snapshot.id, report.restored_keys, report.restored_services,
            )
        else:
            logger.warning(
                "Snapshot %s partially restored: %d keys and %d services failed",
                snapshot.id, len(report.failed_keys), len(report.failed_services),
            )
        return report

    # =========================================================================
    # Query Operations
    # =========================================================================

    def latest(self) -> Optional[str]:
        """Id of the newest snapshot for this host, if any."""
        snapshots = self.list_snapshots()
        return snapshots[0].id if snapshots else None

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        """
        Get a snapshot by id.

        Raises:
            SnapshotError: if the record exists but cannot be read
        """
        if not _SNAPSHOT_ID_RE.match(snapshot_id or ""):
            return None
        path = self._snapshot_path(snapshot_id)
        if not path.exists():
            return None
        return Snapshot.load(path)

    def list_snapshots(self, all_environments: bool = False) -> List[SnapshotInfo]:
        """
        List snapshots with summary info.

        Args:
            all_environments: Include snapshots taken on other hosts

        Returns:
            List of SnapshotInfo sorted by creation time (newest first)
        """
        snapshots = []
        if not self.snapshots_dir.is_dir():
            return snapshots

        for path in self.snapshots_dir.glob("*.json"):
            try:
                snapshot = Snapshot.load(path)
            except SnapshotError as e:
                logger.warning("Skipping unreadable snapshot %s: %s", path.name, e)
                continue
            if all_environments or snapshot.environment_tag == self.environment_tag:
                snapshots.append(SnapshotInfo.from_snapshot(snapshot))

        # Sort by creation time (newest first)
        snapshots.sort(key=lambda s: s.created_at, reverse=True)
        return snapshots

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def prune(self, keep: int = 10) -> int:
        """
        Remove old snapshots of this host, keeping the most recent ones.

        Args:
            keep: Number of snapshots to keep

        Returns:
            Number of snapshots removed
        """
        if keep < 0:
            raise ValueError("keep must be >= 0")

        removed = 0
        for info in self.list_snapshots()[keep:]:
            if self.delete(info.id):
                removed += 1
        if removed:
            logger.info("Pruned %d old snapshot(s)", removed)
        return removed

    def delete(self, snapshot_id: str) -> bool:
        """
        Delete a snapshot.

        Returns:
            True if deleted, False if not found
        """
        if not _SNAPSHOT_ID_RE.match(snapshot_id or ""):
            return False
        path = self._snapshot_path(snapshot_id)
        if path.exists():
            path.unlink()
            return True
        return False

"""
Snapshot/Restore system for pc_optimizer.

Every batch captures the pre-batch value of each key and service it is
about to touch, so the host can be rolled back later. Key features:

- Capture before any mutation in the batch
- One immutable JSON record per snapshot, versioned
- Best-effort restore with per-item failure reporting
- Snapshots are bound to the host they were taken on

Scope: registry values and service startup modes. The active power
scheme and service run status are not captured.
"""

from .models import (
    SCHEMA_VERSION,
    CapturedKey,
    CapturedService,
    RestoreReport,
    Snapshot,
    SnapshotInfo,
)
from .capture import SnapshotCapture
from .restore import SnapshotRestore
from .manager import SnapshotManager

__all__ = [
    'SCHEMA_VERSION',
    'CapturedKey',
    'CapturedService',
    'RestoreReport',
    'Snapshot',
    'SnapshotInfo',
    'SnapshotCapture',
    'SnapshotRestore',
    'SnapshotManager',
]

"""
Orchestrator - Applies a batch of mutation units concurrently.

Implements the batch flow:
1. SNAPSHOT - Capture every key and service the batch touches
2. DISPATCH - Run each unit's apply on a worker thread
3. FAN-IN   - Wait for all units, bounded by the slowest unit's budget
4. VERIFY   - Optionally read indicators back after a settle delay

A failed snapshot does not stop the batch (no rollback is then
available), and a failed unit never affects its siblings.
"""

import dataclasses
import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..adapters.base import HostAdapters
from ..catalog.models import MutationCatalog, MutationUnit
from ..protocol.category import Category
from ..protocol.errors import SnapshotError
from ..protocol.result import OrchestrationResult, UnitResult
from ..snapshot.manager import SnapshotManager
from .verifier import VerificationProbe

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """Configuration for batch execution."""
    max_workers: int = 12
    grace_seconds: float = 5.0
    settle_delay: float = 2.0
    verify_after_batch: bool = True


class Orchestrator:
    """
    Runs batches of mutation units with a pre-batch snapshot.

    One batch at a time per instance; ``cancel`` may be called from any
    thread while ``run_batch`` is in progress.
    """

    def __init__(
        self,
        catalog: MutationCatalog,
        adapters: HostAdapters,
        snapshots: SnapshotManager,
        probe: Optional[VerificationProbe] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.catalog = catalog
        self.adapters = adapters
        self.snapshots = snapshots
        self.probe = probe
        self.config = config or OrchestratorConfig()

        self._cancel_event: Optional[threading.Event] = None
        self._cancel_requested = False

    def cancel(self) -> bool:
        """
        Cancel the batch in progress.

        Units stop before their next step and running commands are
        terminated. Returns False if no batch is running.
        """
        event = self._cancel_event
        if event is None:
            return False
        logger.warning("Cancelling batch")
        self._cancel_requested = True
        event.set()
        return True

    def run_batch(self, selection: Iterable[Category]) -> OrchestrationResult:
        """
        Apply the units for the selected categories.

        Never raises for unit failures; the result carries per-unit
        outcomes and the overall counts.

        Args:
            selection: Categories to apply (duplicates ignored)

        Returns:
            OrchestrationResult

        Raises:
            ValueError: if the selection is empty or names an unknown category
        """
        categories = list(OrderedDict.fromkeys(selection))
        if not categories:
            raise ValueError("Selection must contain at least one category")
        units = self.catalog.select(categories)

        started = time.monotonic()
        cancel_event = threading.Event()
        adapters = dataclasses.replace(self.adapters, cancel_event=cancel_event)
        self._cancel_event = cancel_event
        self._cancel_requested = False

        try:
            snapshot_id, snapshot_error = self._capture(units)
            per_unit = self._dispatch(units, adapters)
        finally:
            self._cancel_event = None

        applied = sum(1 for r in per_unit if r.success)
        result = OrchestrationResult(
            requested=len(units),
            applied=applied,
            failed=len(units) - applied,
            snapshot_id=snapshot_id,
            per_unit=per_unit,
            snapshot_error=snapshot_error,
            cancelled=self._cancel_requested,
        )

        if self.config.verify_after_batch and self.probe is not None and not result.cancelled:
            if self.config.settle_delay > 0:
                time.sleep(self.config.settle_delay)
            result.verification = self.probe.check(categories)

        result.elapsed_seconds = time.monotonic() - started
        logger.info(
            "Batch finished: %d/%d applied, %d failed (%s)",
            result.applied, result.requested, result.failed, result.outcome.value,
        )
        return result

    # =========================================================================
    # Phases
    # =========================================================================

    def _capture(self, units: List[MutationUnit]):
        """Snapshot the union of touched keys and services."""
        keys = OrderedDict.fromkeys(k for unit in units for k in unit.touched_keys())
        services = OrderedDict.fromkeys(s for unit in units for s in unit.touched_services())

        try:
            snapshot_id = self.snapshots.capture(
                keys=list(keys),
                services=list(services),
                categories=[unit.category.value for unit in units],
            )
            return snapshot_id, None
        except SnapshotError as e:
            logger.warning("Snapshot capture failed, continuing without rollback: %s", e)
            return None, str(e)

    def _dispatch(self, units: List[MutationUnit], adapters: HostAdapters) -> List[UnitResult]:
        """Run every unit on the pool and collect results in unit order."""
        bound = max(unit.timeout_budget() for unit in units) + self.config.grace_seconds
        workers = max(1, min(len(units), self.config.max_workers))

        logger.info("Applying %d unit(s) on %d worker(s)", len(units), workers)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="unit")
        try:
            futures = [executor.submit(self._apply_unit, unit, adapters) for unit in units]
            done, not_done = wait(futures, timeout=bound)
        except KeyboardInterrupt:
            # Terminate running commands before unwinding
            adapters.cancel_event.set()
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if not_done:
            # Stragglers stop before their next step
            logger.warning("%d unit(s) still running after %.1fs, cancelling them", len(not_done), bound)
            adapters.cancel_event.set()

        results = []
        for unit, future in zip(units, futures):
            if future in done:
                results.append(future.result())
            else:
                logger.error("%s did not finish within %.1fs", unit.id, bound)
                results.append(UnitResult.failure(
                    f"did not finish within {bound:.1f}s",
                    unit_id=unit.id,
                    category=unit.category,
                    duration_seconds=bound,
                ))
        return results

    def _apply_unit(self, unit: MutationUnit, adapters: HostAdapters) -> UnitResult:
        logger.debug("Applying %s", unit.id)
        try:
            result = unit.apply(adapters)
        except Exception as e:
            logger.exception("Unexpected error applying %s", unit.id)
            return UnitResult.failure(
                f"unexpected error: {e}", unit_id=unit.id, category=unit.category,
            )
        if result.success:
            logger.info("%s: %s", unit.id, result.detail)
        return result

"""
OptimizationEngine - The core's public surface.

Three entry points:
- run_batch(selection): snapshot, apply units concurrently, verify
- restore(snapshot_id=None): roll back to a snapshot (latest when omitted)
- get_status(): read every category's indicator

Components are injected, so tests run against in-memory fakes;
``create_engine`` wires the real or simulated host adapters from Config.
"""

import logging
import sys
from typing import Iterable, Optional

from ..adapters.base import HostAdapters
from ..adapters.command import SubprocessCommandRunner
from ..adapters.simulated import (
    DEFAULT_SERVICES,
    DryRunCommandRunner,
    SimulatedConfigStore,
    SimulatedServiceController,
)
from ..catalog.models import MutationCatalog
from ..catalog.units import default_catalog
from ..config import Config
from ..environment import compute_environment_tag
from ..protocol.category import Category
from ..protocol.errors import SnapshotNotFoundError
from ..protocol.result import OrchestrationResult, VerificationReport
from ..snapshot.manager import SnapshotManager
from ..snapshot.models import RestoreReport
from ..tuning.orchestrator import Orchestrator, OrchestratorConfig
from ..tuning.verifier import VerificationProbe

logger = logging.getLogger(__name__)


class OptimizationEngine:
    """
    Applies, verifies and rolls back host optimizations.
    """

    def __init__(
        self,
        catalog: MutationCatalog,
        adapters: HostAdapters,
        snapshots: SnapshotManager,
        config: Optional[OrchestratorConfig] = None,
        backend: str = "custom",
    ):
        self.catalog = catalog
        self.adapters = adapters
        self.snapshots = snapshots
        self.config = config or OrchestratorConfig()
        self.backend = backend

        # Components (initialized lazily)
        self._probe: Optional[VerificationProbe] = None
        self._orchestrator: Optional[Orchestrator] = None

    @property
    def environment_tag(self) -> str:
        return self.snapshots.environment_tag

    @property
    def probe(self) -> VerificationProbe:
        """Get or initialize verification probe."""
        if self._probe is None:
            self._probe = VerificationProbe(self.catalog, self.adapters)
        return self._probe

    @property
    def orchestrator(self) -> Orchestrator:
        """Get or initialize orchestrator."""
        if self._orchestrator is None:
            self._orchestrator = Orchestrator(
                catalog=self.catalog,
                adapters=self.adapters,
                snapshots=self.snapshots,
                probe=self.probe,
                config=self.config,
            )
        return self._orchestrator

    # =========================================================================
    # Entry points
    # =========================================================================

    def run_batch(self, selection: Iterable[Category]) -> OrchestrationResult:
        """
        Apply the selected categories.

        Raises:
            ValueError: if the selection is empty
        """
        return self.orchestrator.run_batch(selection)

    def restore(self, snapshot_id: Optional[str] = None) -> RestoreReport:
        """
        Restore a snapshot.

        Args:
            snapshot_id: Snapshot to restore; the newest one for this host if None

        Raises:
            SnapshotNotFoundError: no such snapshot, or no snapshot at all
            EnvironmentMismatchError: the snapshot belongs to another host
        """
        if snapshot_id is None:
            snapshot_id = self.snapshots.latest()
            if snapshot_id is None:
                raise SnapshotNotFoundError("No snapshot exists for this environment")
            logger.info("Restoring latest snapshot %s", snapshot_id)
        return self.snapshots.restore(snapshot_id)

    def get_status(self) -> VerificationReport:
        """Indicator check of every category in the catalog."""
        return self.probe.check(self.catalog.categories())

    def cancel(self) -> bool:
        """Cancel the batch in progress, if any."""
        if self._orchestrator is None:
            return False
        return self._orchestrator.cancel()


# =========================================================================
# Factory
# =========================================================================

def resolve_backend(mode: str) -> str:
    """Map "auto" to "windows" on Windows and "simulated" elsewhere."""
    if mode == "auto":
        return "windows" if sys.platform == "win32" else "simulated"
    if mode not in ("windows", "simulated"):
        raise ValueError(f"Unknown backend mode: {mode}")
    return mode


def build_adapters(config: Config, backend: str) -> HostAdapters:
    """Create host adapters for a resolved backend."""
    if backend == "windows":
        # Imported here: winreg only exists on Windows
        from ..adapters.registry import WindowsRegistryStore
        from ..adapters.service import ScServiceController

        commands = SubprocessCommandRunner(kill_grace=config.commands.kill_grace)
        return HostAdapters(
            config_store=WindowsRegistryStore(),
            services=ScServiceController(commands),
            commands=commands,
        )

    state_dir = config.state_dir
    services_file = state_dir / "services.json"
    return HostAdapters(
        config_store=SimulatedConfigStore(state_file=state_dir / "config_store.json"),
        services=SimulatedServiceController(
            state_file=services_file,
            services=None if services_file.exists() else DEFAULT_SERVICES,
        ),
        commands=DryRunCommandRunner(),
    )


def create_engine(config: Config, catalog: Optional[MutationCatalog] = None) -> OptimizationEngine:
    """
    Build an engine from configuration.

    Raises:
        ValueError: if the backend mode is unknown
    """
    backend = resolve_backend(config.backend.mode)
    adapters = build_adapters(config, backend)
    tag = compute_environment_tag(adapters.config_store, override=config.environment.tag)
    logger.debug("Backend %s, environment tag %s", backend, tag)

    snapshots = SnapshotManager(
        snapshots_dir=config.snapshot_dir,
        config_store=adapters.config_store,
        services=adapters.services,
        environment_tag=tag,
    )
    return OptimizationEngine(
        catalog=catalog or default_catalog(),
        adapters=adapters,
        snapshots=snapshots,
        config=OrchestratorConfig(
            max_workers=config.batch.max_workers,
            grace_seconds=config.batch.grace_seconds,
            settle_delay=config.batch.settle_delay,
            verify_after_batch=config.batch.verify_after_batch,
        ),
        backend=backend,
    )

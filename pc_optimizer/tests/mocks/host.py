"""
Test host builders.

Wire fake adapters, a snapshot manager and an engine together the way
``create_engine`` does for the real backends.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple

from pc_optimizer.adapters.base import (
    CommandRunner,
    ConfigStore,
    HostAdapters,
    ServiceController,
    ServiceStatus,
    StartupMode,
)
from pc_optimizer.adapters.simulated import (
    DEFAULT_SERVICES,
    SimulatedConfigStore,
    SimulatedServiceController,
)
from pc_optimizer.catalog.models import MutationCatalog
from pc_optimizer.protocol.errors import ServiceNotFoundError
from pc_optimizer.catalog.units import default_catalog
from pc_optimizer.runner.engine import OptimizationEngine
from pc_optimizer.snapshot.manager import SnapshotManager
from pc_optimizer.tuning.orchestrator import OrchestratorConfig

from .fake_adapters import FakeCommandRunner

TEST_ENV_TAG = "test-host-0001"


def make_adapters(
    config_store: Optional[ConfigStore] = None,
    services: Optional[ServiceController] = None,
    commands: Optional[CommandRunner] = None,
    service_table: Optional[Dict[str, Tuple[StartupMode, ServiceStatus]]] = None,
) -> HostAdapters:
    """Adapters for a pristine simulated Windows host."""
    return HostAdapters(
        config_store=config_store or SimulatedConfigStore(),
        services=services or SimulatedServiceController(
            services=service_table if service_table is not None else DEFAULT_SERVICES
        ),
        commands=commands or FakeCommandRunner(),
    )


def make_snapshot_manager(
    snapshots_dir: Path,
    adapters: HostAdapters,
    environment_tag: str = TEST_ENV_TAG,
) -> SnapshotManager:
    return SnapshotManager(
        snapshots_dir=snapshots_dir,
        config_store=adapters.config_store,
        services=adapters.services,
        environment_tag=environment_tag,
    )


def make_engine(
    snapshots_dir: Path,
    adapters: Optional[HostAdapters] = None,
    catalog: Optional[MutationCatalog] = None,
    environment_tag: str = TEST_ENV_TAG,
    **orchestrator_options,
) -> OptimizationEngine:
    """
    Engine over fake adapters.

    Verification is off and the settle delay is zero unless overridden.
    """
    adapters = adapters or make_adapters()
    options = {"settle_delay": 0.0, "verify_after_batch": False, "grace_seconds": 1.0}
    options.update(orchestrator_options)
    return OptimizationEngine(
        catalog=catalog or default_catalog(),
        adapters=adapters,
        snapshots=make_snapshot_manager(snapshots_dir, adapters, environment_tag),
        config=OrchestratorConfig(**options),
        backend="test",
    )


def host_state(adapters: HostAdapters) -> Dict:
    """Comparable view of every value and service startup mode."""
    store = adapters.config_store
    values = {
        (path.lower(), name.lower()): value
        for path, name, value in store.items()
    }
    modes = {}
    for name in DEFAULT_SERVICES:
        try:
            modes[name] = adapters.services.get_startup_mode(name)
        except ServiceNotFoundError:
            continue
    return {"values": values, "services": modes}

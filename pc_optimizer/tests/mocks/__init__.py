"""
Mock components for testing pc_optimizer.

These fakes extend the simulated backends with failure injection,
hanging commands and a stateful powercfg, so batches, snapshots and
restores can be exercised without a Windows host.
"""

from .fake_adapters import (
    BALANCED_SCHEME,
    HIGH_PERFORMANCE_SCHEME,
    CountingStep,
    FakeCommandRunner,
    FaultyConfigStore,
)
from .host import (
    TEST_ENV_TAG,
    host_state,
    make_adapters,
    make_engine,
    make_snapshot_manager,
)

__all__ = [
    # Adapter fakes
    'BALANCED_SCHEME',
    'HIGH_PERFORMANCE_SCHEME',
    'CountingStep',
    'FakeCommandRunner',
    'FaultyConfigStore',
    # Builders
    'TEST_ENV_TAG',
    'host_state',
    'make_adapters',
    'make_engine',
    'make_snapshot_manager',
]

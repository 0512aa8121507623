"""
pc_optimizer - Gaming performance optimizer with snapshot/rollback

Applies grouped Windows configuration changes (registry values, service
startup modes and system utilities) concurrently, captures the previous
state of everything it touches first, and can verify or roll back the
result.

Usage:
    # As a module
    python -m pc_optimizer optimize cpu network

    # Programmatically
    from pc_optimizer import Category, Config, create_engine

    engine = create_engine(Config.load())
    result = engine.run_batch([Category.CPU, Category.NETWORK])
    engine.restore(result.snapshot_id)
"""

__version__ = "1.0.0"

# Main exports
from .config import Config
from .runner.engine import OptimizationEngine, create_engine

# Protocol exports
from .protocol.category import Category
from .protocol.result import (
    BatchOutcome,
    OrchestrationResult,
    UnitResult,
    VerificationReport,
)
from .snapshot.models import RestoreReport

__all__ = [
    # Version
    "__version__",
    # Engine
    "Config",
    "OptimizationEngine",
    "create_engine",
    # Protocol
    "Category",
    "BatchOutcome",
    "OrchestrationResult",
    "UnitResult",
    "VerificationReport",
    "RestoreReport",
]

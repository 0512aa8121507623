"""
Runner module - The optimization core's entry points.

OptimizationEngine exposes run_batch, restore and get_status;
create_engine wires it to the host (or the simulated backend) from Config.
"""

from .engine import OptimizationEngine, build_adapters, create_engine, resolve_backend

__all__ = [
    "OptimizationEngine",
    "build_adapters",
    "create_engine",
    "resolve_backend",
]

"""
Tuning module - Applies mutation units and verifies them.

Components:
- Orchestrator: snapshot, concurrent dispatch, fan-in, verification
- VerificationProbe: reads category indicators back from the host
"""

from .orchestrator import Orchestrator, OrchestratorConfig
from .verifier import VerificationProbe

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "VerificationProbe",
]

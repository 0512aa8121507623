"""
Host adapters - the external boundary of the optimization core.

Components:
- ConfigStore / ServiceController / CommandRunner: capability interfaces
- WindowsRegistryStore: registry-backed ConfigStore (winreg)
- ScServiceController: sc.exe-backed ServiceController
- SubprocessCommandRunner: timeout-enforced process spawning
- Simulated*: file-backed backends for non-Windows hosts and tests
"""

from .base import (
    CommandResult,
    CommandRunner,
    ConfigStore,
    ConfigValue,
    HostAdapters,
    ServiceController,
    ServiceStatus,
    StartupMode,
)
from .command import SubprocessCommandRunner
from .registry import WindowsRegistryStore
from .service import ScServiceController, ServiceConfig
from .simulated import DryRunCommandRunner, SimulatedConfigStore, SimulatedServiceController

__all__ = [
    "CommandResult",
    "CommandRunner",
    "ConfigStore",
    "ConfigValue",
    "HostAdapters",
    "ServiceController",
    "ServiceStatus",
    "StartupMode",
    "SubprocessCommandRunner",
    "WindowsRegistryStore",
    "ScServiceController",
    "ServiceConfig",
    "DryRunCommandRunner",
    "SimulatedConfigStore",
    "SimulatedServiceController",
]

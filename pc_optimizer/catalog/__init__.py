"""
Mutation catalog - one independently applicable unit per category.
"""

from .models import (
    DisableService,
    KeyIndicator,
    KeyRef,
    MutationCatalog,
    MutationUnit,
    PowerSchemeIndicator,
    RunCommand,
    ServiceIndicator,
    SetValue,
)
from .units import BUILTIN_UNITS, default_catalog

__all__ = [
    "DisableService",
    "KeyIndicator",
    "KeyRef",
    "MutationCatalog",
    "MutationUnit",
    "PowerSchemeIndicator",
    "RunCommand",
    "ServiceIndicator",
    "SetValue",
    "BUILTIN_UNITS",
    "default_catalog",
]

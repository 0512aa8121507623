"""
UI module - Rich console interface.

Provides:
- Batch result and verification tables
- Host status display
- Snapshot listing and detail views
- Confirmation prompts
"""

from .console import ConsoleUI

__all__ = [
    "ConsoleUI",
]

"""Logging setup for the pc_optimizer command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = "INFO", quiet: bool = False, force: bool = False) -> None:
    """
    Initialise the root logger once, rendering records through rich.

    Logs go to stderr so ``--json`` output on stdout stays parseable.

    Args:
        level: Log level name
        quiet: Only show warnings and errors
        force: Replace existing handlers (tests, repeated CLI calls)
    """
    numeric = logging.WARNING if quiet else getattr(logging, level.upper(), logging.INFO)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="%H:%M:%S",
    )
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        handlers=[handler],
        force=force,
    )

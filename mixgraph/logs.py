"""Logging setup shared by the command line tools."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(console: Console, verbose: bool = False) -> None:
    """Route log records to ``console`` (stderr), WARNING and up unless verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )

"""Rich-backed logging and console output for the importer and resolver.

Library code only asks for a logger:

    from common.logger import get_logger

    logger = get_logger(__name__)
    logger.info(f"Parsed {count} entries")

CLI entry points call ``setup_logging`` once and report results with the
console helpers (``progress``, ``success``, ``warning``, ``error``,
``print_counts``), which print without a log prefix.
"""

import logging
import os
import sys
from collections.abc import Mapping

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

# Shared by log records and the console helpers so their output interleaves
console = Console()

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# HTTP client libraries that log every request at DEBUG
NOISY_LOGGERS = ("urllib3", "requests")


def _resolve_level(level: str | None, default: str = "INFO") -> str:
    """An explicit level wins, then LOG_LEVEL, then ``default``."""
    return (level or os.getenv("LOG_LEVEL") or default).upper()


def _rich_handler() -> RichHandler:
    handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s"))
    return handler


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """
    Logger for a module, with a rich handler attached on first use.

    Args:
        name: Usually ``__name__``
        level: DEBUG, INFO, WARNING, ... (default: LOG_LEVEL, else INFO)

    Records still propagate to the root logger, so pytest's ``caplog``
    captures them.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    logger.addHandler(_rich_handler())
    logger.propagate = True
    return logger


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once at a CLI entry point.

    LOG_LEVEL, when set, overrides ``level``. With ``log_file`` every record
    is also appended to that file with timestamps.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(os.getenv("LOG_LEVEL", level).upper())
    root_logger.handlers.clear()
    root_logger.addHandler(_rich_handler())

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def progress(message: str) -> None:
    """Print a status line. Rich markup in ``message`` is rendered."""
    console.print(message)


def success(message: str) -> None:
    """``✓ message`` in green."""
    console.print(f"[green]✓[/green] {escape(message)}")


def warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {escape(message)}")


def error(message: str) -> None:
    """``✗ message`` on stderr, so it survives ``> out.txt``."""
    Console(file=sys.stderr).print(f"[red]✗[/red] {escape(message)}")


def print_counts(title: str, counts: Mapping[str, object]) -> None:
    """
    Print a two-column table of named values in insertion order.

    Underscores in names become spaces:

        >>> print_counts("Import", {"notes_added": 3, "notes_skipped": 1})
    """
    table = Table(title=escape(title), show_header=False, title_justify="left")
    table.add_column("name", style="bold")
    table.add_column("value", justify="right")
    for name, value in counts.items():
        table.add_row(escape(name.replace("_", " ")), escape(str(value)))
    console.print(table)

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def parse_level(level: str | None) -> int:
    return _LEVELS.get(str(level or "info").strip().lower(), logging.INFO)


def setup_logging(level: str | None = "info") -> None:
    """Route all logging to stderr through rich; replaces existing root handlers."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=parse_level(level),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )

"""Logger hierarchy for mddoctest, rendered on stderr through rich."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "mddoctest"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(component: str | None = None) -> logging.Logger:
    """Return the logger for ``component`` below the ``mddoctest`` root."""
    if not component:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(ROOT_LOGGER).getChild(component)


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(log_file: Path) -> logging.Handler:
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route mddoctest records to stderr, and every record to ``log_file`` when given.

    The console shows warnings and errors, or everything with ``verbose``. Calling it
    again replaces the handlers installed by the previous call.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    root = get_logger()
    root.propagate = False
    while root.handlers:
        stale = root.handlers[0]
        root.removeHandler(stale)
        stale.close()

    root.addHandler(_console_handler(console_level))
    if log_file is None:
        root.setLevel(console_level)
    else:
        root.setLevel(logging.DEBUG)
        root.addHandler(_file_handler(log_file))
    return root


__all__ = ["FILE_FORMAT", "ROOT_LOGGER", "configure_logging", "get_logger"]

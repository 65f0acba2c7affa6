"""Logger hierarchy and handler setup shared by the CLI and service."""

from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER = "ctxscope"

CONSOLE_FORMAT = "[ctxscope] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Observer threads log every inotify batch at DEBUG.
_CHATTY_LIBRARIES = ("watchdog",)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``ctxscope.<name>``, or the package root logger."""
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the console handler, plus a file handler when ``log_file`` is set.

    Safe to call repeatedly; previously installed handlers are replaced.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(sink)

    for library in _CHATTY_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)

    return root


__all__ = ["CONSOLE_FORMAT", "FILE_FORMAT", "ROOT_LOGGER", "configure_logging", "get_logger"]

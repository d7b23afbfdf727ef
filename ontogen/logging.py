"""Logging setup shared by the CLI, the service and the layer builders.

Every module logs under the ``ontogen`` hierarchy (``ontogen.semantics``,
``ontogen.domain.synthesizer`` and so on). Console lines carry the layer
that emitted them when verbose output is on, and an optional log file
always records the full logger name with a timestamp.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

ROOT_LOGGER = "ontogen"
FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``ontogen.<name>``, or the package logger when ``name`` is empty."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


class ConsoleFormatter(logging.Formatter):
    """Prefixes console lines with ``[ontogen]``, or ``[ontogen:<module>]`` when verbose."""

    def __init__(self, show_source: bool = False) -> None:
        super().__init__("%(message)s")
        self.show_source = show_source

    def format(self, record: logging.LogRecord) -> str:
        prefix = ROOT_LOGGER
        if self.show_source and record.name.startswith(f"{ROOT_LOGGER}."):
            prefix = f"{ROOT_LOGGER}:{record.name[len(ROOT_LOGGER) + 1:]}"
        return f"[{prefix}] {record.levelname} {super().format(record)}"


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install console (and optionally file) handlers on the package logger.

    Handlers from an earlier call are closed and replaced, so the CLI and the
    test suite can call this repeatedly. The log file is always written at
    DEBUG level; its parent directory is created when missing.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(ROOT_LOGGER)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter(show_source=verbose))
    logger.addHandler(console)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
        level = logging.DEBUG

    logger.setLevel(level)
    return logger


def record_warning(logger: logging.Logger, sink: List[str], message: str) -> None:
    """Log ``message`` as a warning and append it to a result's warning list."""
    logger.warning(message)
    sink.append(message)


__all__ = [
    "ConsoleFormatter",
    "FILE_FORMAT",
    "ROOT_LOGGER",
    "configure_logging",
    "get_logger",
    "record_warning",
]

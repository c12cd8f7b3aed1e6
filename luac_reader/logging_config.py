"""Logging helpers for the command line front end."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "DEBUG_FORMAT",
    "close_debug_logger",
    "configure_console_logging",
    "configure_debug_file_logger",
]

DEBUG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def configure_console_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def configure_debug_file_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing decode traces for ``name`` to ``path``.

    Handlers installed by an earlier call are replaced, so every run starts a
    fresh trace file.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    close_debug_logger(logger)
    logger.setLevel(level)
    logger.propagate = False

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._luac_debug_trace = True  # type: ignore[attr-defined]
    handler.setFormatter(formatter or logging.Formatter(DEBUG_FORMAT))
    logger.addHandler(handler)
    return logger


def close_debug_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by :func:`configure_debug_file_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, "_luac_debug_trace", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True

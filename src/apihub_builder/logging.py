"""Logging for the builder and its command line.

Records emitted while a build runs are stamped with the build they belong to
(``<package_id>@<version>``). The stamp lives in a context variable, so
concurrent builds on one event loop keep their own labels.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

_LOGGER_NAME = "apihub_builder"
NO_BUILD_LABEL = "-"

CONSOLE_FORMAT = "[apihub-builder] %(levelname)s [%(build)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(build)s]: %(message)s"

_current_build: ContextVar[str] = ContextVar("apihub_builder_build", default=NO_BUILD_LABEL)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger below ``apihub_builder``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def current_build_label() -> str:
    return _current_build.get()


@contextmanager
def build_logging_context(package_id: str, version: str) -> Iterator[str]:
    """Label every record logged inside the block with ``package_id@version``.

    Args:
        package_id (str): Package being built.
        version (str): Version being built.

    Yields:
        str: The label in effect.
    """
    label = f"{package_id}@{version}"
    token = _current_build.set(label)
    try:
        yield label
    finally:
        _current_build.reset(token)


class BuildContextFilter(logging.Filter):
    """Copy the current build label onto ``record.build``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "build"):
            record.build = current_build_label()
        return True


class _BuilderHandlerMixin:
    """Marks handlers installed by :func:`configure_logging`."""


class _ConsoleHandler(_BuilderHandlerMixin, logging.StreamHandler):
    pass


class _FileHandler(_BuilderHandlerMixin, logging.FileHandler):
    pass


def configure_logging(*, verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Send builder records to stderr and, optionally, to ``log_file``.

    Calling it again replaces the handlers it installed before; handlers added
    by the host application are left alone.

    Args:
        verbose (bool): Log at DEBUG instead of INFO.
        log_file (Path | None): Extra sink with timestamps and logger names.

    Returns:
        logging.Logger: The package logger.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        if isinstance(handler, _BuilderHandlerMixin):
            logger.removeHandler(handler)
            handler.close()

    logger.addHandler(_prepare(_ConsoleHandler(), level, CONSOLE_FORMAT))
    if log_file is not None:
        logger.addHandler(_prepare(_FileHandler(log_file, encoding="utf-8"), level, FILE_FORMAT))
    return logger


def _prepare(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(BuildContextFilter())
    handler.setFormatter(logging.Formatter(fmt))
    return handler


@contextmanager
def debug_performance(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log the wall time of the wrapped block at DEBUG level."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug("%s took %.1f ms", label, elapsed_ms)


__all__ = [
    "BuildContextFilter",
    "build_logging_context",
    "configure_logging",
    "current_build_label",
    "debug_performance",
    "get_logger",
]

"""Shared test plumbing."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest


@pytest.fixture(autouse=True)
def _isolate_package_logger() -> Iterator[None]:
    """Undo package logger changes (e.g. from ``cli.main``) so tests stay independent."""
    logger = logging.getLogger("apihub_builder")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[1])
    logger.propagate = saved[2]

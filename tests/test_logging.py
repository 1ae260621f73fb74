"""Tests for builder logging setup and build labels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from apihub_builder.config import BuildConfig
from apihub_builder.consts import BuildType
from apihub_builder.logging import (
    NO_BUILD_LABEL,
    BuildContextFilter,
    build_logging_context,
    configure_logging,
    current_build_label,
    get_logger,
)
from apihub_builder.strategies import BuilderContext, run_build

from .fixture_helpers import InMemoryRegistry


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    """Restore the package logger after a test reconfigures it."""
    logger = logging.getLogger("apihub_builder")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("apihub_builder.test", logging.INFO, __file__, 1, message, (), None)


def test_label_is_scoped_to_the_block() -> None:
    """The build label is set inside the block and restored afterwards."""
    assert current_build_label() == NO_BUILD_LABEL

    with build_logging_context("petstore", "2.0") as label:
        assert label == "petstore@2.0"
        with build_logging_context("lib", "1.0"):
            assert current_build_label() == "lib@1.0"
        assert current_build_label() == "petstore@2.0"

    assert current_build_label() == NO_BUILD_LABEL


def test_filter_stamps_records_without_overriding_explicit_labels() -> None:
    """Records get the current label unless the caller passed one in ``extra``."""
    log_filter = BuildContextFilter()
    explicit = _record("explicit")
    explicit.build = "other@1.0"

    with build_logging_context("petstore", "2.0"):
        stamped = _record("stamped")
        assert log_filter.filter(stamped) is True
        assert log_filter.filter(explicit) is True

    assert stamped.build == "petstore@2.0"
    assert explicit.build == "other@1.0"


@pytest.mark.asyncio
async def test_concurrent_builds_keep_their_labels() -> None:
    """Tasks running side by side see only their own build label."""

    async def labelled(package_id: str) -> str:
        with build_logging_context(package_id, "1.0"):
            await asyncio.sleep(0)
            return current_build_label()

    assert await asyncio.gather(labelled("a"), labelled("b")) == ["a@1.0", "b@1.0"]


def test_log_file_lines_carry_the_build_label(
    tmp_path: Path, package_logger: logging.Logger
) -> None:
    """File output includes the logger name and the build label."""
    log_file = tmp_path / "build.log"
    configure_logging(verbose=True, log_file=log_file)

    with build_logging_context("petstore", "2.0"):
        get_logger("files").debug("[Files] took %.1f ms", 1.5)
    get_logger("cli").info("done")
    for handler in package_logger.handlers:
        handler.flush()

    first, second = log_file.read_text(encoding="utf-8").splitlines()
    assert "DEBUG apihub_builder.files [petstore@2.0]: [Files] took 1.5 ms" in first
    assert f"INFO apihub_builder.cli [{NO_BUILD_LABEL}]: done" in second


def test_reconfiguring_replaces_only_own_handlers(package_logger: logging.Logger) -> None:
    """Repeated setup does not duplicate output or drop foreign handlers."""
    foreign = logging.NullHandler()
    package_logger.addHandler(foreign)

    configure_logging()
    logger = configure_logging(verbose=True)

    assert logger is package_logger
    assert logger.level == logging.DEBUG
    assert foreign in logger.handlers
    assert len(logger.handlers) == 2


@pytest.mark.asyncio
async def test_build_records_are_labelled(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """Records logged by a build carry the package version being built."""
    registry = InMemoryRegistry()
    registry.add_version("petstore", "2.0", [])
    config = BuildConfig(package_id="petstore", version="2.0", build_type=BuildType.CHANGELOG)
    monkeypatch.setattr(logging.getLogger("apihub_builder"), "propagate", True)
    caplog.handler.addFilter(BuildContextFilter())

    with caplog.at_level(logging.DEBUG, logger="apihub_builder"):
        await run_build(config, BuilderContext(resolvers=registry.resolvers()))

    finished = [record for record in caplog.records if "finished in" in record.getMessage()]
    assert [record.build for record in finished] == ["petstore@2.0"]

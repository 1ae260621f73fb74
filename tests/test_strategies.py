"""Tests for build strategy selection and execution."""

from __future__ import annotations

import logging
import re

import pytest

from apihub_builder.config import BuildConfig, BuildConfigError
from apihub_builder.consts import BuildType, MessageSeverity
from apihub_builder.model_types import BuildResult, PackageConfig
from apihub_builder.strategies import (
    BuilderContext,
    BuilderStrategyContext,
    BuildStrategy,
    ChangelogStrategy,
    PrefixGroupsChangelogStrategy,
    create_strategy,
    run_build,
    validate_prefix_groups,
)

from .fixture_helpers import FakeComparator, InMemoryRegistry, rest_operation


def _prefix_config(current_group: object, previous_group: object) -> BuildConfig:
    return BuildConfig(
        package_id="petstore",
        version="2.0",
        build_type=BuildType.PREFIX_GROUPS_CHANGELOG,
        current_group=current_group,  # type: ignore[arg-type]
        previous_group=previous_group,  # type: ignore[arg-type]
    )


def _result(config: BuildConfig) -> BuildResult:
    return BuildResult(config=PackageConfig.from_build_config(config))


@pytest.mark.asyncio
async def test_invalid_groups_fail_before_any_resolver_call() -> None:
    """Malformed groups are rejected with their literal values and no side effects."""
    registry = InMemoryRegistry()
    config = _prefix_config("/api/v3", "api/v2")
    ctx = BuilderContext(resolvers=registry.resolvers(), comparators=(FakeComparator(),))
    build_result = _result(config)

    with pytest.raises(BuildConfigError) as excinfo:
        await PrefixGroupsChangelogStrategy().execute(config, build_result, ctx)

    message = str(excinfo.value)
    assert '"api/v2"' in message
    assert "previousGroup" in message
    assert 'must begin and end with a "/" character' in message
    assert registry.calls == []
    assert build_result.comparisons == []
    assert build_result.notifications == []


@pytest.mark.parametrize(
    ("current_group", "previous_group", "fragment"),
    [
        ("/", "/v1/", 'currentGroup must begin and end with a "/" character'),
        ("/v2/", "v1/", 'received: "v1/"'),
        ("/v2/", 12, "previousGroup must be a string, received: int"),
    ],
)
def test_group_rules(current_group: object, previous_group: object, fragment: str) -> None:
    """Each group must be a string of at least three characters framed by slashes."""
    with pytest.raises(BuildConfigError, match=re.escape(fragment)):
        validate_prefix_groups(_prefix_config(current_group, previous_group))


def test_valid_groups_pass() -> None:
    """Well-formed or absent groups are accepted."""
    validate_prefix_groups(_prefix_config("/v2/", "/v1/"))
    validate_prefix_groups(_prefix_config(None, None))


@pytest.mark.asyncio
async def test_prefix_groups_compare_a_version_with_itself() -> None:
    """Operations of two path groups of one version are paired by their stripped ids."""
    registry = InMemoryRegistry()
    registry.add_version(
        "petstore",
        "2.0",
        [
            rest_operation("v1-pets-get", "old"),
            rest_operation("v2-pets-get", "new"),
            rest_operation("v2-stores-get", "s"),
        ],
    )
    comparator = FakeComparator()
    comparator.diffs[("v1-pets-get", "v2-pets-get")] = []
    config = _prefix_config("/v2/", "/v1/")
    ctx = BuilderContext(resolvers=registry.resolvers(), comparators=(comparator,))

    result = await run_build(config, ctx)

    (comparison,) = result.comparisons
    assert comparison.version == comparison.previous_version == "2.0"
    assert ("v1-pets-get", "v2-pets-get") in comparator.calls
    assert [item.operation_id for item in comparison.data] == ["v2-stores-get"]


@pytest.mark.asyncio
async def test_changelog_with_missing_previous_version_reports_error() -> None:
    """A deleted previous version is reported and every operation counts as added."""
    registry = InMemoryRegistry()
    registry.add_version("petstore", "2.0", [rest_operation("pets-get", "a")])
    config = BuildConfig(
        package_id="petstore",
        version="2.0",
        build_type=BuildType.CHANGELOG,
        previous_version="1.0",
    )
    ctx = BuilderContext(resolvers=registry.resolvers(), comparators=(FakeComparator(),))

    result = await run_build(config, ctx)

    (notification,) = result.notifications
    assert notification.severity is MessageSeverity.ERROR
    assert notification.message == (
        "Previous version has been deleted or does not exist (petstore/1.0)"
    )
    (comparison,) = result.comparisons
    assert comparison.previous_version == ""
    assert [item.operation_id for item in comparison.data] == ["pets-get"]
    assert result.config.build_type is BuildType.CHANGELOG


@pytest.mark.asyncio
async def test_changelog_resolves_previous_package() -> None:
    """The previous version is looked up in the configured previous package."""
    registry = InMemoryRegistry()
    registry.add_version("petstore", "2.0", [rest_operation("pets-get", "a")])
    registry.add_version("legacy-store", "1.0", [rest_operation("pets-get", "a")])
    config = BuildConfig(
        package_id="petstore",
        version="2.0",
        build_type=BuildType.CHANGELOG,
        previous_version="1.0",
        previous_version_package_id="legacy-store",
    )
    ctx = BuilderContext(resolvers=registry.resolvers(), comparators=(FakeComparator(),))
    build_result = _result(config)

    await ChangelogStrategy().execute(config, build_result, ctx)

    assert build_result.notifications == []
    (comparison,) = build_result.comparisons
    assert comparison.previous_version_package_id == "legacy-store"
    assert comparison.data == ()


@pytest.mark.asyncio
async def test_strategy_context_switches_strategy() -> None:
    """The strategy context runs whichever strategy was set last."""
    registry = InMemoryRegistry()
    config = _prefix_config("v2", "/v1/")
    ctx = BuilderContext(resolvers=registry.resolvers())
    strategy_context = BuilderStrategyContext(ChangelogStrategy(), config, _result(config), ctx)
    strategy_context.set_strategy(PrefixGroupsChangelogStrategy())

    with pytest.raises(BuildConfigError, match="currentGroup"):
        await strategy_context.execute_strategy()


def test_unsupported_build_types_are_rejected() -> None:
    """Only registered build types have a strategy."""
    assert isinstance(create_strategy(BuildType.CHANGELOG), ChangelogStrategy)
    assert isinstance(create_strategy("prefix-groups-changelog"), PrefixGroupsChangelogStrategy)
    assert isinstance(create_strategy(BuildType.BUILD), BuildStrategy)
    with pytest.raises(
        BuildConfigError, match='buildType is not supported, received: "documentGroup"'
    ):
        create_strategy(BuildType.DOCUMENT_GROUP)
    with pytest.raises(BuildConfigError, match="unknown"):
        create_strategy("unknown")


@pytest.mark.asyncio
async def test_slow_builds_are_logged(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """Builds over the threshold emit a warning."""
    registry = InMemoryRegistry()
    registry.add_version("petstore", "2.0", [])
    config = BuildConfig(package_id="petstore", version="2.0", build_type=BuildType.CHANGELOG)
    ctx = BuilderContext(resolvers=registry.resolvers())
    monkeypatch.setattr("apihub_builder.strategies.SLOW_BUILD_THRESHOLD_SECONDS", -1.0)
    logger = logging.getLogger("apihub_builder")
    monkeypatch.setattr(logger, "propagate", True)

    with caplog.at_level(logging.WARNING, logger="apihub_builder"):
        await run_build(config, ctx)

    assert "Build petstore/2.0 (changelog) took" in caplog.text

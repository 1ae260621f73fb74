"""Build strategies selected by ``BuildConfig.build_type``."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Optional, Protocol, Union

from .compare import ApiComparator, CompareContext, compare_versions
from .config import BuildConfig, BuildConfigError, BuilderConfiguration
from .consts import API_TYPE_REST, BuildType, MessageSeverity
from .deprecated import calculate_history_for_deprecated_items
from .files import build_files, set_document
from .logging import build_logging_context, debug_performance, get_logger
from .model_types import BuildResult, NotificationMessage, PackageConfig
from .resolvers import (
    BuilderResolvers,
    OperationTypeStats,
    ResolvedOperation,
    ResolvedOperations,
    ResolvedVersion,
)

logger = get_logger("strategies")

SLOW_BUILD_THRESHOLD_SECONDS = 10.0
_MIN_GROUP_LENGTH = 3
_BUILD_TYPE_VALUES = frozenset(item.value for item in BuildType)
_CHANGELOG_BUILD_TYPES = frozenset({BuildType.CHANGELOG, BuildType.PREFIX_GROUPS_CHANGELOG})


@dataclass(frozen=True)
class BuilderContext:
    """Collaborators shared by all builds of one builder instance."""

    resolvers: BuilderResolvers
    comparators: tuple[ApiComparator, ...] = ()
    configuration: BuilderConfiguration = field(default_factory=BuilderConfiguration)

    def compare_context(self, config: BuildConfig, build_result: BuildResult) -> CompareContext:
        """Comparison context whose notifications land in ``build_result``.

        Builds other than changelogs serve their own version from ``build_result``.
        """
        resolvers = self.resolvers
        if config.build_type not in _CHANGELOG_BUILD_TYPES:
            resolvers = local_version_resolvers(resolvers, config, build_result)
        return CompareContext(
            config=config,
            resolvers=resolvers,
            comparators=self.comparators,
            notifications=build_result.notifications,
            batch_size=self.configuration.batch_size,
        )


class BuilderStrategy(Protocol):
    """One way of turning a build config into a build result."""

    async def execute(
        self, config: BuildConfig, build_result: BuildResult, ctx: BuilderContext
    ) -> BuildResult: ...


class BuilderStrategyContext:
    """Holds the selected strategy and the inputs it runs on."""

    def __init__(
        self,
        strategy: BuilderStrategy,
        config: BuildConfig,
        build_result: BuildResult,
        ctx: BuilderContext,
    ) -> None:
        self.strategy = strategy
        self.config = config
        self.build_result = build_result
        self.ctx = ctx

    def set_strategy(self, strategy: BuilderStrategy) -> None:
        self.strategy = strategy

    async def execute_strategy(self) -> BuildResult:
        return await self.strategy.execute(self.config, self.build_result, self.ctx)


class ChangelogStrategy:
    """Compare the configured version with its previous version."""

    async def execute(
        self, config: BuildConfig, build_result: BuildResult, ctx: BuilderContext
    ) -> BuildResult:
        previous_package_id = config.effective_previous_package_id
        compare_context = ctx.compare_context(config, build_result)
        previous_version = await resolve_previous_version(config, ctx)

        if not previous_version:
            build_result.notifications.append(
                NotificationMessage(
                    severity=MessageSeverity.ERROR,
                    message=(
                        "Previous version has been deleted or does not exist "
                        f"({previous_package_id}/{config.previous_version})"
                    ),
                )
            )

        build_result.comparisons = await compare_versions(
            (previous_version, previous_package_id) if previous_version else None,
            (config.version, config.package_id),
            compare_context,
        )
        return build_result


class BuildStrategy:
    """Build documents and operations from the source files of a version.

    With a resolvable previous version the deprecation history is carried over
    and the built version is compared with it.
    """

    async def execute(
        self, config: BuildConfig, build_result: BuildResult, ctx: BuilderContext
    ) -> BuildResult:
        if not config.files and not config.refs:
            raise BuildConfigError("Incorrect config: No files and refs")

        previous_package_id = config.effective_previous_package_id
        previous_version = await resolve_previous_version(config, ctx)
        if config.previous_version and not previous_version:
            build_result.notifications.append(
                NotificationMessage(
                    severity=MessageSeverity.ERROR,
                    message=(
                        f"No such version: version: {config.previous_version}, "
                        f"packageId: {previous_package_id}"
                    ),
                )
            )

        if config.files:
            with debug_performance(logger, "[Files]"):
                file_results = await build_files(
                    config, ctx.resolvers.file_resolver, build_result.notifications
                )
            for file_result in file_results:
                set_document(build_result, file_result)

            if previous_version and not ctx.configuration.without_deprecated_depth:
                with debug_performance(logger, "[DeprecatedHistory]"):
                    await calculate_history_for_deprecated_items(
                        API_TYPE_REST,
                        list(build_result.operations.values()),
                        previous_version,
                        previous_package_id,
                        ctx.resolvers.version_deprecated_resolver,
                        batch_size=ctx.configuration.batch_size,
                    )

        if previous_version and not ctx.configuration.without_changelog:
            build_result.comparisons = await compare_versions(
                (previous_version, previous_package_id),
                (config.version, config.package_id),
                ctx.compare_context(config, build_result),
            )
        return build_result


class PrefixGroupsChangelogStrategy:
    """Compare two path-prefix groups inside the same version."""

    async def execute(
        self, config: BuildConfig, build_result: BuildResult, ctx: BuilderContext
    ) -> BuildResult:
        validate_prefix_groups(config)

        current = (config.version, config.package_id)
        build_result.comparisons = await compare_versions(
            current,
            current,
            ctx.compare_context(config, build_result),
        )
        return build_result


async def resolve_previous_version(config: BuildConfig, ctx: BuilderContext) -> Optional[str]:
    """Version string of the configured previous version, or None when it does not exist.

    Without a version resolver the configured value is trusted as is.
    """
    if not config.previous_version:
        return None
    version_resolver = ctx.resolvers.version_resolver
    if version_resolver is None:
        return config.previous_version
    resolved = await version_resolver(
        config.effective_previous_package_id, config.previous_version
    )
    return resolved.version if resolved is not None else None


def local_version_resolvers(
    resolvers: BuilderResolvers, config: BuildConfig, build_result: BuildResult
) -> BuilderResolvers:
    """Resolvers that answer for the version being built from ``build_result``.

    Every other version is delegated to ``resolvers``.
    """
    stored_version_resolver = resolvers.version_resolver
    stored_operations_resolver = resolvers.version_operations_resolver

    def is_local(package_id: str, version: str) -> bool:
        return package_id == config.package_id and version == config.version

    async def version_resolver(package_id: str, version: str) -> Optional[ResolvedVersion]:
        if is_local(package_id, version):
            api_types = dict.fromkeys(
                operation.api_type for operation in build_result.operations.values()
            )
            return ResolvedVersion(
                package_id=package_id,
                version=version,
                operation_types=tuple(OperationTypeStats(api_type=item) for item in api_types),
            )
        if stored_version_resolver is None:
            return None
        return await stored_version_resolver(package_id, version)

    async def version_operations_resolver(
        api_type: str,
        version: str,
        package_id: str,
        operation_ids: Optional[Sequence[str]] = None,
        include_data: bool = True,
    ) -> Optional[ResolvedOperations]:
        if is_local(package_id, version):
            return ResolvedOperations(
                operations=tuple(
                    ResolvedOperation.from_api_operation(operation, include_data)
                    for operation in build_result.operations.values()
                    if operation.api_type == api_type
                    and (operation_ids is None or operation.operation_id in operation_ids)
                )
            )
        if stored_operations_resolver is None:
            return None
        return await stored_operations_resolver(
            api_type, version, package_id, operation_ids, include_data
        )

    return replace(
        resolvers,
        version_resolver=version_resolver,
        version_operations_resolver=version_operations_resolver,
    )


def validate_prefix_groups(config: BuildConfig) -> None:
    """Check ``current_group`` and ``previous_group`` of a prefix-groups build.

    Raises:
        BuildConfigError: Listing every invalid group with its literal value.
    """
    errors = [
        error
        for error in (
            _group_error(config.current_group, "currentGroup"),
            _group_error(config.previous_group, "previousGroup"),
        )
        if error is not None
    ]
    if errors:
        raise BuildConfigError("; ".join(errors))


def _group_error(group: Any, param_name: str) -> Optional[str]:
    if group is None:
        return None
    if not isinstance(group, str):
        return f"{param_name} must be a string, received: {type(group).__name__}"
    if len(group) < _MIN_GROUP_LENGTH or not group.startswith("/") or not group.endswith("/"):
        return (
            f'{param_name} must begin and end with a "/" character and contain at least one '
            f'meaningful character, received: "{group}"'
        )
    return None


STRATEGIES: Mapping[BuildType, Callable[[], BuilderStrategy]] = MappingProxyType(
    {
        BuildType.BUILD: BuildStrategy,
        BuildType.CHANGELOG: ChangelogStrategy,
        BuildType.PREFIX_GROUPS_CHANGELOG: PrefixGroupsChangelogStrategy,
    }
)


def create_strategy(build_type: Union[BuildType, str]) -> BuilderStrategy:
    """Return a new strategy instance for ``build_type``.

    Raises:
        BuildConfigError: If no strategy is registered for the build type.
    """
    factory = STRATEGIES.get(BuildType(build_type)) if build_type in _BUILD_TYPE_VALUES else None
    if factory is None:
        raise BuildConfigError(f'buildType is not supported, received: "{build_type}"')
    return factory()


async def run_build(config: BuildConfig, ctx: BuilderContext) -> BuildResult:
    """Run the strategy selected by ``config.build_type`` on a fresh result."""
    build_result = BuildResult(config=PackageConfig.from_build_config(config))
    strategy_context = BuilderStrategyContext(
        create_strategy(config.build_type), config, build_result, ctx
    )

    with build_logging_context(config.package_id, config.version):
        started = time.perf_counter()
        result = await strategy_context.execute_strategy()
        elapsed = time.perf_counter() - started

        if elapsed > SLOW_BUILD_THRESHOLD_SECONDS:
            logger.warning(
                "Build %s/%s (%s) took %.1f s",
                config.package_id,
                config.version,
                config.build_type,
                elapsed,
            )
        else:
            logger.debug(
                "Build %s/%s finished in %.1f s", config.package_id, config.version, elapsed
            )
    return result

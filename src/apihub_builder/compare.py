"""Comparison of two package versions, operation by operation.

The diff engine itself is external: every API type registers an
``ApiComparator`` that turns a pair of resolved operations into diffs. This
module pairs operations across versions, asks the comparator for diffs,
applies compatibility policy and aggregates the results.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, TypeAlias

from .batching import execute_in_batches
from .changes import (
    calculate_api_audience_transitions,
    calculate_change_summary,
    calculate_diff_id,
    calculate_impacted_summary,
    calculate_total_impacted_summary,
    remove_duplicates,
    total_changes,
    validate_bwc_breaking_changes,
)
from .config import BuildConfig
from .consts import DEFAULT_BATCH_SIZE, REVISION_DELIMITER, MessageSeverity
from .logging import debug_performance, get_logger
from .model_types import (
    ApiAudienceTransition,
    Diff,
    NotificationMessage,
    OperationChanges,
    OperationType,
    VersionsComparison,
    VersionsComparisonDto,
)
from .resolvers import (
    BuilderResolvers,
    ResolvedOperation,
    ResolvedVersion,
    VersionDeprecatedResolver,
    VersionOperationsResolver,
)
from .slugify import remove_first_slash, slugify
from .transform import to_versions_comparison_dto

logger = get_logger("compare")

VersionParams: TypeAlias = Optional[tuple[str, str]]

HANDLE_TYPE_ADDED = "added"
HANDLE_TYPE_REMOVED = "removed"


class ComparisonError(RuntimeError):
    """Raised when operations required for a comparison cannot be resolved."""


@dataclass(frozen=True)
class CompareOperationsPairContext:
    """What a comparator may need besides the two operations."""

    notifications: list[NotificationMessage]
    version_deprecated_resolver: Optional[VersionDeprecatedResolver]
    previous_version: str
    current_version: str
    previous_package_id: str
    current_package_id: str


class ApiComparator(Protocol):
    """Diff engine adapter for one API type.

    Implementations may also define ``normalize_operation_id(operation) -> str``
    to pair operations whose ids changed only cosmetically, such as renamed
    path parameters.
    """

    api_type: str

    async def compare_operations_data(
        self,
        current: Optional[ResolvedOperation],
        previous: Optional[ResolvedOperation],
        ctx: CompareOperationsPairContext,
    ) -> list[Diff]: ...


@dataclass
class CompareContext:
    """Inputs shared by every comparison of one build."""

    config: BuildConfig
    resolvers: BuilderResolvers
    comparators: Sequence[ApiComparator] = ()
    notifications: list[NotificationMessage] = field(default_factory=list)
    batch_size: int = DEFAULT_BATCH_SIZE

    def find_comparator(self, api_type: str) -> Optional[ApiComparator]:
        for comparator in self.comparators:
            if comparator.api_type == api_type:
                return comparator
        return None

    def report_error(self, message: str) -> None:
        """Record an ERROR notification for the build."""
        self.notifications.append(
            NotificationMessage(severity=MessageSeverity.ERROR, message=message)
        )


@dataclass
class _OperationPair:
    current: Optional[ResolvedOperation] = None
    previous: Optional[ResolvedOperation] = None


def get_splitted_version_key(version: Optional[str]) -> tuple[str, int]:
    """Split ``version@revision`` into its parts; the revision defaults to 0."""
    if not version:
        return "", 0
    if REVISION_DELIMITER not in version:
        return version, 0
    name, revision = version.split(REVISION_DELIMITER, maxsplit=1)
    return name, int(revision) if revision.isdigit() else 0


def take_substring_if(condition: bool, value: str, start_index: int) -> str:
    return value[start_index:] if condition else value


def get_operation_tags(operation: Optional[ResolvedOperation]) -> list[str]:
    if operation is None:
        return []
    if operation.tags:
        return list(operation.tags)
    return list(operation.metadata.get("tags") or [])


def get_operation_metadata(operation: ResolvedOperation) -> dict[str, Any]:
    """Title, tags and API specific identification of an operation."""
    metadata: dict[str, Any] = {
        "title": operation.title,
        "tags": get_operation_tags(operation),
    }
    for key in ("method", "path", "type"):
        value = operation.metadata.get(key)
        if value is not None:
            metadata[key] = value
    return metadata


async def compare_versions(
    prev: VersionParams,
    curr: VersionParams,
    ctx: CompareContext,
) -> list[VersionsComparisonDto]:
    """Compare two versions and their references.

    Args:
        prev (VersionParams): ``(version, package_id)`` of the previous side, or None.
        curr (VersionParams): ``(version, package_id)`` of the current side, or None.
        ctx (CompareContext): Resolvers, comparators and notification sink.

    Returns:
        list[VersionsComparisonDto]: One comparison per reference pair followed by
        the comparison of the versions' own operations.
    """
    label = f"[CompareVersions] {prev[1]}/{prev[0]}" if prev else "[CompareVersions] no previous"
    with debug_performance(logger, label):
        comparisons = await compare_versions_references(prev, curr, ctx)
        with debug_performance(logger, "[CompareOperations]"):
            comparisons.append(await compare_versions_operations(prev, curr, ctx))

    return [to_versions_comparison_dto(item, ctx.report_error) for item in comparisons]


async def compare_versions_references(
    prev: VersionParams,
    curr: VersionParams,
    ctx: CompareContext,
) -> list[VersionsComparison]:
    """Compare package references of two versions, reusing stored comparisons."""
    references_resolver = ctx.resolvers.version_references_resolver
    comparison_resolver = ctx.resolvers.version_comparison_resolver
    if references_resolver is None:
        return []

    current_refs = await references_resolver(*curr) if curr else None
    previous_refs = await references_resolver(*prev) if prev else None

    refs_map: dict[str, dict[str, Any]] = {}
    for previous in previous_refs.references if previous_refs else ():
        refs_map[previous.ref_id] = {"previous": previous}
    for current in current_refs.references if current_refs else ():
        refs_map.setdefault(current.ref_id, {})["current"] = current

    comparisons: list[VersionsComparison] = []
    for mapping in refs_map.values():
        previous = mapping.get("previous")
        current = mapping.get("current")
        if previous is not None and current is not None and comparison_resolver is not None:
            cached = await comparison_resolver(
                current.version, current.ref_id, previous.version, previous.ref_id
            )
            if cached is not None:
                version, revision = get_splitted_version_key(current.version)
                previous_version, previous_revision = get_splitted_version_key(previous.version)
                comparisons.append(
                    VersionsComparison(
                        package_id=current.ref_id,
                        version=version,
                        revision=revision,
                        previous_version=previous_version,
                        previous_version_revision=previous_revision,
                        previous_version_package_id=previous.ref_id,
                        operation_types=tuple(cached.operation_types),
                        from_cache=True,
                    )
                )
                continue

        previous_params = (previous.version, previous.ref_id) if previous is not None else None
        current_params = (current.version, current.ref_id) if current is not None else None
        comparisons.append(await compare_versions_operations(previous_params, current_params, ctx))

    return comparisons


async def compare_versions_operations(
    prev: VersionParams,
    curr: VersionParams,
    ctx: CompareContext,
) -> VersionsComparison:
    """Compare the operations of two versions for every API type either one has."""
    previous_data = await _resolve_version(prev, ctx)
    current_data = await _resolve_version(curr, ctx)

    api_types: dict[str, None] = {}
    for version_data in (previous_data, current_data):
        if version_data is not None:
            for stats in version_data.operation_types:
                api_types.setdefault(stats.api_type, None)

    operation_types: list[OperationType] = []
    changes: list[OperationChanges] = []
    for api_type in api_types:
        with debug_performance(logger, f"[ApiType] {api_type}"):
            result = await _compare_api_type(api_type, previous_data, current_data, ctx)
        if result is None:
            continue
        operation_type, operation_changes = result
        operation_types.append(operation_type)
        changes.extend(operation_changes)

    comparison_file_id = "_".join(part for part in (*(prev or ()), *(curr or ())) if part)
    version, revision = get_splitted_version_key(current_data.version if current_data else None)
    previous_version, previous_revision = get_splitted_version_key(
        previous_data.version if previous_data else None
    )

    return VersionsComparison(
        package_id=current_data.package_id if current_data else "",
        version=version,
        revision=revision,
        previous_version=previous_version,
        previous_version_revision=previous_revision,
        previous_version_package_id=previous_data.package_id if previous_data else "",
        operation_types=tuple(operation_types),
        from_cache=False,
        comparison_file_id=comparison_file_id if changes else None,
        data=tuple(changes),
    )


async def _resolve_version(
    params: VersionParams, ctx: CompareContext
) -> Optional[ResolvedVersion]:
    if params is None:
        return None
    version, package_id = params
    resolver = ctx.resolvers.version_resolver
    resolved = await resolver(package_id, version) if resolver is not None else None
    return resolved or ResolvedVersion(package_id=package_id, version=version)


def _reduce_operations(
    operations: Sequence[ResolvedOperation],
    comparator: ApiComparator,
    group_slug: str,
) -> dict[str, ResolvedOperation]:
    """Key operations by normalized id with the group prefix removed.

    When a group is set, operations outside of it are left out.
    """
    normalize: Optional[Callable[[ResolvedOperation], str]] = getattr(
        comparator, "normalize_operation_id", None
    )
    reduced: dict[str, ResolvedOperation] = {}
    for operation in operations:
        normalized_id = normalize(operation) if normalize is not None else operation.operation_id
        if group_slug and not normalized_id.startswith(group_slug):
            continue
        reduced[take_substring_if(bool(group_slug), normalized_id, len(group_slug))] = operation
    return reduced


def _pair_operations(
    current_operations: Sequence[ResolvedOperation],
    previous_operations: Sequence[ResolvedOperation],
    comparator: ApiComparator,
    current_group_slug: str,
    previous_group_slug: str,
) -> dict[str, _OperationPair]:
    pairs = {
        reduced_id: _OperationPair(current=operation)
        for reduced_id, operation in _reduce_operations(
            current_operations, comparator, current_group_slug
        ).items()
    }
    for reduced_id, operation in _reduce_operations(
        previous_operations, comparator, previous_group_slug
    ).items():
        pair = pairs.get(reduced_id)
        if pair is not None:
            pair.previous = operation
    return pairs


async def _compare_api_type(
    api_type: str,
    previous_data: Optional[ResolvedVersion],
    current_data: Optional[ResolvedVersion],
    ctx: CompareContext,
) -> Optional[tuple[OperationType, list[OperationChanges]]]:
    comparator = ctx.find_comparator(api_type)
    if comparator is None:
        logger.debug("No comparator registered for %s operations", api_type)
        return None
    operations_resolver = ctx.resolvers.version_operations_resolver
    if operations_resolver is None:
        raise ComparisonError("version_operations_resolver is required to compare versions")

    previous_version = previous_data.version if previous_data else ""
    previous_package_id = previous_data.package_id if previous_data else ""
    current_version = current_data.version if current_data else ""
    current_package_id = current_data.package_id if current_data else ""

    current_group = ctx.config.current_group or ""
    previous_group = ctx.config.previous_group or ""
    current_group_slug = slugify(remove_first_slash(current_group))
    previous_group_slug = slugify(remove_first_slash(previous_group))

    previous_operations = await _resolve_operations(
        operations_resolver, api_type, previous_data, include_data=False
    )
    current_operations = await _resolve_operations(
        operations_resolver, api_type, current_data, include_data=False
    )
    previous_reduced = _reduce_operations(previous_operations, comparator, previous_group_slug)
    current_reduced = _reduce_operations(current_operations, comparator, current_group_slug)

    added: list[str] = []
    removed: list[str] = []
    changed: list[tuple[str, str]] = []
    paired: list[tuple[str, str]] = []
    for reduced_id in dict.fromkeys([*previous_reduced, *current_reduced]):
        previous_operation = previous_reduced.get(reduced_id)
        current_operation = current_reduced.get(reduced_id)
        if previous_operation is not None and current_operation is not None:
            ids = (previous_operation.operation_id, current_operation.operation_id)
            paired.append(ids)
            if previous_operation.data_hash != current_operation.data_hash:
                changed.append(ids)
        elif previous_operation is not None:
            removed.append(previous_operation.operation_id)
        elif current_operation is not None:
            added.append(current_operation.operation_id)

    pair_context = CompareOperationsPairContext(
        notifications=ctx.notifications,
        version_deprecated_resolver=ctx.resolvers.version_deprecated_resolver,
        previous_version=previous_version,
        current_version=current_version,
        previous_package_id=previous_package_id,
        current_package_id=current_package_id,
    )
    changed_operations: dict[str, OperationChanges] = {}
    tags: set[str] = set()
    audience_transitions: list[ApiAudienceTransition] = []

    async def handle_audience(batch: list[tuple[str, str]]) -> None:
        previous_batch = [previous_id for previous_id, _ in batch]
        current_batch = [current_id for _, current_id in batch]
        resolved_current = await operations_resolver(
            api_type, current_version, current_package_id, current_batch, False
        )
        resolved_previous = await operations_resolver(
            api_type, previous_version, previous_package_id, previous_batch, False
        )
        pairs = _pair_operations(
            resolved_current.operations if resolved_current else (),
            resolved_previous.operations if resolved_previous else (),
            comparator,
            current_group_slug,
            previous_group_slug,
        )
        for pair in pairs.values():
            calculate_api_audience_transitions(pair.current, pair.previous, audience_transitions)

    async def handle_added_or_removed(
        version: str, package_id: str, operation_ids: list[str], handle_type: str
    ) -> None:
        resolved = await operations_resolver(api_type, version, package_id, operation_ids, True)
        operations = resolved.operations if resolved else ()
        if not operations:
            message = (
                f"Cannot get operations for package {package_id} and version {version} "
                f"(requested ids={','.join(operation_ids)})"
            )
            ctx.report_error(message)
            raise ComparisonError(message)
        if len(operations) != len(operation_ids):
            resolved_ids = {operation.operation_id for operation in operations}
            missing = [item for item in operation_ids if item not in resolved_ids]
            message = (
                f"Cannot get some operations ({','.join(missing)}) for package {package_id} "
                f"and version {version} (requested ids={','.join(operation_ids)})"
            )
            ctx.report_error(message)
            raise ComparisonError(message)

        is_added = handle_type == HANDLE_TYPE_ADDED
        for operation in operations:
            current, previous = (operation, None) if is_added else (None, operation)
            with debug_performance(logger, f"[Operation] {operation.operation_id}"):
                diffs = await comparator.compare_operations_data(current, previous, pair_context)
            change_summary = calculate_change_summary(diffs)
            operation_changes = OperationChanges(
                api_type=api_type,
                change_summary=change_summary,
                impacted_summary=calculate_impacted_summary([change_summary]),
                diffs=list(diffs),
                metadata=get_operation_metadata(operation),
            )
            if is_added:
                operation_changes.operation_id = operation.operation_id
                operation_changes.data_hash = operation.data_hash
                operation_changes.api_kind = operation.api_kind
            else:
                operation_changes.previous_operation_id = operation.operation_id
                operation_changes.previous_data_hash = operation.data_hash
                operation_changes.previous_api_kind = operation.api_kind
            validate_bwc_breaking_changes(operation_changes)
            changed_operations[operation.operation_id] = operation_changes
            tags.update(get_operation_tags(operation))

    async def handle_removed(batch: list[str]) -> None:
        await handle_added_or_removed(
            previous_version, previous_package_id, batch, HANDLE_TYPE_REMOVED
        )

    async def handle_added(batch: list[str]) -> None:
        await handle_added_or_removed(
            current_version, current_package_id, batch, HANDLE_TYPE_ADDED
        )

    async def handle_changed(batch: list[tuple[str, str]]) -> None:
        previous_batch = [previous_id for previous_id, _ in batch]
        current_batch = [current_id for _, current_id in batch]
        resolved_previous = await operations_resolver(
            api_type, previous_version, previous_package_id, previous_batch, True
        )
        resolved_current = await operations_resolver(
            api_type, current_version, current_package_id, current_batch, True
        )
        pairs = _pair_operations(
            resolved_current.operations if resolved_current else (),
            resolved_previous.operations if resolved_previous else (),
            comparator,
            current_group_slug,
            previous_group_slug,
        )

        for operation_id, pair in pairs.items():
            versions_label = (
                f"{previous_package_id}/{previous_version} and "
                f"{current_package_id}/{current_version}"
            )
            if pair.previous is None or pair.previous.data is None:
                ctx.report_error(
                    f"Cannot compare operations ({operation_id}) of packages {versions_label} "
                    "- Previous operation data not found"
                )
                continue
            if pair.current is None or pair.current.data is None:
                ctx.report_error(
                    f"Cannot compare operations ({operation_id}) of packages {versions_label} "
                    "- Current operation data not found"
                )
                continue

            with debug_performance(logger, f"[Operation] {operation_id}"):
                diffs = await comparator.compare_operations_data(
                    pair.current, pair.previous, pair_context
                )
            change_summary = calculate_change_summary(diffs)
            if not total_changes(change_summary):
                continue

            operation_changes = OperationChanges(
                api_type=api_type,
                change_summary=change_summary,
                impacted_summary=calculate_impacted_summary([change_summary]),
                operation_id=take_substring_if(
                    bool(current_group_slug), pair.current.operation_id, len(current_group_slug)
                ),
                previous_operation_id=take_substring_if(
                    bool(previous_group_slug),
                    pair.previous.operation_id,
                    len(previous_group_slug),
                ),
                api_kind=pair.current.api_kind,
                previous_api_kind=pair.previous.api_kind,
                data_hash=pair.current.data_hash,
                previous_data_hash=pair.previous.data_hash,
                diffs=list(diffs),
                metadata={
                    **get_operation_metadata(pair.current),
                    "previous_operation_metadata": get_operation_metadata(pair.previous),
                },
            )
            validate_bwc_breaking_changes(operation_changes)
            changed_operations[operation_id] = operation_changes
            tags.update(get_operation_tags(pair.current))

    with debug_performance(logger, "[ApiAudience]"):
        await execute_in_batches(paired, handle_audience, ctx.batch_size)
    with debug_performance(logger, "[Removed]"):
        await execute_in_batches(removed, handle_removed, ctx.batch_size)
    with debug_performance(logger, "[Added]"):
        await execute_in_batches(added, handle_added, ctx.batch_size)
    with debug_performance(logger, "[Changed]"):
        await execute_in_batches(changed, handle_changed, ctx.batch_size)

    operation_changes_list = list(changed_operations.values())
    unique_diffs = remove_duplicates(
        (diff for item in operation_changes_list for diff in item.diffs),
        calculate_diff_id,
    )
    operation_type = OperationType(
        api_type=api_type,
        changes_summary=calculate_change_summary(unique_diffs),
        number_of_impacted_operations=calculate_total_impacted_summary(
            item.impacted_summary for item in operation_changes_list
        ),
        api_audience_transitions=tuple(audience_transitions),
        tags=tuple(sorted(tags)),
    )
    return operation_type, operation_changes_list


async def _resolve_operations(
    resolver: VersionOperationsResolver,
    api_type: str,
    version_data: Optional[ResolvedVersion],
    *,
    include_data: bool,
) -> Sequence[ResolvedOperation]:
    if version_data is None:
        return ()
    resolved = await resolver(
        api_type, version_data.version, version_data.package_id, None, include_data
    )
    return resolved.operations if resolved else ()

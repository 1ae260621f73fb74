"""Deprecation history carried over from previously published versions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from .batching import execute_in_batches
from .consts import DEFAULT_BATCH_SIZE
from .json_types import JSONPath
from .logging import get_logger
from .model_types import ApiOperation, DeprecateItem
from .paths import are_declaration_paths_equal, is_operation_declaration, match_shared_component
from .resolvers import VersionDeprecatedResolver

logger = get_logger("deprecated")


async def calculate_history_for_deprecated_items(
    api_type: str,
    operations: Sequence[ApiOperation],
    version: str,
    package_id: str,
    resolver: Optional[VersionDeprecatedResolver],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> None:
    """Prepend the deprecation history of ``version`` to matching current items.

    Only operations that are deprecated or carry deprecated items are looked
    up. Matching items receive the previous ``deprecated_in_previous_versions``
    in front of their own; operation-level items also update the operation's
    list.

    Args:
        api_type (str): API type of ``operations``.
        operations (Sequence[ApiOperation]): Operations of the version being built.
        version (str): Previous version to take history from.
        package_id (str): Package of the previous version.
        resolver (VersionDeprecatedResolver | None): Source of stored deprecations;
            nothing happens without one.
        batch_size (int): Number of operation ids per resolver call.
    """
    if resolver is None:
        return

    deprecated_operations = {
        operation.operation_id: operation
        for operation in operations
        if operation.deprecated or operation.deprecated_items
    }
    if not deprecated_operations:
        return

    async def handle_batch(operation_ids: list[str]) -> None:
        resolved = await resolver(api_type, version, package_id, operation_ids)
        if resolved is None:
            return
        for resolved_operation in resolved.operations:
            current = deprecated_operations.get(resolved_operation.operation_id)
            if current is None or not current.deprecated_items:
                continue
            _merge_history(current, resolved_operation.deprecated_items)

    logger.debug(
        "Resolving deprecation history of %d %s operation(s) from %s/%s",
        len(deprecated_operations),
        api_type,
        package_id,
        version,
    )
    await execute_in_batches(list(deprecated_operations), handle_batch, batch_size)


def _merge_history(current: ApiOperation, previous_items: Sequence[DeprecateItem]) -> None:
    for item in current.deprecated_items:
        previous = _find_previous_item(item, previous_items)
        if previous is None:
            continue

        item.deprecated_in_previous_versions[:0] = previous.deprecated_in_previous_versions
        if is_operation_declaration(item.declaration_json_paths):
            current.deprecated_in_previous_versions = list(
                dict.fromkeys(item.deprecated_in_previous_versions)
            )


def _find_previous_item(
    item: DeprecateItem, previous_items: Sequence[DeprecateItem]
) -> Optional[DeprecateItem]:
    for previous in previous_items:
        if item.tolerant_hash and previous.tolerant_hash:
            if are_same_deprecated_items(previous, item):
                return previous
        elif are_declaration_paths_equal(
            previous.declaration_json_paths, item.declaration_json_paths
        ):
            return previous
    return None


def are_same_deprecated_items(first: DeprecateItem, second: DeprecateItem) -> bool:
    """Return True when two items describe the same deprecated declaration.

    Items must share a tolerant hash and either be declared at the same
    paths or differ only by a move into or out of ``components``.
    """
    if first.tolerant_hash != second.tolerant_hash:
        return False
    if are_declaration_paths_equal(first.declaration_json_paths, second.declaration_json_paths):
        return True
    return is_refactoring_case(first.declaration_json_paths, second.declaration_json_paths)


def is_refactoring_case(first: Sequence[JSONPath], second: Sequence[JSONPath]) -> bool:
    """True when exactly one side is declared entirely inside shared components."""
    return _declared_in_components(first) != _declared_in_components(second)


def _declared_in_components(paths: Sequence[JSONPath]) -> bool:
    return all(match_shared_component(path) is not None for path in paths)

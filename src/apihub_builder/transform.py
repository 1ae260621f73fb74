"""Conversion of comparison results into their serializable DTO forms."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any, TypeAlias

from .consts import (
    DIFF_ACTION_ADD,
    DIFF_ACTION_REMOVE,
    DIFF_ACTION_RENAME,
    DIFF_ACTION_REPLACE,
    RISKY_CHANGE_TYPE,
    SEMI_BREAKING_CHANGE_TYPE,
)
from .hashes import calculate_object_hash
from .model_types import (
    ChangeMessage,
    ChangeSummary,
    Diff,
    OperationChanges,
    OperationChangesDto,
    OperationType,
    VersionsComparison,
    VersionsComparisonDto,
)

ErrorLogger: TypeAlias = Callable[[str], None]


def to_change_type_dto(change_type: str) -> str:
    """Wire name of a change type; ``risky`` is published as ``semi-breaking``."""
    return SEMI_BREAKING_CHANGE_TYPE if change_type == RISKY_CHANGE_TYPE else change_type


def to_change_summary_dto(summary: Mapping[str, Any]) -> ChangeSummary:
    """Rename the buckets of a change summary to their wire names."""
    return {to_change_type_dto(change_type): count for change_type, count in summary.items()}


def to_change_message(diff: Diff, log_error: ErrorLogger) -> ChangeMessage:
    """Convert one diff into a change message, reporting incomplete diffs.

    Only the fields meaningful for the diff action are carried over: added
    values have no previous side, removed values no current side.
    """
    base = ChangeMessage(
        severity=to_change_type_dto(diff.type),
        action=diff.action,
        scope=diff.scope,
        description=diff.description,
    )
    before_paths = tuple(diff.before_declaration_paths)
    after_paths = tuple(diff.after_declaration_paths)

    if diff.action == DIFF_ACTION_ADD:
        if diff.after_value is None:
            log_error("Add diff has undefined after value")
        if not after_paths:
            log_error("Add diff has empty after declaration paths")
        return replace(
            base,
            current_declaration_json_paths=after_paths,
            current_value_hash=_hash(diff.after_value),
        )

    if diff.action == DIFF_ACTION_REMOVE:
        if diff.before_value is None:
            log_error("Remove diff has undefined before value")
        if not before_paths:
            log_error("Remove diff has empty before declaration paths")
        return replace(
            base,
            previous_declaration_json_paths=before_paths,
            previous_value_hash=_hash(diff.before_value),
        )

    if diff.action == DIFF_ACTION_REPLACE:
        if diff.before_value is None and diff.after_value is None:
            log_error("Replace diff has undefined before and after values")
        if not before_paths and not after_paths:
            log_error("Replace diff has empty before and after declaration paths")
        return replace(
            base,
            previous_declaration_json_paths=before_paths,
            current_declaration_json_paths=after_paths,
            previous_value_hash=_hash(diff.before_value),
            current_value_hash=_hash(diff.after_value),
        )

    if diff.action == DIFF_ACTION_RENAME:
        if not before_paths and not after_paths:
            log_error("Rename diff has empty before and after declaration paths")
        if diff.before_key is None and diff.after_key is None:
            log_error("Rename diff has empty before and after keys")
        return replace(
            base,
            previous_declaration_json_paths=before_paths,
            current_declaration_json_paths=after_paths,
            previous_key=diff.before_key,
            current_key=diff.after_key,
        )

    log_error(f'Diff has unsupported action "{diff.action}"')
    return base


def to_operation_changes_dto(
    changes: OperationChanges, log_error: ErrorLogger
) -> OperationChangesDto:
    """Convert operation changes; the impacted summary is not published."""
    return OperationChangesDto(
        api_type=changes.api_type,
        change_summary=to_change_summary_dto(changes.change_summary),
        operation_id=changes.operation_id,
        previous_operation_id=changes.previous_operation_id,
        api_kind=changes.api_kind,
        previous_api_kind=changes.previous_api_kind,
        data_hash=changes.data_hash,
        previous_data_hash=changes.previous_data_hash,
        metadata=dict(changes.metadata),
        changes=tuple(to_change_message(diff, log_error) for diff in changes.diffs),
    )


def to_operation_type_dto(operation_type: OperationType) -> OperationType:
    return replace(
        operation_type,
        changes_summary=to_change_summary_dto(operation_type.changes_summary),
        number_of_impacted_operations=to_change_summary_dto(
            operation_type.number_of_impacted_operations
        ),
    )


def to_versions_comparison_dto(
    comparison: VersionsComparison, log_error: ErrorLogger
) -> VersionsComparisonDto:
    """Convert a versions comparison and every operation change it holds."""
    return VersionsComparisonDto(
        package_id=comparison.package_id,
        version=comparison.version,
        previous_version=comparison.previous_version,
        previous_version_package_id=comparison.previous_version_package_id,
        operation_types=tuple(to_operation_type_dto(item) for item in comparison.operation_types),
        from_cache=comparison.from_cache,
        revision=comparison.revision,
        previous_version_revision=comparison.previous_version_revision,
        comparison_file_id=comparison.comparison_file_id,
        data=tuple(to_operation_changes_dto(item, log_error) for item in comparison.data),
    )


def _hash(value: Any) -> str:
    return calculate_object_hash(value) if value is not None else ""

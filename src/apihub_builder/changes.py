"""Change summaries and reclassification of diffs reported by the diff engine."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import Any, Optional, TypeVar

from .consts import (
    API_KIND_NO_BWC,
    BREAKING_CHANGE_TYPE,
    CHANGE_TYPES,
    RISKY_CHANGE_TYPE,
)
from .hashes import calculate_object_hash
from .json_types import JSONPath
from .model_types import (
    ApiAudienceTransition,
    ChangeMessage,
    ChangeSummary,
    Diff,
    ImpactedSummary,
    OperationChanges,
    empty_change_summary,
)

T = TypeVar("T")


class ChangeClassificationError(RuntimeError):
    """Raised when a diff cannot be reclassified without breaking summary counters."""


def calculate_change_summary(diffs: Iterable[Diff]) -> ChangeSummary:
    """Count diffs per change type; every change type is present in the result."""
    summary = empty_change_summary()
    for diff in diffs:
        if diff.type in summary:
            summary[diff.type] += 1
    return summary


def calculate_impacted_summary(summaries: Sequence[ChangeSummary]) -> ImpactedSummary:
    """Flag every change type that has a positive count in any of ``summaries``."""
    return {
        change_type: any(summary.get(change_type, 0) > 0 for summary in summaries)
        for change_type in CHANGE_TYPES
    }


def calculate_total_impacted_summary(summaries: Iterable[ImpactedSummary]) -> ChangeSummary:
    """Count, per change type, how many operations are impacted."""
    total = empty_change_summary()
    for summary in summaries:
        for change_type in CHANGE_TYPES:
            total[change_type] += 1 if summary.get(change_type) else 0
    return total


def total_changes(summary: Optional[ChangeSummary]) -> int:
    """Return the number of changes of any type in ``summary``."""
    if not summary:
        return 0
    return sum(summary.values())


def mark_change_as_risky(diff: Diff, operation_changes: OperationChanges) -> None:
    """Reclassify one breaking diff of ``operation_changes`` as risky.

    Both summaries of the operation are updated in place so they keep
    describing the diffs: the breaking count drops by one, the risky count
    grows by one, the impacted breaking flag follows the remaining breaking
    count and the impacted risky flag is set.

    Args:
        diff (Diff): Diff currently classified as breaking.
        operation_changes (OperationChanges): Changes record the diff belongs to.

    Raises:
        ChangeClassificationError: If the diff is not breaking or the breaking
            bucket is already empty. Counters are left untouched in that case.
    """
    change_summary = operation_changes.change_summary
    breaking_count = change_summary.get(BREAKING_CHANGE_TYPE, 0)
    if diff.type != BREAKING_CHANGE_TYPE:
        raise ChangeClassificationError(
            f'Only breaking changes can be marked as risky, received: "{diff.type}"'
        )
    if breaking_count <= 0:
        raise ChangeClassificationError(
            "Cannot mark change as risky: breaking changes counter is already zero"
        )

    diff.type = RISKY_CHANGE_TYPE
    change_summary[BREAKING_CHANGE_TYPE] = breaking_count - 1
    change_summary[RISKY_CHANGE_TYPE] = change_summary.get(RISKY_CHANGE_TYPE, 0) + 1

    impacted_summary = operation_changes.impacted_summary
    impacted_summary[BREAKING_CHANGE_TYPE] = change_summary[BREAKING_CHANGE_TYPE] > 0
    impacted_summary[RISKY_CHANGE_TYPE] = True


def validate_bwc_breaking_changes(operation_changes: OperationChanges) -> None:
    """Downgrade breaking diffs of operations not covered by backward compatibility."""
    api_kinds = (operation_changes.api_kind, operation_changes.previous_api_kind)
    if API_KIND_NO_BWC not in api_kinds:
        return

    for diff in operation_changes.diffs:
        if diff.type == BREAKING_CHANGE_TYPE:
            mark_change_as_risky(diff, operation_changes)


def calculate_api_audience_transitions(
    current: Optional[Any],
    previous: Optional[Any],
    transitions: list[ApiAudienceTransition],
) -> None:
    """Record that a paired operation moved from one audience to another.

    Operations without an audience on either side, or with the same audience
    on both sides, are ignored.
    """
    current_audience = getattr(current, "api_audience", None)
    previous_audience = getattr(previous, "api_audience", None)
    if not current_audience or not previous_audience:
        return
    if current_audience == previous_audience:
        return

    for transition in transitions:
        if (
            transition.current_audience == current_audience
            and transition.previous_audience == previous_audience
        ):
            transition.operations_count += 1
            return

    transitions.append(
        ApiAudienceTransition(
            previous_audience=previous_audience,
            current_audience=current_audience,
        )
    )


def calculate_diff_id(diff: Diff) -> str:
    """Identity of a diff; diffs shared by several operations get the same id."""
    return calculate_change_id(
        ChangeMessage(
            severity=diff.type,
            action=diff.action,
            scope=diff.scope,
            previous_declaration_json_paths=tuple(diff.before_declaration_paths),
            current_declaration_json_paths=tuple(diff.after_declaration_paths),
            previous_value_hash=_value_hash(diff.before_value),
            current_value_hash=_value_hash(diff.after_value),
            previous_key=diff.before_key,
            current_key=diff.after_key,
        )
    )


def calculate_change_id(change: ChangeMessage) -> str:
    """Identity of a change message built from its paths, hashes, keys and severity."""
    previous_paths = _format_paths(change.previous_declaration_json_paths)
    current_paths = _format_paths(change.current_declaration_json_paths)
    return "-".join(
        (
            previous_paths,
            current_paths,
            change.previous_value_hash,
            change.current_value_hash,
            change.scope,
            change.previous_key or "",
            change.current_key or "",
            change.severity,
        )
    )


def remove_duplicates(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Keep the first item per key, in input order; items with an empty key are dropped."""
    unique: dict[Hashable, T] = {}
    for item in items:
        item_key = key(item)
        if not item_key or item_key in unique:
            continue
        unique[item_key] = item
    return list(unique.values())


def _value_hash(value: Any) -> str:
    return calculate_object_hash(value) if value is not None else ""


def _format_paths(paths: Iterable[JSONPath]) -> str:
    formatted = sorted(f"[{','.join(str(segment) for segment in path)}]" for path in paths)
    return f"[{','.join(formatted)}]"

"""Tests for version comparison orchestration with in-memory resolvers."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

import pytest

from apihub_builder.batching import iter_batches
from apihub_builder.compare import (
    CompareContext,
    ComparisonError,
    compare_versions,
    compare_versions_references,
    get_splitted_version_key,
)
from apihub_builder.config import BuildConfig
from apihub_builder.consts import (
    BREAKING_CHANGE_TYPE,
    NON_BREAKING_CHANGE_TYPE,
    SEMI_BREAKING_CHANGE_TYPE,
    MessageSeverity,
)
from apihub_builder.model_types import ApiAudienceTransition, Diff, OperationType
from apihub_builder.resolvers import (
    ResolvedComparisonSummary,
    ResolvedOperations,
    ResolvedReference,
)

from .fixture_helpers import FakeComparator, InMemoryRegistry, rest_operation

_CONFIG = BuildConfig(package_id="petstore", version="2.0", previous_version="1.0")


def _changed_diff() -> Diff:
    return Diff(
        type=BREAKING_CHANGE_TYPE,
        action="replace",
        scope="response",
        before_declaration_paths=[("paths", "/pets", "get", "responses", "200")],
        after_declaration_paths=[("paths", "/pets", "get", "responses", "200")],
        before_value="array",
        after_value="object",
    )


def _registry(*, current_pets_kind: str = "bwc") -> InMemoryRegistry:
    registry = InMemoryRegistry()
    registry.add_version(
        "petstore",
        "1.0",
        [
            rest_operation("pets-get", "a1", api_audience="external", tags=("pets",)),
            rest_operation("pets-post", "b1"),
            rest_operation("old-delete", "c1", tags=("legacy",)),
        ],
    )
    registry.add_version(
        "petstore",
        "2.0",
        [
            rest_operation(
                "pets-get",
                "a2",
                api_audience="internal",
                api_kind=current_pets_kind,
                tags=("pets",),
            ),
            rest_operation("pets-post", "b1"),
            rest_operation("new-put", "d1", tags=("store",)),
        ],
    )
    return registry


def _comparator() -> FakeComparator:
    return FakeComparator(
        diffs={
            ("pets-get", "pets-get"): [_changed_diff()],
            (None, "new-put"): [
                Diff(
                    type=NON_BREAKING_CHANGE_TYPE,
                    action="add",
                    scope="request",
                    after_declaration_paths=[("paths", "/new", "put")],
                    after_value={"operationId": "new"},
                )
            ],
            ("old-delete", None): [
                Diff(
                    type=BREAKING_CHANGE_TYPE,
                    action="remove",
                    scope="request",
                    before_declaration_paths=[("paths", "/old", "delete")],
                    before_value={"operationId": "old"},
                )
            ],
        }
    )


def _context(
    registry: InMemoryRegistry,
    comparator: FakeComparator,
    config: BuildConfig = _CONFIG,
    *,
    with_references: bool = False,
) -> CompareContext:
    return CompareContext(
        config=config,
        resolvers=registry.resolvers(with_references=with_references),
        comparators=(comparator,),
        batch_size=2,
    )


@pytest.mark.asyncio
async def test_added_removed_and_changed_operations_are_reported() -> None:
    """Every kind of operation change ends up in the comparison."""
    registry = _registry()
    comparator = _comparator()
    ctx = _context(registry, comparator)

    comparisons = await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)

    assert len(comparisons) == 1
    comparison = comparisons[0]
    assert comparison.package_id == "petstore"
    assert comparison.version == "2.0"
    assert comparison.previous_version == "1.0"
    assert comparison.comparison_file_id == "1.0_petstore_2.0_petstore"
    assert [
        (item.previous_operation_id, item.operation_id) for item in comparison.data
    ] == [("old-delete", None), (None, "new-put"), ("pets-get", "pets-get")]
    assert ("pets-post", "pets-post") not in comparator.calls

    (operation_type,) = comparison.operation_types
    assert isinstance(operation_type, OperationType)
    assert operation_type.changes_summary[BREAKING_CHANGE_TYPE] == 2
    assert operation_type.changes_summary[NON_BREAKING_CHANGE_TYPE] == 1
    assert operation_type.number_of_impacted_operations[BREAKING_CHANGE_TYPE] == 2
    assert operation_type.tags == ("legacy", "pets", "store")
    assert operation_type.api_audience_transitions == (
        ApiAudienceTransition(previous_audience="external", current_audience="internal"),
    )
    assert ctx.notifications == []


@pytest.mark.asyncio
async def test_changed_operation_metadata_includes_previous_side() -> None:
    """Changed operations keep the metadata of both sides and their hashes."""
    ctx = _context(_registry(), _comparator())

    (comparison,) = await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)
    changed = comparison.data[-1]

    assert changed.data_hash == "a2"
    assert changed.previous_data_hash == "a1"
    assert changed.metadata["title"] == "pets get"
    assert changed.metadata["previous_operation_metadata"]["tags"] == ["pets"]
    (message,) = changed.changes
    assert message.severity == BREAKING_CHANGE_TYPE
    assert message.previous_value_hash and message.current_value_hash


@pytest.mark.asyncio
async def test_no_bwc_operations_report_semi_breaking_changes() -> None:
    """Breaking changes of no-bwc operations are published as semi-breaking."""
    ctx = _context(_registry(current_pets_kind="no-bwc"), _comparator())

    (comparison,) = await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)
    changed = comparison.data[-1]

    assert changed.change_summary[BREAKING_CHANGE_TYPE] == 0
    assert changed.change_summary[SEMI_BREAKING_CHANGE_TYPE] == 1
    assert [message.severity for message in changed.changes] == [SEMI_BREAKING_CHANGE_TYPE]
    assert comparison.operation_types[0].changes_summary[BREAKING_CHANGE_TYPE] == 1


@pytest.mark.asyncio
async def test_shared_diffs_are_counted_once_per_api_type() -> None:
    """Identical diffs reported for several operations are summarized once."""
    registry = _registry()
    comparator = _comparator()
    comparator.diffs[("old-delete", None)] = [_changed_diff()]
    ctx = _context(registry, comparator)

    (comparison,) = await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)

    assert comparison.operation_types[0].changes_summary[BREAKING_CHANGE_TYPE] == 1
    assert comparison.operation_types[0].number_of_impacted_operations[BREAKING_CHANGE_TYPE] == 2


@pytest.mark.asyncio
async def test_missing_operation_data_is_reported() -> None:
    """Pairs whose payload cannot be loaded are skipped with an error notification."""
    registry = _registry()
    stored = registry.operations[("petstore", "2.0")]
    stored[0] = replace(stored[0], data=None)
    ctx = _context(registry, _comparator())

    (comparison,) = await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)

    assert all(item.operation_id != "pets-get" for item in comparison.data)
    (notification,) = ctx.notifications
    assert notification.severity is MessageSeverity.ERROR
    assert "Current operation data not found" in notification.message
    assert "(pets-get)" in notification.message


@pytest.mark.asyncio
async def test_unresolvable_added_operations_fail_the_comparison() -> None:
    """Added operations that cannot be loaded abort with an error."""
    registry = _registry()
    stored_resolver = registry.version_operations_resolver

    async def forgetful_resolver(
        api_type: str,
        version: str,
        package_id: str,
        operation_ids: Optional[list[str]] = None,
        include_data: bool = True,
    ) -> Optional[ResolvedOperations]:
        if include_data and operation_ids == ["new-put"]:
            return None
        return await stored_resolver(api_type, version, package_id, operation_ids, include_data)

    registry.version_operations_resolver = forgetful_resolver
    ctx = _context(registry, _comparator())

    with pytest.raises(ComparisonError, match="Cannot get operations for package petstore"):
        await compare_versions(("1.0", "petstore"), ("2.0", "petstore"), ctx)
    assert ctx.notifications[0].severity is MessageSeverity.ERROR


@pytest.mark.asyncio
async def test_without_previous_version_every_operation_is_added() -> None:
    """A comparison with no previous side reports all current operations as added."""
    ctx = _context(_registry(), _comparator())

    (comparison,) = await compare_versions(None, ("2.0", "petstore"), ctx)

    assert comparison.previous_version == ""
    assert comparison.previous_version_package_id == ""
    assert [item.operation_id for item in comparison.data] == ["pets-get", "pets-post", "new-put"]
    assert all(item.previous_operation_id is None for item in comparison.data)


@pytest.mark.asyncio
async def test_cached_reference_comparisons_are_reused() -> None:
    """Reference pairs with a stored comparison are not recomputed."""
    registry = _registry()
    registry.references[("petstore", "1.0")] = [ResolvedReference(ref_id="lib", version="1.0@2")]
    registry.references[("petstore", "2.0")] = [ResolvedReference(ref_id="lib", version="1.1@1")]
    cached_type = OperationType(
        api_type="rest",
        changes_summary={BREAKING_CHANGE_TYPE: 3},
        number_of_impacted_operations={BREAKING_CHANGE_TYPE: 1},
    )
    registry.comparisons[("lib", "1.1@1", "lib", "1.0@2")] = ResolvedComparisonSummary(
        package_id="lib",
        version="1.1@1",
        previous_version="1.0@2",
        previous_version_package_id="lib",
        operation_types=(cached_type,),
    )
    ctx = _context(registry, _comparator(), with_references=True)

    (reference,) = await compare_versions_references(
        ("1.0", "petstore"), ("2.0", "petstore"), ctx
    )

    assert reference.from_cache is True
    assert reference.package_id == "lib"
    assert (reference.version, reference.revision) == ("1.1", 1)
    assert (reference.previous_version, reference.previous_version_revision) == ("1.0", 2)
    assert reference.operation_types == (cached_type,)


@pytest.mark.parametrize(
    ("version", "expected"),
    [("1.0@3", ("1.0", 3)), ("1.0", ("1.0", 0)), ("1.0@x", ("1.0", 0)), (None, ("", 0))],
)
def test_splitted_version_key(version: Optional[str], expected: tuple[str, int]) -> None:
    """Revisions follow the ``@`` delimiter and default to zero."""
    assert get_splitted_version_key(version) == expected


def test_batches_keep_order() -> None:
    """Batches are consecutive slices of the requested size."""
    assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError, match="batch_size must be positive"):
        list(iter_batches([1], 0))

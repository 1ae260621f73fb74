"""Unit tests for JSON schema validation and the format predicates."""

from __future__ import annotations

from typing import Any

import pytest
from jsonschema.protocols import Validator

from apihub_builder.validation import (
    SchemaValidatorCache,
    compile_validator,
    is_json,
    is_yaml,
    validate_document,
)

PET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "name"],
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
}


class CountingCompiler:
    """Compiler double that records how often each schema was compiled."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, schema: Any) -> Validator:
        self.calls += 1
        return compile_validator(schema)


def test_identical_schema_object_is_compiled_once() -> None:
    """Validating twice with the same schema instance reuses the compiled validator."""
    compiler = CountingCompiler()
    cache = SchemaValidatorCache(compiler)
    data = {"id": "1", "tags": [1]}

    first = validate_document(PET_SCHEMA, data, cache)
    second = validate_document(PET_SCHEMA, dict(data), cache)

    assert compiler.calls == 1
    assert first == second
    assert len(cache) == 1


def test_equal_but_distinct_schema_objects_compile_separately() -> None:
    """The cache is keyed by identity, not by schema content."""
    compiler = CountingCompiler()
    cache = SchemaValidatorCache(compiler)

    validate_document(PET_SCHEMA, {}, cache)
    validate_document(dict(PET_SCHEMA), {}, cache)

    assert compiler.calls == 2


def test_issues_carry_pointers_in_document_order() -> None:
    """Issues name the instance location and the failing keyword."""
    issues = validate_document(PET_SCHEMA, {"id": "1", "name": "Rex", "tags": ["a", 2]})

    assert [(issue.instance_path, issue.keyword) for issue in issues] == [
        ("/id", "type"),
        ("/tags/1", "type"),
    ]
    assert all(issue.schema_path.startswith("/properties/") for issue in issues)


def test_valid_document_has_no_issues() -> None:
    """A conforming document yields an empty issue list."""
    assert validate_document(PET_SCHEMA, {"id": 1, "name": "Rex"}) == []


def test_invalid_schema_is_reported_as_issue() -> None:
    """Compilation failures never escape to the caller."""
    issues = validate_document({"type": 12}, {}, SchemaValidatorCache())

    assert len(issues) == 1
    assert issues[0].keyword == "schema"
    assert issues[0].message.startswith("Invalid schema:")


def test_compiler_failure_is_reported_as_issue() -> None:
    """Unexpected compiler errors become a single synthetic issue."""

    def failing_compiler(schema: Any) -> Validator:
        raise RuntimeError("compiler exploded")

    issues = SchemaValidatorCache(failing_compiler).validate(PET_SCHEMA, {})

    assert [issue.message for issue in issues] == ["compiler exploded"]


@pytest.mark.parametrize(
    ("text", "expected"),
    [('{"a": 1}', True), ("[1, 2]", True), ("a: 1", False), ("{broken", False), ("", False)],
)
def test_is_json(text: str, expected: bool) -> None:
    """``is_json`` answers without raising."""
    assert is_json(text) is expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [("a: 1", True), ('{"a": 1}', True), ("key: [unclosed", False), ("a: b: c", False)],
)
def test_is_yaml(text: str, expected: bool) -> None:
    """``is_yaml`` answers without raising."""
    assert is_yaml(text) is expected


def test_cache_evicts_least_recently_used_schema() -> None:
    """The cache stays bounded and recompiles schemas it has evicted."""
    compiler = CountingCompiler()
    cache = SchemaValidatorCache(compiler, max_entries=2)
    schemas = [{"type": "object", "title": f"s{index}"} for index in range(5)]

    for schema in schemas:
        validate_document(schema, {}, cache)
    validate_document(schemas[-1], {}, cache)
    validate_document(schemas[0], {}, cache)

    assert len(cache) == 2
    assert compiler.calls == 6


def test_cache_size_must_be_positive() -> None:
    """A cache that can hold nothing is rejected."""
    with pytest.raises(ValueError, match="max_entries must be positive"):
        SchemaValidatorCache(max_entries=0)


def test_array_issues_are_ordered_by_index() -> None:
    """Index 2 is reported before index 10."""
    tags: list[Any] = ["ok"] * 11
    tags[2] = 2
    tags[10] = 10

    issues = validate_document(PET_SCHEMA, {"id": 1, "name": "Rex", "tags": tags})

    assert [issue.instance_path for issue in issues] == ["/tags/2", "/tags/10"]


@pytest.mark.parametrize("text", ["NaN", "Infinity", "-Infinity", '{"a": NaN}'])
def test_is_json_rejects_non_standard_constants(text: str) -> None:
    """Constants Python accepts but strict JSON does not are rejected."""
    assert is_json(text) is False

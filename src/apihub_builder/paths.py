"""JSON path helpers shared by deprecation history and indexing."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from .json_types import JSONPath

ANY_PATH_SEGMENT = "*"
COMPONENTS_SEGMENT = "components"

_TRIM_RULES: tuple[JSONPath, ...] = (
    ("servers", ANY_PATH_SEGMENT),
    ("paths", ANY_PATH_SEGMENT),
    ("components", ANY_PATH_SEGMENT, ANY_PATH_SEGMENT),
    ("security", ANY_PATH_SEGMENT),
    ("externalDocs",),
)

_OPERATION_PATH_TEMPLATES: tuple[JSONPath, ...] = (
    ("paths", ANY_PATH_SEGMENT, ANY_PATH_SEGMENT),
    ("operations", ANY_PATH_SEGMENT),
)


class PathMatchError(RuntimeError):
    """Raised when a component path carries non-string type or name segments."""


@dataclass(frozen=True)
class SharedComponent:
    """Component type and name a declaration path points into."""

    component_type: str
    component_name: str


def path_starts_with(path: Sequence[object], template: Sequence[object]) -> bool:
    """Return True when ``path`` begins with ``template`` (``*`` matches any segment)."""
    if len(path) < len(template):
        return False
    return all(
        segment == ANY_PATH_SEGMENT or path[index] == segment
        for index, segment in enumerate(template)
    )


def path_matches_with(path: Sequence[object], template: Sequence[object]) -> bool:
    """Return True when ``path`` has the template length and matches it segment-wise."""
    return len(path) == len(template) and path_starts_with(path, template)


def trim_path(path: JSONPath) -> JSONPath:
    """Cut a path down to the document-level declaration it belongs to."""
    for rule in _TRIM_RULES:
        if path_starts_with(path, rule):
            return tuple(path[: len(rule)])
    return tuple(path)


def are_declaration_paths_equal(
    first: Sequence[Sequence[object]],
    second: Sequence[Sequence[object]],
) -> bool:
    """Compare two declaration path lists as sets, ignoring order."""
    if len(first) != len(second):
        return False
    first_keys = {_path_key(path) for path in first}
    second_keys = {_path_key(path) for path in second}
    return first_keys == second_keys


def match_shared_component(path: Sequence[object]) -> Optional[SharedComponent]:
    """Return the component a path is declared in, or None for inline declarations.

    Raises:
        PathMatchError: If the component type or name segment is not a string.
    """
    if len(path) < 3 or path[0] != COMPONENTS_SEGMENT:
        return None
    component_type, component_name = path[1], path[2]
    if not isinstance(component_type, str) or not isinstance(component_name, str):
        raise PathMatchError(
            f"Component type and name can only be a string. JSON path: {list(path)}"
        )
    return SharedComponent(component_type=component_type, component_name=component_name)


def is_operation_declaration(paths: Sequence[Sequence[object]]) -> bool:
    """Return True when every path addresses an operation object itself."""
    if not paths:
        return False
    return all(
        any(path_matches_with(path, template) for template in _OPERATION_PATH_TEMPLATES)
        for path in paths
    )


def _path_key(path: Sequence[object]) -> str:
    return json.dumps(list(path), separators=(",", ":"), ensure_ascii=False)

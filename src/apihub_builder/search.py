"""Search-scope indexing of operation objects driven by crawl rule tables."""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, TypeAlias, Union

from .model_types import SearchScopes
from .paths import ANY_PATH_SEGMENT

SEARCH_SCOPE_ALL = "all"
REF_PROPERTY = "$ref"

CrawlRulesEntry: TypeAlias = Union["CrawlRules", Callable[[], "CrawlRules"]]


@dataclass(frozen=True)
class CrawlRule:
    """Scope markers of one crawl rule node.

    ``value_scopes`` indexes the node value itself; ``key_scopes`` indexes the
    property name the value is stored under. ``None`` means the marker is
    absent, an empty tuple indexes into ``all`` only.
    """

    value_scopes: Optional[tuple[str, ...]] = None
    key_scopes: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class CrawlRules:
    """A node of a crawl rule table.

    ``children`` maps a path segment to the rules of that child. Entries may be
    zero-argument factories so recursive tables (JSON schema inside JSON
    schema) are only expanded while a document is crawled.
    """

    rule: Optional[CrawlRule] = None
    children: Mapping[str, CrawlRulesEntry] = field(default_factory=dict)

    def child(self, key: Union[str, int]) -> Optional[CrawlRules]:
        """Return rules for ``key``; an exact segment wins over ``*``."""
        entry = self.children.get(str(key))
        if entry is None:
            entry = self.children.get(ANY_PATH_SEGMENT)
        if entry is None:
            return None
        if callable(entry):
            return entry()
        return entry


def value_rule(
    *scopes: str, children: Optional[Mapping[str, CrawlRulesEntry]] = None
) -> CrawlRules:
    """Rules node that indexes the value under ``scopes``."""
    return CrawlRules(rule=CrawlRule(value_scopes=tuple(scopes)), children=children or {})


def key_rule(
    *scopes: str, children: Optional[Mapping[str, CrawlRulesEntry]] = None
) -> CrawlRules:
    """Rules node that indexes the property name under ``scopes``."""
    return CrawlRules(rule=CrawlRule(key_scopes=tuple(scopes)), children=children or {})


def build_search_scope(
    key: Union[str, int, None],
    value: Any,
    rule: CrawlRule,
    scopes: SearchScopes,
) -> None:
    """Add the search token of one crawled node to ``scopes``.

    Args:
        key (str | int | None): Property name or array index of the node.
        value (Any): Node value.
        rule (CrawlRule): Markers of the rules node matched for ``key``.
        scopes (SearchScopes): Accumulator mutated in place.
    """
    if rule.value_scopes is not None:
        target_scopes = rule.value_scopes
        token = _value_token(key, value)
    elif rule.key_scopes is not None and key:
        target_scopes = rule.key_scopes
        token = str(key)
    else:
        return

    if token is None:
        return

    scopes.setdefault(SEARCH_SCOPE_ALL, set()).add(token)
    for scope in target_scopes:
        scopes.setdefault(scope, set()).add(token)


def crawl_search_scopes(
    value: Any,
    rules: CrawlRules,
    scopes: Optional[SearchScopes] = None,
) -> SearchScopes:
    """Walk ``value`` depth-first and collect search tokens wherever ``rules`` apply.

    Containers already visited (by identity) are not crawled again, and the
    walk stops below any node no rule applies to.
    """
    collected: SearchScopes = scopes if scopes is not None else {}
    visited: set[int] = set()
    _crawl(None, value, rules, collected, visited)
    return collected


def _crawl(
    key: Union[str, int, None],
    value: Any,
    rules: CrawlRules,
    scopes: SearchScopes,
    visited: set[int],
) -> None:
    if isinstance(value, (dict, list)):
        if id(value) in visited:
            return
        visited.add(id(value))

    if rules.rule is not None:
        build_search_scope(key, value, rules.rule, scopes)

    if isinstance(value, dict):
        items: list[tuple[Union[str, int], Any]] = list(value.items())
    elif isinstance(value, list):
        items = list(enumerate(value))
    else:
        return

    for child_key, child_value in items:
        child_rules = rules.child(child_key)
        if child_rules is None:
            continue
        _crawl(child_key, child_value, child_rules, scopes, visited)


def _value_token(key: Union[str, int, None], value: Any) -> Optional[str]:
    if isinstance(value, list):
        return " ".join(_join_item(item) for item in value)
    if isinstance(value, dict):
        rest = {name: item for name, item in value.items() if name != REF_PROPERTY}
        return json.dumps(rest, separators=(",", ":"), ensure_ascii=False, default=str)
    # bool before numbers: bool is an int subclass
    if isinstance(value, bool):
        return str(key)
    if isinstance(value, (int, float)):
        return _format_number(value)
    if value is None:
        return None
    return str(value)


def _join_item(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, (int, float)):
        return _format_number(item)
    if isinstance(item, list):
        return ",".join(_join_item(nested) for nested in item)
    if isinstance(item, dict):
        return json.dumps(item, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(item)


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)

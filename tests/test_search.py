"""Unit tests for search-scope tokens and crawl rule tables."""

from __future__ import annotations

import json

import yaml

from apihub_builder.model_types import SearchScopes
from apihub_builder.rest_rules import (
    OPENAPI_RULES,
    REST_SCOPE_ANNOTATION,
    REST_SCOPE_PROPERTIES,
    REST_SCOPE_REQUEST,
    REST_SCOPE_RESPONSE,
    calculate_operation_search_scopes,
)
from apihub_builder.search import (
    SEARCH_SCOPE_ALL,
    CrawlRule,
    CrawlRules,
    build_search_scope,
    crawl_search_scopes,
    value_rule,
)

from .fixture_helpers import fixture_dir


def test_boolean_value_token_is_the_key_name() -> None:
    """Flags are searchable by their property name, not by ``true``."""
    scopes: SearchScopes = {}

    build_search_scope("readOnly", True, CrawlRule(value_scopes=("response",)), scopes)

    assert scopes == {SEARCH_SCOPE_ALL: {"readOnly"}, "response": {"readOnly"}}


def test_object_token_drops_ref() -> None:
    """Object tokens are compact JSON without ``$ref``."""
    scopes: SearchScopes = {}
    value = {"$ref": "#/components/schemas/X", "description": "d"}

    build_search_scope("schema", value, CrawlRule(value_scopes=("request",)), scopes)

    expected = json.dumps({"description": "d"}, separators=(",", ":"))
    assert scopes["request"] == {expected}
    assert scopes[SEARCH_SCOPE_ALL] == {expected}
    assert all("$ref" not in token for token in scopes[SEARCH_SCOPE_ALL])


def test_scalar_and_list_tokens() -> None:
    """Lists are space joined, integral floats print as integers, None is skipped."""
    scopes: SearchScopes = {}
    rule = CrawlRule(value_scopes=("properties",))

    build_search_scope("enum", ["a", 1, None, True], rule, scopes)
    build_search_scope("minimum", 2.0, rule, scopes)
    build_search_scope("default", None, rule, scopes)

    assert scopes["properties"] == {"a 1  true", "2"}


def test_key_rule_indexes_property_name() -> None:
    """Key scopes index the name the value is stored under."""
    scopes: SearchScopes = {}

    build_search_scope("X-Request-Id", {"schema": {}}, CrawlRule(key_scopes=("request",)), scopes)
    build_search_scope(None, {"schema": {}}, CrawlRule(key_scopes=("request",)), scopes)

    assert scopes == {SEARCH_SCOPE_ALL: {"X-Request-Id"}, "request": {"X-Request-Id"}}


def test_crawl_stops_where_no_rule_applies() -> None:
    """Only branches described by the rule table are indexed."""
    rules = CrawlRules(
        children={
            "info": CrawlRules(children={"title": value_rule("annotation")}),
            "*": CrawlRules(children={"name": value_rule("properties")}),
        }
    )
    document = {
        "info": {"title": "Pets", "name": "hidden"},
        "items": {"name": "Rex", "nested": {"name": "skipped"}},
    }

    scopes = crawl_search_scopes(document, rules)

    assert scopes["annotation"] == {"Pets"}
    assert scopes["properties"] == {"Rex"}
    assert scopes[SEARCH_SCOPE_ALL] == {"Pets", "Rex"}


def test_crawl_visits_shared_objects_once() -> None:
    """Objects reachable twice are crawled on their first visit only."""
    shared = {"name": "Rex"}
    rules = CrawlRules(children={"*": CrawlRules(children={"name": value_rule("properties")})})

    scopes = crawl_search_scopes({"first": shared, "second": shared}, rules)

    assert scopes["properties"] == {"Rex"}


def test_operation_scopes_cover_request_and_response() -> None:
    """A REST operation is indexed into request, response and property scopes."""
    document = yaml.safe_load((fixture_dir() / "petstore.yaml").read_text(encoding="utf-8"))
    operation = document["paths"]["/pets"]["get"]

    scopes = calculate_operation_search_scopes(operation)

    assert "listPets" in scopes[REST_SCOPE_REQUEST]
    assert "List all pets" in scopes[REST_SCOPE_ANNOTATION]
    assert "limit" in scopes[REST_SCOPE_PROPERTIES]
    assert "int32" in scopes[REST_SCOPE_REQUEST]
    assert "200" in scopes[REST_SCOPE_RESPONSE]
    assert "application/json" in scopes[REST_SCOPE_RESPONSE]
    assert "A paged array of pets" in scopes[REST_SCOPE_RESPONSE]
    assert "pets" in scopes[REST_SCOPE_ANNOTATION]
    for scope_name, tokens in scopes.items():
        assert tokens <= scopes[SEARCH_SCOPE_ALL], scope_name


def test_document_rules_index_named_schemas() -> None:
    """Component schema names and property names are searchable."""
    document = yaml.safe_load((fixture_dir() / "petstore.yaml").read_text(encoding="utf-8"))

    scopes = crawl_search_scopes(document, OPENAPI_RULES)

    assert "Pet" in scopes[REST_SCOPE_ANNOTATION]
    assert {"id", "name"} <= scopes[REST_SCOPE_PROPERTIES]
    assert "Name of the pet" in scopes[REST_SCOPE_ANNOTATION]
    assert "Petstore" in scopes[REST_SCOPE_ANNOTATION]
    assert "showPetById" in scopes[REST_SCOPE_REQUEST]
    assert "deprecated" in scopes[REST_SCOPE_ANNOTATION]

"""Search-scope crawl rules for REST operations and OpenAPI documents."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from .model_types import SearchScopes
from .search import CrawlRule, CrawlRules, crawl_search_scopes, key_rule, value_rule

REST_SCOPE_ALL = "all"
REST_SCOPE_ANNOTATION = "annotation"
REST_SCOPE_REQUEST = "request"
REST_SCOPE_RESPONSE = "response"
REST_SCOPE_PROPERTIES = "properties"
REST_SCOPE_EXAMPLES = "examples"

REST_SCOPES: tuple[str, ...] = (
    REST_SCOPE_ALL,
    REST_SCOPE_ANNOTATION,
    REST_SCOPE_REQUEST,
    REST_SCOPE_RESPONSE,
    REST_SCOPE_PROPERTIES,
    REST_SCOPE_EXAMPLES,
)

_EMPTY = CrawlRules()


def _examples_rules(parent: tuple[str, ...]) -> CrawlRules:
    return CrawlRules(
        children={
            "*": CrawlRules(
                children={
                    "$ref": _EMPTY,
                    "value": value_rule(*parent, REST_SCOPE_EXAMPLES),
                    "*": value_rule(*parent, REST_SCOPE_ANNOTATION),
                }
            )
        }
    )


def json_schema_rules(
    parent: Sequence[str] = (),
    key_scopes: Optional[Sequence[str]] = None,
) -> CrawlRules:
    """Rules for a JSON schema; nested schemas expand lazily.

    Args:
        parent (Sequence[str]): Scopes inherited from the enclosing section.
        key_scopes (Sequence[str] | None): Scopes indexing the name the schema
            is stored under, used for object properties and named components.

    Returns:
        CrawlRules: Rules node for the schema object.
    """
    inherited = tuple(parent)

    def nested() -> CrawlRules:
        return json_schema_rules(inherited)

    def property_schema() -> CrawlRules:
        return json_schema_rules(inherited, (*inherited, REST_SCOPE_PROPERTIES))

    return CrawlRules(
        rule=CrawlRule(key_scopes=tuple(key_scopes)) if key_scopes is not None else None,
        children={
            "title": value_rule(*inherited, REST_SCOPE_ANNOTATION),
            "enum": value_rule(*inherited, REST_SCOPE_PROPERTIES),
            "not": nested,
            "allOf": CrawlRules(children={"*": nested}),
            "oneOf": CrawlRules(children={"*": nested}),
            "anyOf": CrawlRules(children={"*": nested}),
            "items": nested,
            "properties": CrawlRules(children={"*": property_schema}),
            "additionalProperties": nested,
            "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
            "format": value_rule(*inherited, REST_SCOPE_ANNOTATION),
            "default": value_rule(*inherited, REST_SCOPE_PROPERTIES),
            "deprecated": key_rule(*inherited, REST_SCOPE_ANNOTATION),
            "example": value_rule(*inherited, REST_SCOPE_EXAMPLES),
            "examples": _examples_rules(inherited),
        },
    )


def parameters_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "*": CrawlRules(
                children={
                    "name": value_rule(*inherited, REST_SCOPE_PROPERTIES),
                    "schema": json_schema_rules(inherited),
                    "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                    "deprecated": key_rule(*inherited, REST_SCOPE_ANNOTATION),
                }
            )
        }
    )


def headers_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "*": key_rule(
                *inherited,
                REST_SCOPE_PROPERTIES,
                children={
                    "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                    "deprecated": key_rule(*inherited, REST_SCOPE_ANNOTATION),
                },
            )
        }
    )


def content_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "*": key_rule(
                *inherited,
                children={
                    "schema": json_schema_rules(inherited),
                    "example": value_rule(*inherited, REST_SCOPE_EXAMPLES),
                    "examples": _examples_rules(inherited),
                    "encoding": CrawlRules(
                        children={
                            "contentType": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                            "headers": headers_rules(inherited),
                            "style": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                        }
                    ),
                },
            )
        }
    )


def request_bodies_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
            "content": content_rules(inherited),
        }
    )


def responses_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "*": key_rule(
                *inherited,
                REST_SCOPE_ANNOTATION,
                children={
                    "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                    "headers": headers_rules(inherited),
                    "content": content_rules(inherited),
                },
            )
        }
    )


def servers_rules(parent: Sequence[str] = ()) -> CrawlRules:
    inherited = tuple(parent)
    return CrawlRules(
        children={
            "*": CrawlRules(
                children={
                    "url": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                    "description": value_rule(*inherited, REST_SCOPE_ANNOTATION),
                    "variables": CrawlRules(
                        children={
                            "*": key_rule(
                                *inherited,
                                REST_SCOPE_ANNOTATION,
                                children={"*": value_rule(*inherited, REST_SCOPE_ANNOTATION)},
                            )
                        }
                    ),
                }
            )
        }
    )


OPERATION_RULES = CrawlRules(
    children={
        "tags": CrawlRules(children={"*": value_rule(REST_SCOPE_ANNOTATION)}),
        "summary": value_rule(REST_SCOPE_REQUEST, REST_SCOPE_ANNOTATION),
        "description": value_rule(REST_SCOPE_REQUEST, REST_SCOPE_ANNOTATION),
        "operationId": value_rule(REST_SCOPE_REQUEST, REST_SCOPE_ANNOTATION),
        "parameters": parameters_rules((REST_SCOPE_REQUEST,)),
        "requestBody": request_bodies_rules((REST_SCOPE_REQUEST,)),
        "responses": responses_rules((REST_SCOPE_RESPONSE,)),
        "servers": servers_rules((REST_SCOPE_REQUEST,)),
        "deprecated": key_rule(REST_SCOPE_REQUEST, REST_SCOPE_ANNOTATION),
    }
)

OPENAPI_RULES = CrawlRules(
    children={
        "info": CrawlRules(
            children={
                "title": value_rule(REST_SCOPE_ANNOTATION),
                "description": value_rule(REST_SCOPE_ANNOTATION),
                "contact": CrawlRules(children={"name": value_rule(REST_SCOPE_ANNOTATION)}),
                "license": CrawlRules(children={"name": value_rule(REST_SCOPE_ANNOTATION)}),
                "version": value_rule(REST_SCOPE_ANNOTATION),
            }
        ),
        "servers": servers_rules((REST_SCOPE_REQUEST,)),
        "paths": CrawlRules(
            children={"*": CrawlRules(children={"*": OPERATION_RULES})}
        ),
        "components": CrawlRules(
            children={
                "schemas": CrawlRules(
                    children={"*": json_schema_rules((), (REST_SCOPE_ANNOTATION,))}
                ),
                "responses": CrawlRules(children={"*": responses_rules()}),
                "parameters": CrawlRules(children={"*": parameters_rules()}),
                "examples": CrawlRules(
                    children={
                        "*": CrawlRules(
                            children={
                                "value": value_rule(REST_SCOPE_EXAMPLES),
                                "*": value_rule(REST_SCOPE_ANNOTATION),
                            }
                        )
                    }
                ),
                "requestBodies": CrawlRules(children={"*": request_bodies_rules()}),
                "headers": CrawlRules(children={"*": headers_rules()}),
                "securitySchemes": CrawlRules(
                    children={
                        "*": key_rule(
                            REST_SCOPE_ANNOTATION,
                            children={
                                "type": value_rule(REST_SCOPE_ANNOTATION),
                                "description": value_rule(REST_SCOPE_ANNOTATION),
                                "name": value_rule(REST_SCOPE_ANNOTATION),
                            },
                        )
                    }
                ),
            }
        ),
        "security": value_rule(REST_SCOPE_ANNOTATION),
        "tags": CrawlRules(
            children={"*": CrawlRules(children={"description": value_rule(REST_SCOPE_ANNOTATION)})}
        ),
    }
)


def calculate_operation_search_scopes(operation: dict) -> SearchScopes:
    """Collect search tokens of one REST operation object."""
    return crawl_search_scopes(operation, OPERATION_RULES)

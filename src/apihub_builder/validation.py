"""JSON schema validation of source documents with compiled validator caching."""

from __future__ import annotations

import json
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeAlias

import yaml
from jsonschema.exceptions import SchemaError
from jsonschema.protocols import Validator
from jsonschema.validators import validator_for

from .logging import get_logger

logger = get_logger("validation")

ValidatorCompiler: TypeAlias = Callable[[Any], Validator]

DEFAULT_CACHE_SIZE = 64


@dataclass(frozen=True)
class ValidationIssue:
    """One violation of a JSON schema."""

    message: str
    instance_path: str = ""
    schema_path: str = ""
    keyword: Optional[str] = None


def compile_validator(schema: Any) -> Validator:
    """Create a format-checking validator for the dialect the schema declares."""
    validator_class = validator_for(schema)
    validator_class.check_schema(schema)
    return validator_class(schema, format_checker=validator_class.FORMAT_CHECKER)


class SchemaValidatorCache:
    """Compiled validators keyed by schema object identity.

    Each entry keeps a reference to its schema so an id cannot be reused by
    another object while the entry is alive. At most ``max_entries`` schemas
    are held; the least recently used entry is evicted first, after which its
    schema can be garbage collected.
    """

    def __init__(
        self,
        compiler: ValidatorCompiler = compile_validator,
        max_entries: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._compiler = compiler
        self._max_entries = max_entries
        self._entries: OrderedDict[int, tuple[Any, Validator]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, schema: Any) -> Validator:
        """Return the validator for ``schema``, compiling it on first use."""
        key = id(schema)
        entry = self._entries.get(key)
        if entry is not None and entry[0] is schema:
            self._entries.move_to_end(key)
            return entry[1]
        validator = self._compiler(schema)
        self._entries[key] = (schema, validator)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return validator

    def clear(self) -> None:
        """Drop every compiled validator."""
        self._entries.clear()

    def validate(self, schema: Any, data: Any) -> list[ValidationIssue]:
        """Validate ``data`` and return the issues found; never raises.

        Compiler and validator failures are reported as a single issue.
        """
        try:
            validator = self.get(schema)
            errors = sorted(
                validator.iter_errors(data), key=lambda error: _path_key(error.absolute_path)
            )
        except SchemaError as exc:
            logger.debug("Schema failed to compile: %s", exc.message)
            return [ValidationIssue(message=f"Invalid schema: {exc.message}", keyword="schema")]
        except Exception as exc:
            logger.debug("Validation failed: %s", exc)
            return [ValidationIssue(message=str(exc))]

        return [
            ValidationIssue(
                message=error.message,
                instance_path=_pointer(error.absolute_path),
                schema_path=_pointer(error.absolute_schema_path),
                keyword=str(error.validator) if error.validator is not None else None,
            )
            for error in errors
        ]


_default_cache = SchemaValidatorCache()


def validate_document(
    schema: Any,
    data: Any,
    cache: Optional[SchemaValidatorCache] = None,
) -> list[ValidationIssue]:
    """Validate ``data`` against ``schema`` using the shared or an injected cache.

    The shared cache holds at most ``DEFAULT_CACHE_SIZE`` schemas.

    Args:
        schema (Any): JSON schema object; identity is the cache key.
        data (Any): Decoded document.
        cache (SchemaValidatorCache | None): Cache to use instead of the module default.

    Returns:
        list[ValidationIssue]: Issues ordered by instance location, array indices
            numerically; empty when valid.
    """
    active_cache = cache if cache is not None else _default_cache
    return active_cache.validate(schema, data)


def is_json(text: str) -> bool:
    """Return True when ``text`` parses as strict JSON (no ``NaN`` or ``Infinity``)."""
    try:
        json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        return False
    return True


def is_yaml(text: str) -> bool:
    """Return True when ``text`` parses as YAML."""
    try:
        yaml.safe_load(text)
    except (yaml.YAMLError, TypeError, ValueError):
        return False
    return True


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _path_key(path: Any) -> tuple[tuple[int, int, str], ...]:
    return tuple(
        (0, part, "") if isinstance(part, int) else (1, 0, str(part)) for part in path
    )


def _pointer(path: Any) -> str:
    return "".join(f"/{str(part).replace('~', '~0').replace('/', '~1')}" for part in path)

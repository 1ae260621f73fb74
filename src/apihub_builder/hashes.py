"""Stable content hashes of JSON values."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize a JSON value with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def calculate_object_hash(value: Any) -> str:
    """Return the md5 hex digest of the canonical JSON form of ``value``."""
    return hashlib.md5(canonical_json(value).encode("utf-8")).hexdigest()

"""Slug generation for document ids, titles and operation ids."""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

_DISALLOWED_CHAR_RE = re.compile(r"[^\w\s\-.~]", re.ASCII)
_SEPARATOR_RUN_RE = re.compile(r"[-\s]+")
_PATH_PARAMETER_RE = re.compile(r"\{[^{}/]*\}")


@dataclass(frozen=True)
class SlugOptions:
    """Character map and casing rules applied by :func:`slugify`."""

    charmap: Mapping[str, str] = field(default_factory=dict)
    replacement: str = "-"
    lower: bool = True
    trim: bool = True


def _frozen(mapping: dict[str, str]) -> Mapping[str, str]:
    return MappingProxyType(mapping)


# Letters without a Unicode decomposition to ASCII.
_LETTER_CHARMAP = {
    "Æ": "AE",
    "æ": "ae",
    "Ð": "D",
    "ð": "d",
    "Đ": "DJ",
    "đ": "dj",
    "Ħ": "H",
    "ħ": "h",
    "ı": "i",
    "Ł": "L",
    "ł": "l",
    "Œ": "OE",
    "œ": "oe",
    "Ø": "O",
    "ø": "o",
    "ß": "ss",
    "Þ": "TH",
    "þ": "th",
    "Ŧ": "T",
    "ŧ": "t",
    "ƒ": "f",
}

# Symbols are spelled out as separate words.
_SYMBOL_CHARMAP = {
    "$": "dollar",
    "%": "percent",
    "&": "and",
    "<": "less",
    ">": "greater",
    "|": "or",
    "¢": "cent",
    "£": "pound",
    "¤": "currency",
    "¥": "yen",
    "€": "euro",
    "₩": "won",
    "∞": "infinity",
    "♥": "love",
}

BASE_CHARMAP: Mapping[str, str] = _frozen({**_LETTER_CHARMAP, **_SYMBOL_CHARMAP})


SLUG_OPTIONS_DOCUMENT_ID = SlugOptions(
    charmap=_frozen({**BASE_CHARMAP, "/": "-", "_": "_", ".": "-", "(": "-", ")": "-"}),
)

# Human-readable titles keep their casing and use spaces as separators.
SLUG_OPTIONS_TITLE = SlugOptions(
    charmap=_frozen(
        {**BASE_CHARMAP, "/": " ", "_": " ", ".": " ", "(": " ", ")": " ", "-": " "}
    ),
    replacement=" ",
    lower=False,
    trim=True,
)

# Brackets, braces and wildcards stay distinguishable; no lowercasing and no
# trimming so that trailing slashes still produce different ids.
SLUG_OPTIONS_OPERATION_ID = SlugOptions(
    charmap=_frozen(
        {
            **BASE_CHARMAP,
            "/": "-",
            "_": "_",
            "(": "_",
            ")": "_",
            "[": "_",
            "]": "_",
            "{": "_",
            "}": "_",
            "*": ".",
            ".": ".",
        }
    ),
    lower=False,
    trim=False,
)

SLUG_OPTIONS_NORMALIZED_OPERATION_ID = replace(
    SLUG_OPTIONS_OPERATION_ID,
    charmap=_frozen({**SLUG_OPTIONS_OPERATION_ID.charmap, "*": "*"}),
)

SLUG_PRESETS: Mapping[str, SlugOptions] = MappingProxyType(
    {
        "document": SLUG_OPTIONS_DOCUMENT_ID,
        "title": SLUG_OPTIONS_TITLE,
        "operation": SLUG_OPTIONS_OPERATION_ID,
        "normalized": SLUG_OPTIONS_NORMALIZED_OPERATION_ID,
    }
)


def create_slug(text: str, options: SlugOptions = SLUG_OPTIONS_DOCUMENT_ID) -> str:
    """Convert text into a slug without any uniqueness suffix."""
    pieces: list[str] = []
    after_symbol = False
    for char in text:
        mapped = options.charmap.get(char)
        if mapped is None:
            piece = _DISALLOWED_CHAR_RE.sub("", _transliterate(char))
        elif mapped.isalpha() and not char.isalnum():
            pieces.append(f" {mapped}" if pieces else mapped)
            after_symbol = True
            continue
        else:
            piece = mapped
        if after_symbol and piece:
            piece = f" {piece}"
        after_symbol = after_symbol and not piece
        pieces.append(piece)

    slug = "".join(pieces)
    if options.trim:
        slug = slug.strip()
    slug = _SEPARATOR_RUN_RE.sub(options.replacement, slug)
    return slug.lower() if options.lower else slug


def slugify(
    text: str,
    options: SlugOptions = SLUG_OPTIONS_DOCUMENT_ID,
    slugs: Collection[str] = (),
) -> str:
    """Return a slug of ``text`` that does not collide with ``slugs``.

    Args:
        text (str): Arbitrary input text.
        options (SlugOptions): Preset controlling the character map and casing.
        slugs (Collection[str]): Slugs already taken within the current build.

    Returns:
        str: Unique slug, or an empty string for empty input.
    """
    if not text:
        return ""

    slug = create_slug(text, options)
    suffix = ""
    while f"{slug}{suffix}" in slugs:
        suffix = str(int(suffix or "0") + 1)
    return f"{slug}{suffix}"


def remove_first_slash(value: str) -> str:
    """Drop one leading ``/``."""
    return value[1:] if value.startswith("/") else value


def convert_to_slug(text: str) -> str:
    """Slug of a path-like value with its leading slash removed."""
    return slugify(remove_first_slash(text))


def calculate_operation_id(base_path: str, method: str, path: str) -> str:
    """Operation id of a REST operation: slug of ``<path>-<method>``."""
    operation_path = f"{base_path}{path}"
    return slugify(f"{remove_first_slash(operation_path)}-{method}", SLUG_OPTIONS_OPERATION_ID)


def calculate_normalized_operation_id(path: str, method: str) -> str:
    """Operation id used to pair operations whose path parameters were renamed."""
    normalized_path = _PATH_PARAMETER_RE.sub("*", path)
    return slugify(
        f"{remove_first_slash(normalized_path)}-{method}",
        SLUG_OPTIONS_NORMALIZED_OPERATION_ID,
    )


def _transliterate(char: str) -> str:
    if char.isascii():
        return char
    decomposed = unicodedata.normalize("NFKD", char)
    return "".join(part for part in decomposed if not unicodedata.combining(part))

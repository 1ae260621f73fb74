"""Source document loading, format detection and OpenAPI structure checks."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .consts import (
    FILE_FORMAT_JSON,
    FILE_FORMAT_UNKNOWN,
    FILE_FORMAT_YAML,
    FILE_FORMAT_YML,
    REST_DOCUMENT_TYPE_OAS3,
    REST_DOCUMENT_TYPE_OAS31,
    REST_DOCUMENT_TYPE_SWAGGER,
    UNKNOWN_DOCUMENT_TYPE,
)
from .json_types import JSONValue
from .logging import get_logger

logger = get_logger("loader")

_EXTENSION_RE = re.compile(r"[^\\/]\.([^.\\/]+)$")
_JSON_OPENAPI_RE = re.compile(r'\s*?"openapi"\s*?:\s*?"3\.[01]\..+?"')
_JSON_SWAGGER_RE = re.compile(r'\s*?"swagger"\s*?:\s*?"2\..+?"')
_YAML_OPENAPI_RE = re.compile(r"""\s*?'?"?openapi'?"?\s*?:\s*?\|?\s*'?"?3\.[01]\..+?'?"?""")
_YAML_SWAGGER_RE = re.compile(r"""\s*?'?"?swagger'?"?\s*?:\s*?\|?\s*'?"?2\..+?'?"?""")


class DocumentLoadError(RuntimeError):
    """Raised when a source document cannot be read from disk."""


@dataclass(frozen=True)
class SourceFile:
    """A parsed source file with its detected format and document type."""

    file_id: str
    format: str
    type: str
    data: Any = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_rest(self) -> bool:
        return self.type in (
            REST_DOCUMENT_TYPE_SWAGGER,
            REST_DOCUMENT_TYPE_OAS3,
            REST_DOCUMENT_TYPE_OAS31,
        )


def get_file_extension(file_id: str) -> str:
    """Return the lowercase extension of ``file_id`` without the dot, or ``""``."""
    match = _EXTENSION_RE.search(file_id.lower())
    return match.group(1) if match else ""


def get_document_title(file_id: str) -> str:
    """File name of ``file_id`` without directories and extension."""
    name = file_id[1:] if file_id.startswith(".") else file_id
    name = name.split("/")[-1]
    return re.sub(r"\.[^/.]+$", "", name)


def parse_document(file_id: str, text: str) -> SourceFile:
    """Detect the format and type of a source document and decode it.

    JSON is chosen by extension or a leading ``{``; YAML by a ``yaml``/``yml``
    extension or no extension at all. OpenAPI 3 documents are checked against
    the OpenAPI object model and structural failures are recorded in
    ``errors`` rather than raised.

    Args:
        file_id (str): Path-like id of the file inside the build.
        text (str): File content.

    Returns:
        SourceFile: Parsed file; ``type`` is ``unknown`` for non-REST content.
    """
    extension = get_file_extension(file_id)

    if extension == FILE_FORMAT_JSON or text.lstrip().startswith("{"):
        return _parse_rest(
            file_id,
            text,
            file_format=FILE_FORMAT_JSON,
            openapi_re=_JSON_OPENAPI_RE,
            swagger_re=_JSON_SWAGGER_RE,
        )
    if extension in (FILE_FORMAT_YAML, FILE_FORMAT_YML) or not extension:
        return _parse_rest(
            file_id,
            text,
            file_format=FILE_FORMAT_YAML,
            openapi_re=_YAML_OPENAPI_RE,
            swagger_re=_YAML_SWAGGER_RE,
        )
    return SourceFile(
        file_id=file_id,
        format=extension or FILE_FORMAT_UNKNOWN,
        type=UNKNOWN_DOCUMENT_TYPE,
    )


def load_document(path: Path, *, file_id: Optional[str] = None) -> SourceFile:
    """Read and parse a source document from disk."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DocumentLoadError(f"Failed to read document {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DocumentLoadError(f"Document {path} is not valid UTF-8: {exc}") from exc
    return parse_document(file_id or path.name, text)


def load_structured_file(path: Path) -> JSONValue:
    """Read a JSON or YAML file into plain Python values."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except OSError as exc:
        raise DocumentLoadError(f"Failed to read {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DocumentLoadError(f"Failed to parse {path}: {exc}") from exc


def check_openapi_structure(document: Any) -> tuple[str, ...]:
    """Return structural errors of an OpenAPI 3 document; empty when it is well formed."""
    try:
        OpenAPI.model_validate(document)
    except ValidationError as exc:
        return tuple(
            f"{'/'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
    return ()


def _parse_rest(
    file_id: str,
    text: str,
    *,
    file_format: str,
    openapi_re: re.Pattern[str],
    swagger_re: re.Pattern[str],
) -> SourceFile:
    is_openapi = openapi_re.search(text) is not None
    is_swagger = not is_openapi and swagger_re.search(text) is not None
    if not is_openapi and not is_swagger:
        return SourceFile(file_id=file_id, format=file_format, type=UNKNOWN_DOCUMENT_TYPE)

    try:
        data = json.loads(text) if file_format == FILE_FORMAT_JSON else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        logger.debug("Failed to decode %s: %s", file_id, exc)
        return SourceFile(
            file_id=file_id,
            format=file_format,
            type=UNKNOWN_DOCUMENT_TYPE,
            errors=(f"Failed to parse {file_format} in {file_id}: {exc}",),
        )

    if not isinstance(data, dict):
        return SourceFile(
            file_id=file_id,
            format=file_format,
            type=UNKNOWN_DOCUMENT_TYPE,
            data=data,
            errors=(f"Document {file_id} must deserialize to a mapping, got {type(data)!r}",),
        )

    if is_swagger:
        return SourceFile(
            file_id=file_id, format=file_format, type=REST_DOCUMENT_TYPE_SWAGGER, data=data
        )

    openapi_version = str(data.get("openapi", ""))
    document_type = (
        REST_DOCUMENT_TYPE_OAS3 if openapi_version.startswith("3.0") else REST_DOCUMENT_TYPE_OAS31
    )
    errors = check_openapi_structure(data)
    if errors:
        logger.debug("%s has %d structural issue(s)", file_id, len(errors))
    return SourceFile(
        file_id=file_id, format=file_format, type=document_type, data=data, errors=errors
    )

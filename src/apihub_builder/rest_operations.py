"""REST documents and operations extracted from parsed OpenAPI files."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit

from .compare import get_splitted_version_key
from .config import BuildConfig, BuildConfigFile
from .consts import (
    API_AUDIENCE_EXTERNAL,
    API_AUDIENCE_INTERNAL,
    API_AUDIENCE_UNKNOWN,
    API_KIND_BWC,
    API_KINDS,
    API_TYPE_REST,
    FILE_FORMAT_JSON,
    HTTP_METHODS,
    REST_DOCUMENT_TYPE_SWAGGER,
    SPECIFICATION_EXTENSION_PREFIX,
    VERSION_STATUS_RELEASE,
    MessageSeverity,
)
from .hashes import calculate_object_hash
from .json_types import JSONPath
from .loader import SourceFile, get_document_title
from .logging import get_logger
from .model_types import ApiOperation, DeprecateItem, NotificationMessage, VersionDocument
from .paths import is_operation_declaration
from .rest_rules import calculate_operation_search_scopes
from .slugify import calculate_operation_id

logger = get_logger("rest_operations")

REST_KIND_KEY = "x-api-kind"
API_AUDIENCE_KEY = "x-api-audience"

_PATH_PARAMETER_RE = re.compile(r"\{.*?\}")
_COMMON_PATH_ITEM_KEYS = ("summary", "description", "servers", "parameters")
_DOCUMENT_INFO_KEYS = ("title", "description", "version")


def get_operation_base_path(servers: Any) -> str:
    """Path part of the first server URL with its variables set to their defaults."""
    if not isinstance(servers, list) or not servers or not isinstance(servers[0], Mapping):
        return ""
    server = servers[0]
    server_url = str(server.get("url", ""))
    for name, variable in (server.get("variables") or {}).items():
        default = variable.get("default", "") if isinstance(variable, Mapping) else ""
        server_url = server_url.replace(f"{{{name}}}", str(default))
    try:
        path = urlsplit(urljoin("https://localhost/", server_url)).path
    except ValueError:
        return ""
    return path[:-1] if path.endswith("/") else path


def normalize_path(path: str) -> str:
    """Replace every path parameter with ``*``."""
    return _PATH_PARAMETER_RE.sub("*", path)


def raw_to_api_kind(value: Any) -> str:
    """Lowercased API kind, or ``bwc`` when the value is not a known kind."""
    candidate = str(value).lower() if value else ""
    return candidate if candidate in API_KINDS else API_KIND_BWC


def resolve_api_audience(info: Any) -> str:
    if not isinstance(info, Mapping) or API_AUDIENCE_KEY not in info:
        return API_AUDIENCE_EXTERNAL
    audience = info[API_AUDIENCE_KEY]
    if audience in (API_AUDIENCE_INTERNAL, API_AUDIENCE_EXTERNAL):
        return audience
    return API_AUDIENCE_UNKNOWN


def get_custom_tags(data: Any) -> dict[str, Any]:
    """Specification extensions (``x-*`` keys) of an object."""
    if not isinstance(data, Mapping):
        return {}
    return {
        key: value
        for key, value in data.items()
        if isinstance(key, str) and key.startswith(SPECIFICATION_EXTENSION_PREFIX)
    }


def build_rest_document(source: SourceFile, file: BuildConfigFile, slug: str) -> VersionDocument:
    """Wrap a parsed REST file into a version document.

    Title, description and version come from ``info``; the remaining ``info``
    fields, ``externalDocs`` and ``tags`` go into the document metadata next to
    the pass-through keys of the build config file.
    """
    data = source.data if isinstance(source.data, Mapping) else {}
    info = data.get("info") if isinstance(data.get("info"), Mapping) else {}
    rest_info = {key: value for key, value in info.items() if key not in _DOCUMENT_INFO_KEYS}

    metadata: dict[str, Any] = dict(file.extra)
    if file.labels:
        metadata["labels"] = list(file.labels)
    if rest_info:
        metadata["info"] = rest_info
    if data.get("externalDocs") is not None:
        metadata["externalDocs"] = data["externalDocs"]
    metadata["tags"] = list(data.get("tags") or [])

    title = info.get("title")
    return VersionDocument(
        file_id=source.file_id,
        type=source.type,
        format=FILE_FORMAT_JSON,
        slug=slug,
        title=title if isinstance(title, str) and title else get_document_title(source.file_id),
        filename=f"{slug}.{FILE_FORMAT_JSON}",
        description=_string_or_empty(info.get("description")),
        version=_string_or_empty(info.get("version")),
        metadata=metadata,
        api_kind=info.get(REST_KIND_KEY) or file.api_kind,
        publish=file.publish,
        data=source.data,
    )


def build_rest_operations(
    document: VersionDocument,
    config: BuildConfig,
    notifications: list[NotificationMessage],
    known_operation_ids: Optional[set[str]] = None,
) -> list[ApiOperation]:
    """Extract one operation per path and HTTP method of a REST document.

    Args:
        document (VersionDocument): Document produced by :func:`build_rest_document`.
        config (BuildConfig): Build being run; supplies version and status.
        notifications (list[NotificationMessage]): Sink for duplicate id warnings.
        known_operation_ids (set[str] | None): Ids already produced in this build;
            updated in place.

    Returns:
        list[ApiOperation]: Operations in document order.
    """
    data = document.data if isinstance(document.data, Mapping) else {}
    paths = data.get("paths")
    if not isinstance(paths, Mapping):
        return []

    seen = known_operation_ids if known_operation_ids is not None else set()
    document_base_path = _document_base_path(document, data)
    operations: list[ApiOperation] = []
    for path, path_item, method, operation in _iter_operations(paths):
        base_path = document_base_path
        if document.type != REST_DOCUMENT_TYPE_SWAGGER:
            base_path = get_operation_base_path(
                operation.get("servers") or path_item.get("servers") or data.get("servers")
            )
        operation_id = calculate_operation_id(base_path, method, path)
        if operation_id in seen:
            notifications.append(
                NotificationMessage(
                    severity=MessageSeverity.WARNING,
                    message=f"Duplicated operation with operationId = {operation_id} found",
                    file_id=document.file_id,
                    operation_id=operation_id,
                )
            )
        seen.add(operation_id)
        operations.append(
            build_rest_operation(
                operation_id, path, method, operation, path_item, document, base_path, config
            )
        )
    logger.debug("%s: %d operation(s)", document.file_id, len(operations))
    return operations


def build_rest_operation(
    operation_id: str,
    path: str,
    method: str,
    operation: Mapping[str, Any],
    path_item: Mapping[str, Any],
    document: VersionDocument,
    base_path: str,
    config: BuildConfig,
) -> ApiOperation:
    """Build a single operation with its own minimal OpenAPI document as data."""
    data = document.data if isinstance(document.data, Mapping) else {}
    single_document = create_single_operation_document(data, path, method, path_item, operation)
    deprecated_items = _deprecated_items(path, method, operation, config)
    operation_items = [
        item for item in deprecated_items if is_operation_declaration(item.declaration_json_paths)
    ]
    operation_item = operation_items[0] if operation_items else None

    tags = operation.get("tags") or []
    summary = operation.get("summary")
    info = data.get("info")
    return ApiOperation(
        operation_id=operation_id,
        document_id=document.slug,
        title=summary if isinstance(summary, str) and summary else _title_from_id(operation_id),
        api_type=API_TYPE_REST,
        api_kind=raw_to_api_kind(operation.get(REST_KIND_KEY) or document.api_kind),
        deprecated=bool(operation.get("deprecated")),
        tags=list(tags) if isinstance(tags, list) else [tags],
        metadata={
            "customTags": get_custom_tags(operation),
            "path": normalize_path(base_path + path),
            "originalPath": base_path + path,
            "method": method,
        },
        search_scopes=calculate_operation_search_scopes(dict(operation)),
        data_hash=calculate_object_hash(single_document),
        deprecated_items=deprecated_items,
        deprecated_info=operation_item.deprecated_info if operation_item else None,
        deprecated_in_previous_versions=(
            list(operation_item.deprecated_in_previous_versions) if operation_item else []
        ),
        api_audience=resolve_api_audience(info),
        data=single_document,
    )


def create_single_operation_document(
    document: Mapping[str, Any],
    path: str,
    method: str,
    path_item: Mapping[str, Any],
    operation: Mapping[str, Any],
) -> dict[str, Any]:
    """Document holding only one operation and the local ``$ref`` targets it needs.

    Top level ``servers``, ``security`` and security schemes are kept; every
    other component is copied only when the operation references it, directly
    or through another component.
    """
    single_path_item = {key: path_item[key] for key in _COMMON_PATH_ITEM_KEYS if key in path_item}
    single_path_item[method] = dict(operation)

    single_document: dict[str, Any] = {}
    for key in ("openapi", "swagger", "info", "host", "basePath", "servers", "security"):
        if key in document:
            single_document[key] = document[key]
    if "openapi" not in single_document and "swagger" not in single_document:
        single_document["openapi"] = "3.0.0"
    single_document["paths"] = {path: single_path_item}

    security_schemes = (document.get("components") or {}).get("securitySchemes")
    if security_schemes is not None:
        single_document["components"] = {"securitySchemes": security_schemes}

    _copy_referenced(single_path_item, document, single_document, set())
    return single_document


def _copy_referenced(
    value: Any, document: Mapping[str, Any], single_document: dict[str, Any], seen: set[str]
) -> None:
    for ref in _iter_local_refs(value):
        if ref in seen:
            continue
        seen.add(ref)
        pointer = _parse_pointer(ref)
        if pointer[0] == "paths":
            continue
        target = _resolve_pointer(document, pointer)
        if target is None:
            continue
        _set_pointer(single_document, pointer, target)
        _copy_referenced(target, document, single_document, seen)


def _iter_local_refs(value: Any) -> Iterator[str]:
    if isinstance(value, Mapping):
        ref = value.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/"):
            yield ref
        for item in value.values():
            yield from _iter_local_refs(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_local_refs(item)


def _parse_pointer(ref: str) -> JSONPath:
    return tuple(part.replace("~1", "/").replace("~0", "~") for part in ref[2:].split("/"))


def _resolve_pointer(document: Any, pointer: JSONPath) -> Any:
    current = document
    for part in pointer:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and str(part).isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return None
    return current


def _set_pointer(single_document: dict[str, Any], pointer: JSONPath, value: Any) -> None:
    current: Any = single_document
    for part in pointer[:-1]:
        if not isinstance(current, dict):
            return
        current = current.setdefault(str(part), {})
    if isinstance(current, dict):
        current[str(pointer[-1])] = value


def _iter_operations(
    paths: Mapping[str, Any],
) -> Iterator[tuple[str, Mapping[str, Any], str, Mapping[str, Any]]]:
    for path, path_item in paths.items():
        if not isinstance(path_item, Mapping):
            continue
        for method in path_item:
            operation = path_item[method]
            if method in HTTP_METHODS and isinstance(operation, Mapping):
                yield path, path_item, method, operation


def _deprecated_items(
    path: str, method: str, operation: Mapping[str, Any], config: BuildConfig
) -> list[DeprecateItem]:
    version, _ = get_splitted_version_key(config.version)
    history = [version] if config.status == VERSION_STATUS_RELEASE else []

    items: list[DeprecateItem] = []
    if operation.get("deprecated"):
        items.append(
            DeprecateItem(
                declaration_json_paths=[("paths", path, method)],
                description=f"[Deprecated] operation {method.upper()} {path}",
                deprecated_info=_string_or_none(operation.get("x-deprecated-reason")),
                deprecated_in_previous_versions=list(history),
            )
        )
    for index, parameter in enumerate(operation.get("parameters") or []):
        if not isinstance(parameter, Mapping) or not parameter.get("deprecated"):
            continue
        items.append(
            DeprecateItem(
                declaration_json_paths=[("paths", path, method, "parameters", index)],
                description=(
                    f"[Deprecated] {parameter.get('in', '')} parameter '{parameter.get('name')}'"
                ),
                deprecated_in_previous_versions=list(history),
                hash=calculate_object_hash(parameter),
            )
        )
    return items


def _document_base_path(document: VersionDocument, data: Mapping[str, Any]) -> str:
    if document.type != REST_DOCUMENT_TYPE_SWAGGER:
        return ""
    base_path = str(data.get("basePath") or "")
    return base_path[:-1] if base_path.endswith("/") else base_path


def _title_from_id(operation_id: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in operation_id.split("-"))


def _string_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None

"""Source files of a build turned into documents and operations."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from dataclasses import dataclass, replace

from .config import BuildConfig, BuildConfigFile
from .consts import FILE_FORMAT_UNKNOWN, UNKNOWN_DOCUMENT_TYPE, MessageSeverity
from .loader import get_document_title, get_file_extension, parse_document
from .logging import debug_performance, get_logger
from .model_types import ApiOperation, BuildResult, NotificationMessage, VersionDocument
from .resolvers import FileResolver
from .rest_operations import build_rest_document, build_rest_operations
from .slugify import SLUG_OPTIONS_DOCUMENT_ID, slugify

logger = get_logger("files")

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


@dataclass(frozen=True)
class BuildFileResult:
    """Document built from one source file and the operations it declares."""

    document: VersionDocument
    operations: tuple[ApiOperation, ...] = ()


def create_file_slugs(
    files: Sequence[BuildConfigFile], slugs: list[str]
) -> list[BuildConfigFile]:
    """Give every file a slug that is unique within the build.

    An explicit slug is kept unless an earlier file already claimed it. Other
    files get the slug of their file id without the extension. ``slugs`` is
    extended in place.
    """
    claimed: list[bool] = []
    for file in files:
        if file.slug and file.slug not in slugs:
            slugs.append(file.slug)
            claimed.append(True)
        else:
            claimed.append(False)

    result: list[BuildConfigFile] = []
    for file, keep in zip(files, claimed):
        if not keep:
            name = _EXTENSION_RE.sub("", file.file_id.removeprefix(".").strip())
            slug = slugify(name, SLUG_OPTIONS_DOCUMENT_ID, slugs)
            slugs.append(slug)
            file = replace(file, slug=slug)
        result.append(file)
    return result


def build_unknown_document(
    file: BuildConfigFile,
    *,
    file_format: str = FILE_FORMAT_UNKNOWN,
    data: object = "",
) -> VersionDocument:
    """Document for a file that is not an API description or could not be read."""
    slug = file.slug or ""
    return VersionDocument(
        file_id=file.file_id,
        type=UNKNOWN_DOCUMENT_TYPE,
        format=file_format,
        slug=slug,
        title=get_document_title(file.file_id),
        filename=f"{slug}.{get_file_extension(file.file_id)}",
        metadata=dict(file.extra),
        publish=file.publish,
        data=data,
    )


async def build_file(
    file: BuildConfigFile,
    config: BuildConfig,
    file_resolver: FileResolver,
    notifications: list[NotificationMessage],
    operation_ids: set[str],
) -> BuildFileResult:
    """Resolve, parse and extract one source file.

    Files that cannot be resolved or decoded are reported as errors and yield
    an unknown document without operations.
    """
    content = await file_resolver(file.file_id)
    if content is None:
        _report(notifications, MessageSeverity.ERROR, "File was not parsed", file.file_id)
        return BuildFileResult(document=build_unknown_document(file))
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        message = f"File is not valid UTF-8: {exc}"
        _report(notifications, MessageSeverity.ERROR, message, file.file_id)
        return BuildFileResult(document=build_unknown_document(file))

    source = parse_document(file.file_id, text)
    if not source.is_rest:
        for error in source.errors:
            _report(notifications, MessageSeverity.ERROR, error, file.file_id)
        return BuildFileResult(
            document=build_unknown_document(file, file_format=source.format, data=text)
        )
    for error in source.errors:
        _report(notifications, MessageSeverity.WARNING, error, file.file_id)

    document = build_rest_document(source, file, file.slug or "")
    if not file.publish:
        return BuildFileResult(document=document)

    with debug_performance(logger, f"[Operations] {file.file_id}"):
        operations = build_rest_operations(document, config, notifications, operation_ids)
    document = replace(
        document, operation_ids=tuple(operation.operation_id for operation in operations)
    )
    return BuildFileResult(document=document, operations=tuple(operations))


async def build_files(
    config: BuildConfig,
    file_resolver: FileResolver,
    notifications: list[NotificationMessage],
) -> list[BuildFileResult]:
    """Build every file of ``config`` concurrently, in config order."""
    files = create_file_slugs([file for file in config.files if file.file_id], [])
    operation_ids: set[str] = set()
    return list(
        await asyncio.gather(
            *(
                build_file(file, config, file_resolver, notifications, operation_ids)
                for file in files
            )
        )
    )


def set_document(build_result: BuildResult, file_result: BuildFileResult) -> None:
    """Store a built document and its operations in the build result."""
    build_result.documents[file_result.document.file_id] = file_result.document
    for operation in file_result.operations:
        build_result.operations[operation.operation_id] = operation


def _report(
    notifications: list[NotificationMessage],
    severity: MessageSeverity,
    message: str,
    file_id: str,
) -> None:
    notifications.append(NotificationMessage(severity=severity, message=message, file_id=file_id))

"""Externally supplied lookup functions and the records they return.

Every resolver is an async callable. ``None`` means "not found"; the builder
decides per call site whether that is an error.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .model_types import ApiOperation, ChangeSummary, DeprecateItem, OperationType


@dataclass(frozen=True)
class OperationTypeStats:
    """Per API type statistics of a resolved version."""

    api_type: str
    changes_summary: Optional[ChangeSummary] = None
    operations_count: Optional[int] = None
    deprecated_count: Optional[int] = None


@dataclass(frozen=True)
class ResolvedVersion:
    """Version record returned by ``VersionResolver``."""

    package_id: str
    version: str
    previous_version: Optional[str] = None
    previous_version_package_id: Optional[str] = None
    operation_types: tuple[OperationTypeStats, ...] = ()


@dataclass(frozen=True)
class ResolvedOperation:
    """Operation record returned by ``VersionOperationsResolver``."""

    operation_id: str
    title: str
    data_hash: str
    api_type: str
    api_kind: str
    deprecated: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()
    data: Any = None
    api_audience: Optional[str] = None
    deprecated_items: tuple[DeprecateItem, ...] = ()
    deprecated_info: Optional[str] = None
    deprecated_in_previous_versions: tuple[str, ...] = ()

    @classmethod
    def from_api_operation(
        cls, operation: ApiOperation, include_data: bool = True
    ) -> ResolvedOperation:
        """Resolved view of an operation built in the current run."""
        return cls(
            operation_id=operation.operation_id,
            title=operation.title,
            data_hash=operation.data_hash or "",
            api_type=operation.api_type,
            api_kind=operation.api_kind,
            deprecated=operation.deprecated,
            metadata=dict(operation.metadata),
            tags=tuple(operation.tags),
            data=operation.data if include_data else None,
            api_audience=operation.api_audience,
            deprecated_items=tuple(operation.deprecated_items),
            deprecated_info=operation.deprecated_info,
            deprecated_in_previous_versions=tuple(operation.deprecated_in_previous_versions),
        )


@dataclass(frozen=True)
class ResolvedOperations:
    """Result of ``VersionOperationsResolver``."""

    operations: tuple[ResolvedOperation, ...]


@dataclass(frozen=True)
class ResolvedDeprecatedOperation:
    """Deprecation record of one operation in a stored version."""

    operation_id: str
    api_type: str
    api_kind: str
    deprecated: bool
    deprecated_items: tuple[DeprecateItem, ...] = ()
    deprecated_info: Optional[str] = None
    deprecated_in_previous_versions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedDeprecatedOperations:
    """Result of ``VersionDeprecatedResolver``."""

    operations: tuple[ResolvedDeprecatedOperation, ...]


@dataclass(frozen=True)
class ResolvedReference:
    """Package version referenced from another version."""

    ref_id: str
    version: str
    version_revision: int = 0
    parent_ref_id: Optional[str] = None
    parent_ref_version: Optional[str] = None
    excluded: bool = False


@dataclass(frozen=True)
class ResolvedReferences:
    """Result of ``VersionReferencesResolver``."""

    references: tuple[ResolvedReference, ...]


@dataclass(frozen=True)
class ResolvedComparisonSummary:
    """Cached comparison returned by ``VersionComparisonResolver``."""

    package_id: str
    version: str
    previous_version: str
    previous_version_package_id: str
    operation_types: tuple[OperationType, ...]
    revision: int = 0
    previous_version_revision: int = 0


@dataclass(frozen=True)
class ResolvedDocument:
    """Stored document record returned by document resolvers."""

    file_id: str
    filename: str
    slug: str
    type: str
    format: str
    title: str
    version: Optional[str] = None
    labels: tuple[str, ...] = ()
    package_ref: Optional[str] = None
    included_operation_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedDocuments:
    """Result of ``VersionDocumentsResolver`` and ``GroupDocumentsResolver``."""

    documents: tuple[ResolvedDocument, ...]


class FileResolver(Protocol):
    """Resolve a source file by id."""

    async def __call__(self, file_id: str) -> Optional[bytes]: ...


class VersionResolver(Protocol):
    """Resolve a version record."""

    async def __call__(self, package_id: str, version: str) -> Optional[ResolvedVersion]: ...


class VersionOperationsResolver(Protocol):
    """Resolve operations of a version, optionally restricted to ids."""

    async def __call__(
        self,
        api_type: str,
        version: str,
        package_id: str,
        operation_ids: Optional[Sequence[str]] = None,
        include_data: bool = True,
    ) -> Optional[ResolvedOperations]: ...


class VersionReferencesResolver(Protocol):
    """Resolve package references of a version."""

    async def __call__(self, version: str, package_id: str) -> Optional[ResolvedReferences]: ...


class VersionDeprecatedResolver(Protocol):
    """Resolve deprecation records of a version."""

    async def __call__(
        self,
        api_type: str,
        version: str,
        package_id: str,
        operation_ids: Optional[Sequence[str]] = None,
    ) -> Optional[ResolvedDeprecatedOperations]: ...


class VersionComparisonResolver(Protocol):
    """Resolve an already computed comparison of two versions."""

    async def __call__(
        self,
        version: str,
        package_id: str,
        previous_version: str,
        previous_version_package_id: str,
    ) -> Optional[ResolvedComparisonSummary]: ...


class VersionDocumentsResolver(Protocol):
    """Resolve documents of a version."""

    async def __call__(
        self,
        version: str,
        package_id: str,
        api_type: Optional[str] = None,
    ) -> Optional[ResolvedDocuments]: ...


class GroupDocumentsResolver(Protocol):
    """Resolve documents of an operation group."""

    async def __call__(
        self,
        api_type: str,
        version: str,
        package_id: str,
        group: str,
    ) -> Optional[ResolvedDocuments]: ...


class RawDocumentResolver(Protocol):
    """Resolve the raw content of a stored document by slug."""

    async def __call__(self, version: str, package_id: str, slug: str) -> Optional[bytes]: ...


class TemplateResolver(Protocol):
    """Resolve an export template by path."""

    async def __call__(self, template_path: str) -> Optional[bytes]: ...


@dataclass(frozen=True)
class BuilderResolvers:
    """The resolver set a builder is constructed with."""

    file_resolver: FileResolver
    version_resolver: Optional[VersionResolver] = None
    version_operations_resolver: Optional[VersionOperationsResolver] = None
    version_references_resolver: Optional[VersionReferencesResolver] = None
    version_deprecated_resolver: Optional[VersionDeprecatedResolver] = None
    version_comparison_resolver: Optional[VersionComparisonResolver] = None
    version_documents_resolver: Optional[VersionDocumentsResolver] = None
    group_documents_resolver: Optional[GroupDocumentsResolver] = None
    raw_document_resolver: Optional[RawDocumentResolver] = None
    template_resolver: Optional[TemplateResolver] = None

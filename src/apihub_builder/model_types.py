"""Datatypes of the builder contract: documents, operations, changes and results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, TypeAlias

from .config import BuildConfig, BuildConfigRef
from .consts import CHANGE_TYPES, BuildType, MessageSeverity
from .json_types import JSONPath

ChangeSummary: TypeAlias = dict[str, int]
ImpactedSummary: TypeAlias = dict[str, bool]
SearchScopes: TypeAlias = dict[str, set[str]]


def empty_change_summary() -> ChangeSummary:
    """Return a change summary with every change type set to zero."""
    return {change_type: 0 for change_type in CHANGE_TYPES}


def empty_impacted_summary() -> ImpactedSummary:
    """Return an impacted summary with every change type unset."""
    return {change_type: False for change_type in CHANGE_TYPES}


@dataclass(frozen=True)
class NotificationMessage:
    """A diagnostic attached to a build, optionally scoped to a file or operation."""

    severity: MessageSeverity
    message: str
    file_id: Optional[str] = None
    operation_id: Optional[str] = None
    previous_operation_id: Optional[str] = None


@dataclass
class DeprecateItem:
    """One deprecated declaration inside an operation."""

    declaration_json_paths: list[JSONPath]
    description: Optional[str] = None
    deprecated_in_previous_versions: list[str] = field(default_factory=list)
    deprecated_info: Optional[str] = None
    tolerant_hash: Optional[str] = None
    hash: Optional[str] = None


@dataclass(frozen=True)
class VersionDocument:
    """One parsed source file of a package version."""

    file_id: str
    type: str
    format: str
    slug: str
    title: str
    filename: str
    description: str = ""
    version: Optional[str] = None
    operation_ids: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    api_kind: Optional[str] = None
    publish: bool = True
    data: Any = None


@dataclass
class ApiOperation:
    """One logical API operation extracted from a version document."""

    operation_id: str
    document_id: str
    title: str
    api_type: str
    api_kind: str
    deprecated: bool = False
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    search_scopes: SearchScopes = field(default_factory=dict)
    data_hash: Optional[str] = None
    deprecated_items: list[DeprecateItem] = field(default_factory=list)
    deprecated_info: Optional[str] = None
    deprecated_in_previous_versions: list[str] = field(default_factory=list)
    api_audience: Optional[str] = None
    data: Any = None


@dataclass
class Diff:
    """A single difference reported by the external diff engine.

    ``type`` holds the change classification and is the only field the
    builder rewrites.
    """

    type: str
    action: str
    scope: str = ""
    description: Optional[str] = None
    before_declaration_paths: list[JSONPath] = field(default_factory=list)
    after_declaration_paths: list[JSONPath] = field(default_factory=list)
    before_value: Any = None
    after_value: Any = None
    before_key: Optional[str] = None
    after_key: Optional[str] = None


@dataclass
class OperationChanges:
    """Change summary for one operation pair across two versions."""

    api_type: str
    change_summary: ChangeSummary
    impacted_summary: ImpactedSummary
    operation_id: Optional[str] = None
    previous_operation_id: Optional[str] = None
    api_kind: Optional[str] = None
    previous_api_kind: Optional[str] = None
    data_hash: Optional[str] = None
    previous_data_hash: Optional[str] = None
    diffs: list[Diff] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ApiAudienceTransition:
    """Number of paired operations that moved between two audiences."""

    previous_audience: str
    current_audience: str
    operations_count: int = 1


@dataclass(frozen=True)
class OperationType:
    """Aggregated changes of one API type within a comparison."""

    api_type: str
    changes_summary: ChangeSummary
    number_of_impacted_operations: ChangeSummary
    api_audience_transitions: tuple[ApiAudienceTransition, ...] = ()
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class VersionsComparison:
    """Result of comparing two package versions."""

    package_id: str
    version: str
    previous_version: str
    previous_version_package_id: str
    operation_types: tuple[OperationType, ...]
    from_cache: bool = False
    revision: int = 0
    previous_version_revision: int = 0
    comparison_file_id: Optional[str] = None
    data: tuple[OperationChanges, ...] = ()


@dataclass(frozen=True)
class ChangeMessage:
    """Serializable form of a diff inside a comparison DTO."""

    severity: str
    action: str
    scope: str
    description: Optional[str] = None
    previous_declaration_json_paths: tuple[JSONPath, ...] = ()
    current_declaration_json_paths: tuple[JSONPath, ...] = ()
    previous_value_hash: str = ""
    current_value_hash: str = ""
    previous_key: Optional[str] = None
    current_key: Optional[str] = None


@dataclass(frozen=True)
class OperationChangesDto:
    """Serializable form of ``OperationChanges``; the impacted summary is dropped."""

    api_type: str
    change_summary: ChangeSummary
    operation_id: Optional[str] = None
    previous_operation_id: Optional[str] = None
    api_kind: Optional[str] = None
    previous_api_kind: Optional[str] = None
    data_hash: Optional[str] = None
    previous_data_hash: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    changes: tuple[ChangeMessage, ...] = ()


@dataclass(frozen=True)
class VersionsComparisonDto:
    """Serializable form of ``VersionsComparison``."""

    package_id: str
    version: str
    previous_version: str
    previous_version_package_id: str
    operation_types: tuple[OperationType, ...]
    from_cache: bool = False
    revision: int = 0
    previous_version_revision: int = 0
    comparison_file_id: Optional[str] = None
    data: tuple[OperationChangesDto, ...] = ()


@dataclass(frozen=True)
class PackageConfig:
    """Snapshot of the build config stored with the package version."""

    package_id: str
    version: str
    previous_version: Optional[str] = None
    previous_version_package_id: Optional[str] = None
    build_type: Optional[BuildType] = None
    refs: tuple[BuildConfigRef, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_build_config(cls, config: BuildConfig) -> PackageConfig:
        """Snapshot the fields of a build config that belong to the package."""
        return cls(
            package_id=config.package_id,
            version=config.version,
            previous_version=config.previous_version,
            previous_version_package_id=config.previous_version_package_id,
            build_type=config.build_type,
            refs=config.refs,
            metadata=dict(config.metadata),
        )


@dataclass
class BuildResult:
    """Output aggregate of one build call."""

    config: PackageConfig
    comparisons: list[VersionsComparisonDto] = field(default_factory=list)
    notifications: list[NotificationMessage] = field(default_factory=list)
    documents: dict[str, VersionDocument] = field(default_factory=dict)
    operations: dict[str, ApiOperation] = field(default_factory=dict)
    merged: Optional[VersionDocument] = None

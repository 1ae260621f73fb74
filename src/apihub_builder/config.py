"""Build configuration contract and its wire-format loader."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .consts import (
    DEFAULT_BATCH_SIZE,
    VALIDATION_RULES_SEVERITY_LEVEL_ERROR,
    VALIDATION_RULES_SEVERITY_LEVEL_WARNING,
    VERSION_STATUS_NONE,
    VERSION_STATUSES,
    BuildType,
)

_VALIDATION_SEVERITY_LEVELS: tuple[str, ...] = (
    VALIDATION_RULES_SEVERITY_LEVEL_ERROR,
    VALIDATION_RULES_SEVERITY_LEVEL_WARNING,
)

_FILE_KNOWN_KEYS = frozenset({"fileId", "slug", "apiKind", "publish", "labels"})


class BuildConfigError(RuntimeError):
    """Raised when a build configuration is missing or has invalid fields."""


@dataclass(frozen=True)
class ValidationRulesSeverity:
    """Severity overrides for document validation rules."""

    broken_refs: str = VALIDATION_RULES_SEVERITY_LEVEL_WARNING


@dataclass(frozen=True)
class BuildConfigRef:
    """Reference to another package version included in a build."""

    ref_id: str
    version: str


@dataclass(frozen=True)
class BuildConfigFile:
    """One source file of a build.

    Keys the builder does not interpret are kept in ``extra`` and passed
    through to the produced document metadata.
    """

    file_id: str
    slug: Optional[str] = None
    api_kind: Optional[str] = None
    publish: bool = True
    labels: tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BuilderConfiguration:
    """Tuning knobs of a builder instance."""

    batch_size: int = DEFAULT_BATCH_SIZE
    without_changelog: bool = False
    without_deprecated_depth: bool = False


@dataclass(frozen=True)
class BuildConfig:
    """Immutable description of one build request."""

    package_id: str
    version: str
    build_type: BuildType = BuildType.BUILD
    status: str = VERSION_STATUS_NONE
    previous_version: Optional[str] = None
    previous_version_package_id: Optional[str] = None
    current_group: Optional[str] = None
    previous_group: Optional[str] = None
    group_name: Optional[str] = None
    api_type: Optional[str] = None
    refs: tuple[BuildConfigRef, ...] = ()
    files: tuple[BuildConfigFile, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    format: Optional[str] = None
    validation_rules_severity: ValidationRulesSeverity = field(
        default_factory=ValidationRulesSeverity
    )

    @property
    def effective_previous_package_id(self) -> str:
        """Package of the previous version, defaulting to the current package."""
        return self.previous_version_package_id or self.package_id

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> BuildConfig:
        """Build a config from its camelCase wire representation.

        Args:
            payload (Mapping[str, Any]): Decoded JSON/YAML build config.

        Returns:
            BuildConfig: Parsed configuration.
        """
        package_id = _required_string(payload, "packageId")
        version = _required_string(payload, "version")

        build_type_raw = payload.get("buildType", BuildType.BUILD.value)
        try:
            build_type = BuildType(build_type_raw)
        except ValueError as exc:
            raise BuildConfigError(
                f'buildType is not supported, received: "{build_type_raw}"'
            ) from exc

        status = payload.get("status", VERSION_STATUS_NONE)
        if status not in VERSION_STATUSES:
            raise BuildConfigError(f'status is not supported, received: "{status}"')

        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise BuildConfigError(f"metadata must be a mapping, received: {type(metadata)!r}")

        return cls(
            package_id=package_id,
            version=version,
            build_type=build_type,
            status=status,
            previous_version=_optional_string(payload, "previousVersion"),
            previous_version_package_id=_optional_string(payload, "previousVersionPackageId"),
            current_group=payload.get("currentGroup"),
            previous_group=payload.get("previousGroup"),
            group_name=_optional_string(payload, "groupName"),
            api_type=_optional_string(payload, "apiType"),
            refs=tuple(_parse_ref(item) for item in payload.get("refs") or ()),
            files=tuple(_parse_file(item) for item in payload.get("files") or ()),
            metadata=dict(metadata),
            format=_optional_string(payload, "format"),
            validation_rules_severity=_parse_validation_severity(
                payload.get("validationRulesSeverity")
            ),
        )


def _required_string(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BuildConfigError(
            f'{key} is required and must be a non-empty string, received: "{value}"'
        )
    return value


def _optional_string(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BuildConfigError(f"{key} must be a string, received: {type(value).__name__}")
    return value or None


def _parse_ref(item: Any) -> BuildConfigRef:
    if not isinstance(item, Mapping):
        raise BuildConfigError(f"refs items must be mappings, received: {type(item).__name__}")
    return BuildConfigRef(
        ref_id=_required_string(item, "refId"),
        version=_required_string(item, "version"),
    )


def _parse_file(item: Any) -> BuildConfigFile:
    if not isinstance(item, Mapping):
        raise BuildConfigError(f"files items must be mappings, received: {type(item).__name__}")
    labels = item.get("labels") or ()
    return BuildConfigFile(
        file_id=_required_string(item, "fileId"),
        slug=_optional_string(item, "slug"),
        api_kind=_optional_string(item, "apiKind"),
        publish=bool(item.get("publish", True)),
        labels=tuple(str(label) for label in labels),
        extra={key: value for key, value in item.items() if key not in _FILE_KNOWN_KEYS},
    )


def _parse_validation_severity(raw: Any) -> ValidationRulesSeverity:
    if raw is None:
        return ValidationRulesSeverity()
    if not isinstance(raw, Mapping):
        raise BuildConfigError(
            f"validationRulesSeverity must be a mapping, received: {type(raw).__name__}"
        )
    broken_refs = raw.get("brokenRefs", VALIDATION_RULES_SEVERITY_LEVEL_WARNING)
    if broken_refs not in _VALIDATION_SEVERITY_LEVELS:
        raise BuildConfigError(
            "validationRulesSeverity.brokenRefs must be one of "
            f'{list(_VALIDATION_SEVERITY_LEVELS)}, '
            f'received: "{broken_refs}"'
        )
    return ValidationRulesSeverity(broken_refs=broken_refs)

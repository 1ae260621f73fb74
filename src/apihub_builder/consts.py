"""Constants shared by the builder contract, comparison and indexing code."""

from __future__ import annotations

from enum import IntEnum, StrEnum

BREAKING_CHANGE_TYPE = "breaking"
NON_BREAKING_CHANGE_TYPE = "non-breaking"
RISKY_CHANGE_TYPE = "risky"
DEPRECATED_CHANGE_TYPE = "deprecated"
ANNOTATION_CHANGE_TYPE = "annotation"
UNCLASSIFIED_CHANGE_TYPE = "unclassified"
SEMI_BREAKING_CHANGE_TYPE = "semi-breaking"

CHANGE_TYPES: tuple[str, ...] = (
    BREAKING_CHANGE_TYPE,
    NON_BREAKING_CHANGE_TYPE,
    RISKY_CHANGE_TYPE,
    DEPRECATED_CHANGE_TYPE,
    ANNOTATION_CHANGE_TYPE,
    UNCLASSIFIED_CHANGE_TYPE,
)

# Wire names used in comparison DTOs; ``risky`` is published as ``semi-breaking``.
CHANGE_TYPES_DTO: tuple[str, ...] = (
    BREAKING_CHANGE_TYPE,
    NON_BREAKING_CHANGE_TYPE,
    SEMI_BREAKING_CHANGE_TYPE,
    DEPRECATED_CHANGE_TYPE,
    ANNOTATION_CHANGE_TYPE,
    UNCLASSIFIED_CHANGE_TYPE,
)

DIFF_ACTION_ADD = "add"
DIFF_ACTION_REMOVE = "remove"
DIFF_ACTION_REPLACE = "replace"
DIFF_ACTION_RENAME = "rename"

DIFF_ACTIONS: tuple[str, ...] = (
    DIFF_ACTION_ADD,
    DIFF_ACTION_REMOVE,
    DIFF_ACTION_REPLACE,
    DIFF_ACTION_RENAME,
)


class MessageSeverity(IntEnum):
    """Severity levels of build notifications."""

    ERROR = 0
    WARNING = 1
    INFORMATION = 2
    HINT = 3


class BuildType(StrEnum):
    """Supported values of ``BuildConfig.build_type``."""

    BUILD = "build"
    CHANGELOG = "changelog"
    PREFIX_GROUPS_CHANGELOG = "prefix-groups-changelog"
    DOCUMENT_GROUP = "documentGroup"
    REDUCED_SOURCE_SPECIFICATIONS = "reducedSourceSpecifications"
    MERGED_SPECIFICATION = "mergedSpecification"
    EXPORT_VERSION = "exportVersion"
    EXPORT_REST_DOCUMENT = "exportRestDocument"
    EXPORT_REST_OPERATIONS_GROUP = "exportRestOperationsGroup"


EXPORT_BUILD_TYPES: frozenset[BuildType] = frozenset(
    {
        BuildType.EXPORT_VERSION,
        BuildType.EXPORT_REST_DOCUMENT,
        BuildType.EXPORT_REST_OPERATIONS_GROUP,
    }
)

VERSION_STATUS_RELEASE = "release"
VERSION_STATUS_DRAFT = "draft"
VERSION_STATUS_ARCHIVED = "archived"
VERSION_STATUS_RELEASE_CANDIDATE = "release-candidate"
VERSION_STATUS_NONE = ""

VERSION_STATUSES: tuple[str, ...] = (
    VERSION_STATUS_RELEASE,
    VERSION_STATUS_DRAFT,
    VERSION_STATUS_ARCHIVED,
    VERSION_STATUS_RELEASE_CANDIDATE,
    VERSION_STATUS_NONE,
)

API_KIND_BWC = "bwc"
API_KIND_NO_BWC = "no-bwc"
API_KIND_EXPERIMENTAL = "experimental"

API_KINDS: tuple[str, ...] = (API_KIND_BWC, API_KIND_NO_BWC, API_KIND_EXPERIMENTAL)

API_AUDIENCE_INTERNAL = "internal"
API_AUDIENCE_EXTERNAL = "external"
API_AUDIENCE_UNKNOWN = "unknown"

API_TYPE_REST = "rest"
API_TYPE_GRAPHQL = "graphql"
API_TYPE_ASYNCAPI = "asyncapi"

VALIDATION_RULES_SEVERITY_LEVEL_ERROR = "error"
VALIDATION_RULES_SEVERITY_LEVEL_WARNING = "warning"

FILE_FORMAT_JSON = "json"
FILE_FORMAT_YAML = "yaml"
FILE_FORMAT_YML = "yml"
FILE_FORMAT_GRAPHQL = "graphql"
FILE_FORMAT_GQL = "gql"
FILE_FORMAT_MD = "md"
FILE_FORMAT_PROTO = "proto"
FILE_FORMAT_UNKNOWN = "unknown"

REST_DOCUMENT_TYPE_SWAGGER = "openapi-2-0"
REST_DOCUMENT_TYPE_OAS3 = "openapi-3-0"
REST_DOCUMENT_TYPE_OAS31 = "openapi-3-1"
ASYNCAPI_DOCUMENT_TYPE = "asyncapi-3-0"
JSON_SCHEMA_DOCUMENT_TYPE = "json-schema"
UNKNOWN_DOCUMENT_TYPE = "unknown"

PACKAGE_INFO_FILE_NAME = "info.json"
PACKAGE_NOTIFICATIONS_FILE_NAME = "notifications.json"
PACKAGE_DOCUMENTS_FILE_NAME = "documents.json"
PACKAGE_OPERATIONS_FILE_NAME = "operations.json"
PACKAGE_COMPARISONS_FILE_NAME = "comparisons.json"
PACKAGE_DOCUMENTS_DIR_NAME = "documents"
PACKAGE_OPERATIONS_DIR_NAME = "operations"
PACKAGE_COMPARISONS_DIR_NAME = "comparisons"

REVISION_DELIMITER = "@"
DEFAULT_BATCH_SIZE = 32

HTTP_METHODS: tuple[str, ...] = (
    "get",
    "put",
    "post",
    "delete",
    "patch",
    "head",
    "options",
    "trace",
)

JSON_SCHEMA_PROPERTY_DEPRECATED = "deprecated"
SPECIFICATION_EXTENSION_PREFIX = "x-"

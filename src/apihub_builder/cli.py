"""Command line interface for the API package builder utilities."""

from __future__ import annotations

import argparse
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from .config import BuildConfig, BuildConfigError
from .consts import BuildType
from .loader import DocumentLoadError, load_structured_file
from .logging import configure_logging, get_logger
from .slugify import SLUG_PRESETS, slugify
from .strategies import validate_prefix_groups
from .validation import validate_document

logger = get_logger("cli")


class CLIError(RuntimeError):
    """Raised when CLI execution fails."""


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="apihub-builder",
        description="Validate API documents and build configs, and generate slugs",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser(
        "validate", help="Validate a JSON/YAML document against a JSON schema"
    )
    validate_parser.add_argument("--schema", required=True, help="Path to a JSON schema file")
    validate_parser.add_argument("--input", required=True, help="Path to the document to check")

    slug_parser = subparsers.add_parser("slug", help="Print the slug of a text")
    slug_parser.add_argument("text", help="Text to convert")
    slug_parser.add_argument(
        "--preset",
        choices=sorted(SLUG_PRESETS),
        default="document",
        help="Slug preset (default: document)",
    )

    config_parser = subparsers.add_parser("check-config", help="Validate a build config file")
    config_parser.add_argument("--config", required=True, help="Path to a JSON/YAML build config")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        if args.command == "validate":
            return _run_validate(Path(args.schema), Path(args.input))
        if args.command == "slug":
            print(slugify(args.text, SLUG_PRESETS[args.preset]))
            return 0
        if args.command == "check-config":
            return _run_check_config(Path(args.config))
        raise CLIError(f"Unknown command: {args.command}")
    except (BuildConfigError, DocumentLoadError, CLIError) as exc:
        parser.error(str(exc))
        return 2


def _run_validate(schema_path: Path, input_path: Path) -> int:
    schema = load_structured_file(schema_path)
    document = load_structured_file(input_path)
    issues = validate_document(schema, document)
    for issue in issues:
        location = issue.instance_path or "/"
        print(f"{location}: {issue.message}")
    if issues:
        logger.info("%s has %d issue(s)", input_path, len(issues))
        return 1
    print(f"{input_path}: valid")
    return 0


def _run_check_config(config_path: Path) -> int:
    payload = load_structured_file(config_path)
    if not isinstance(payload, Mapping):
        raise CLIError(f"Build config must deserialize to a mapping, got {type(payload)!r}")
    config = BuildConfig.from_mapping(payload)
    if config.build_type == BuildType.PREFIX_GROUPS_CHANGELOG:
        validate_prefix_groups(config)
    print(f"{config.package_id}/{config.version}: {config.build_type.value} config is valid")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

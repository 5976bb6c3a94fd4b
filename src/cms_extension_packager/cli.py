"""Command-line interface for the extension packager.

This module provides the ``cms-packager`` entry point. Status lines go
to stderr and results are written to stdout as JSON, so the output can
be piped to a file or another tool.
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import PackagerConfig, load_config
from .core.validator import validate_report_with_error_details
from .errors import PackagerError
from .installation import Installation
from .languages import LanguageCrossReferencer, format_orphans, format_unused
from .paths import strip_prefix
from .pipeline import PackagePipeline
from .template_diff import compare_with_template


def load_context(args: argparse.Namespace) -> PackagerConfig:
    """Configuration from ``--config`` or a local ``--web-root``.

    Raises:
        ConfigError: If the configuration file is invalid
    """
    if args.config:
        return load_config(Path(args.config))
    web_root = str(Path(args.web_root).resolve())
    return PackagerConfig(Installation(name=web_root, web_root=web_root))


def _element(args: argparse.Namespace, config: PackagerConfig) -> str:
    element = getattr(args, "element", None) or config.installation.element
    if not element:
        raise PackagerError("No extension given: pass an element name or set installation.element")
    return element


def _emit(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2)
    print()


def run_package(args: argparse.Namespace) -> int:
    config = load_context(args)
    options = config.options
    if args.destination:
        options = dataclasses.replace(options, destination=str(Path(args.destination).resolve()))
    if args.rename:
        options = dataclasses.replace(options, rename_existing=True)
    if args.import_database:
        options = dataclasses.replace(options, import_database=True)

    element = _element(args, config)
    print(f"Packaging {element} from {config.installation.web_root}", file=sys.stderr)
    with config.create_backend() as backend:
        print(f"Connected: {backend.describe()}", file=sys.stderr)
        pipeline = PackagePipeline(config.installation, backend, options)
        result = pipeline.package_extension(element)

    report = result.to_report()
    print("Validating report against schema...", file=sys.stderr)
    is_valid, error_msg = validate_report_with_error_details(report)
    if not is_valid:
        print("Error: Report validation failed:", file=sys.stderr)
        print(error_msg, file=sys.stderr)
        return 1

    _emit(report)
    if not result.success:
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1
    print(f"Archive written: {result.archive_path} ({len(result.entries)} entries)", file=sys.stderr)
    return 0


def _cross_referencer(args: argparse.Namespace, config: PackagerConfig, backend) -> LanguageCrossReferencer:
    file_types = tuple(args.file_types) if args.file_types else config.options.file_types
    return LanguageCrossReferencer(config.installation, backend, file_types)


def run_unused(args: argparse.Namespace) -> int:
    config = load_context(args)
    element = _element(args, config)
    print(f"Searching unused language constants of {element}", file=sys.stderr)
    with config.create_backend() as backend:
        refs = _cross_referencer(args, config, backend)
        unused = refs.find_unused_constants(element)
    for warning in refs.diagnostics.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    _emit(format_unused(unused))
    return 0


def run_orphaned(args: argparse.Namespace) -> int:
    config = load_context(args)
    element = _element(args, config)
    print(f"Searching orphaned language constants of {element}", file=sys.stderr)
    with config.create_backend() as backend:
        refs = _cross_referencer(args, config, backend)
        orphans = refs.find_orphaned_constants(element)
    for warning in refs.diagnostics.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    _emit(format_orphans(orphans))
    return 0


def run_template_diff(args: argparse.Namespace) -> int:
    config = load_context(args)
    placeholders: dict[str, str] = {}
    if args.element:
        placeholders["com_name"] = strip_prefix(args.element, "com_")
    for item in args.set or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise PackagerError(f"Invalid placeholder assignment '{item}': expecting name=value")
        placeholders[name.strip()] = value

    with config.create_backend() as backend:
        diff = compare_with_template(backend, args.component_dir, args.template_dir, placeholders)
    _emit(diff.to_dict())
    return 0 if diff.is_clean else 1


def run_list(args: argparse.Namespace) -> int:
    config = load_context(args)
    with config.create_backend() as backend:
        extensions = config.installation.list_extensions(backend)
    print(f"Found {len(extensions)} extensions", file=sys.stderr)
    _emit([dataclasses.asdict(ext) for ext in extensions])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cms-packager",
        description="Package and analyze CMS extensions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Package a component from a local installation
  cms-packager package com_events --web-root /var/www/site --destination ./dist

  # Package over FTP using a configuration file, keeping older archives
  cms-packager package pkg_bundle --config live.json --rename

  # Language constants declared but never used
  cms-packager unused com_events --web-root /var/www/site > unused.json

  # Compare a component with the component template
  cms-packager template-diff --web-root / --component-dir /srv/com_events \\
      --template-dir /srv/templates/component --set com_name=events
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_source(sub: argparse.ArgumentParser) -> None:
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--config", help="JSON configuration file")
        group.add_argument("--web-root", help="Web root of a local installation")

    package = subparsers.add_parser("package", help="Build an installable archive")
    package.add_argument("element", nargs="?", help="Extension element, e.g. com_events")
    add_source(package)
    package.add_argument("--destination", help="Directory to move the finished archive to")
    package.add_argument("--rename", action="store_true", help="Back up an existing archive instead of failing")
    package.add_argument("--import-database", action="store_true", help="Export the extension's tables")
    package.set_defaults(handler=run_package)

    for name, handler, help_text in (
        ("unused", run_unused, "List declared language constants that code never uses"),
        ("orphaned", run_orphaned, "List constants used in code but never declared"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("element", nargs="?", help="Extension element, e.g. com_events")
        add_source(sub)
        sub.add_argument("--file-types", nargs="+", help="Code file extensions to scan (default: php phtml xml)")
        sub.set_defaults(handler=handler)

    diff = subparsers.add_parser("template-diff", help="Compare a component with a template")
    add_source(diff)
    diff.add_argument("--component-dir", required=True, help="Component directory on the backend")
    diff.add_argument("--template-dir", required=True, help="Template directory on the backend")
    diff.add_argument("--element", help="Component element, fills {{com_name}}")
    diff.add_argument("--set", action="append", metavar="NAME=VALUE", help="Placeholder value (repeatable)")
    diff.set_defaults(handler=run_template_diff)

    listing = subparsers.add_parser("list", help="List installed extensions")
    add_source(listing)
    listing.set_defaults(handler=run_list)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the packager."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

    try:
        code = args.handler(args)
    except PackagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()

"""Core utilities shared by every backend.

This package contains the XML manifest model, the language file
reader, the backend response cache, and JSON schema validation of
reports and configuration files.
"""

from .cache import ResponseCache
from .ini import IniEntry, parse_ini, parse_ini_bytes
from .manifest import ExtensionManifest, ExtensionType, parse_manifest
from .types import ConfigDocument, PackageReport
from .validator import (
    validate_config,
    validate_config_with_error_details,
    validate_report,
    validate_report_with_error_details,
)

__all__ = [
    "ConfigDocument",
    "ExtensionManifest",
    "ExtensionType",
    "IniEntry",
    "PackageReport",
    "ResponseCache",
    "parse_ini",
    "parse_ini_bytes",
    "parse_manifest",
    "validate_config",
    "validate_config_with_error_details",
    "validate_report",
    "validate_report_with_error_details",
]

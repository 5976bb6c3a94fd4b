"""CMS Extension Packager.

This package builds installable ZIP archives of CMS extensions
(components, modules and packages) straight from an installation,
reached through the local filesystem or FTP, and analyzes their
language files for unused and orphaned constants.
"""

# Core library interface
from .archive import ArchiveBuilder, ProgressAction, save_archive
from .backends import EntryInfo, EntryKind, StorageBackend
from .installation import Installation
from .pipeline import PackageJob, PackageOptions, PackagePipeline, PackageResult, PipelineState
from .registry import BackendRegistry

# Analysis
from .languages import LanguageCrossReferencer, OrphanedReference
from .template_diff import TemplateDiff, compare_with_template

# Core utilities
from .core import (
    ExtensionManifest,
    ExtensionType,
    PackageReport,
    parse_manifest,
    validate_report,
    validate_report_with_error_details,
)
from .config import PackagerConfig, load_config
from .diagnostics import Diagnostics
from .errors import (
    ArchiveError,
    BackendConnectionError,
    ConfigError,
    InvalidNameError,
    LanguageFileSyntaxError,
    ManifestError,
    MissingExtensionError,
    MissingSectionsError,
    NotFoundError,
    PackagerError,
    StorageIOError,
    UnsupportedScopeError,
    UnsupportedTypeError,
)
from .progress import Progress

# CLI interface
from .cli import main

__version__ = "0.1.0"

# Auto-discover and register all platforms
BackendRegistry.discover_platforms()

__all__ = [
    # Primary library interface
    "ArchiveBuilder",
    "BackendRegistry",
    "EntryInfo",
    "EntryKind",
    "Installation",
    "PackageJob",
    "PackageOptions",
    "PackagePipeline",
    "PackageResult",
    "PipelineState",
    "ProgressAction",
    "StorageBackend",
    "save_archive",
    # Analysis
    "LanguageCrossReferencer",
    "OrphanedReference",
    "TemplateDiff",
    "compare_with_template",
    # Core utilities
    "Diagnostics",
    "ExtensionManifest",
    "ExtensionType",
    "PackageReport",
    "PackagerConfig",
    "Progress",
    "load_config",
    "parse_manifest",
    "validate_report",
    "validate_report_with_error_details",
    # Errors
    "ArchiveError",
    "BackendConnectionError",
    "ConfigError",
    "InvalidNameError",
    "LanguageFileSyntaxError",
    "ManifestError",
    "MissingExtensionError",
    "MissingSectionsError",
    "NotFoundError",
    "PackagerError",
    "StorageIOError",
    "UnsupportedScopeError",
    "UnsupportedTypeError",
    # CLI
    "main",
]

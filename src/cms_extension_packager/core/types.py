"""Type definitions for packaging reports and configuration files.

This module defines TypedDict classes that mirror the JSON schema structures
defined in schemas/package_report.schema.json and schemas/config.schema.json.
"""

from typing import TypedDict


class PackageReport(TypedDict):
    """Outcome of packaging one extension (children nest recursively)."""

    extension_name: str  # Canonical name, e.g. 'com_events'
    manifest_path: str  # Backend path of the manifest
    success: bool
    state: str  # Final pipeline state, e.g. 'done' or 'failed'
    archive_path: str | None  # Finished archive, None on failure
    backup_path: str | None  # Previous archive moved aside, if any
    entries: list[str]  # Archive entry names
    errors: list[str]
    warnings: list[str]
    messages: list[str]
    items_processed: int  # Files added to archives during the run
    children: list["PackageReport"]  # Sub-extension reports of a package


class InstallationConfig(TypedDict, total=False):
    """Installation section of a configuration file."""

    name: str
    web_root: str  # Path of the web root on the backend
    element: str  # Default extension for analysis commands
    settings: dict[str, str]  # Opaque settings passed to collaborators


class BackendConfig(TypedDict, total=False):
    """Backend section: 'local' or 'ftp' plus connection settings."""

    type: str
    root: str  # local: confine access below this directory
    host: str
    login: str
    password: str
    port: int
    use_tls: bool
    passive: bool
    timeout: float


class OptionsConfig(TypedDict, total=False):
    """Packaging options; see PackageOptions."""

    import_database: bool
    reconnect_interval: float
    temp_dir: str
    file_types: list[str]
    destination: str
    rename_existing: bool


class ConfigDocument(TypedDict, total=False):
    """Complete configuration file."""

    installation: InstallationConfig
    backend: BackendConfig
    options: OptionsConfig

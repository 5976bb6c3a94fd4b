"""Manifest-driven file-set resolution.

``resolver_for`` picks the resolver matching a manifest's extension
type.
"""

from ..backends.base import StorageBackend
from ..core.manifest import ExtensionManifest, ExtensionType
from ..installation import Installation
from .base import (
    DEFAULT_CODE_FILE_TYPES,
    FileSet,
    FileSetResolver,
    ResolvedFileEntry,
    TableScan,
    resolve_locale,
)
from .component import ComponentResolver
from .module import ModuleResolver
from .package import PackageResolver, SubExtension

RESOLVERS: dict[ExtensionType, type[FileSetResolver]] = {
    ExtensionType.COMPONENT: ComponentResolver,
    ExtensionType.MODULE: ModuleResolver,
    ExtensionType.PACKAGE: PackageResolver,
}


def resolver_for(
    installation: Installation,
    backend: StorageBackend,
    manifest: ExtensionManifest,
    **kwargs,
) -> FileSetResolver:
    """Create the resolver for a manifest's extension type.

    Args:
        installation: Installation the extension belongs to
        backend: Backend to read the installation through
        manifest: Parsed manifest
        **kwargs: Passed to the resolver (progress, diagnostics, ...)
    """
    cls = RESOLVERS[manifest.extension_type]
    return cls(installation, backend, manifest, **kwargs)


__all__ = [
    "DEFAULT_CODE_FILE_TYPES",
    "ComponentResolver",
    "FileSet",
    "FileSetResolver",
    "ModuleResolver",
    "PackageResolver",
    "RESOLVERS",
    "ResolvedFileEntry",
    "SubExtension",
    "TableScan",
    "resolve_locale",
    "resolver_for",
]

"""Installation handle and manifest lookup.

An installation is a CMS web root reachable through a storage backend.
Extensions are located by element name (``com_events``, ``mod_news``,
``pkg_bundle``) using the platform's standard directory layout.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .backends.base import StorageBackend
from .errors import MissingExtensionError, StorageIOError, UnsupportedTypeError
from .paths import TYPE_PREFIXES, join_path, strip_prefix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtensionRef:
    """An installed extension found on disk.

    Attributes:
        type: 'component', 'module' or 'package'
        element: Element name including its prefix
        manifest_path: Backend path of the manifest
    """

    type: str
    element: str
    manifest_path: str


@dataclass
class Installation:
    """A CMS installation.

    Attributes:
        name: Display name of the installation
        web_root: Backend path of the web root
        config: Opaque installation settings (database credentials, ...)
        element: Default extension element for analysis commands
    """

    name: str
    web_root: str
    config: dict[str, Any] = field(default_factory=dict)
    element: str = ""

    def path(self, *parts: str) -> str:
        return join_path(self.web_root, *parts)

    def extension_type(self, element: str) -> str:
        """Extension type implied by an element name's prefix.

        Raises:
            UnsupportedTypeError: For prefixes other than com_, mod_, pkg_
        """
        prefix = element.strip()[:4].lower()
        types = {p: t for t, p in TYPE_PREFIXES.items()}
        if prefix not in types:
            raise UnsupportedTypeError(
                f"cannot determine the extension type of '{element}': "
                "expecting a 'com_', 'mod_' or 'pkg_' prefix"
            )
        return types[prefix]

    def manifest_candidates(self, element: str) -> list[str]:
        """Possible manifest locations for an element, most likely first."""
        element = element.strip()
        ext_type = self.extension_type(element)
        if ext_type == "component":
            folder = self.path("administrator", "components", element)
            return [
                join_path(folder, strip_prefix(element, "com_") + ".xml"),
                join_path(folder, element + ".xml"),
            ]
        if ext_type == "module":
            return [
                self.path("modules", element, element + ".xml"),
                self.path("administrator", "modules", element, element + ".xml"),
            ]
        return [self.path("administrator", "manifests", "packages", element + ".xml")]

    def find_manifest(self, backend: StorageBackend, element: str) -> str:
        """Locate an extension's manifest on the backend.

        Raises:
            MissingExtensionError: If no candidate manifest exists
            UnsupportedTypeError: If the element prefix is unknown
        """
        for candidate in self.manifest_candidates(element):
            if backend.is_file(candidate):
                logger.debug("Found manifest for %s at %s", element, candidate)
                return candidate
        raise MissingExtensionError(
            element,
            f"extension '{element}' is not found in the installation '{self.name}'",
        )

    def list_extensions(self, backend: StorageBackend) -> list[ExtensionRef]:
        """Scan the standard folders for installed extensions.

        Extensions whose folder exists but whose manifest is missing are
        skipped. Missing type folders are skipped as well.
        """
        found: list[ExtensionRef] = []
        folders = [
            ("component", self.path("administrator", "components")),
            ("module", self.path("modules")),
            ("module", self.path("administrator", "modules")),
        ]
        for ext_type, folder in folders:
            if not backend.is_directory(folder):
                logger.debug("No %s folder at %s", ext_type, folder)
                continue
            for info in backend.list_entries(folder):
                if not info.is_dir:
                    continue
                try:
                    manifest = self.find_manifest(backend, info.name)
                except (MissingExtensionError, UnsupportedTypeError):
                    continue
                found.append(ExtensionRef(ext_type, info.name, manifest))

        packages = self.path("administrator", "manifests", "packages")
        if backend.is_directory(packages):
            try:
                entries = backend.list_entries(packages)
            except StorageIOError:
                entries = []
            for info in entries:
                if not info.is_dir and info.name.lower().startswith("pkg_") and info.name.endswith(".xml"):
                    found.append(ExtensionRef("package", info.name[:-4], info.full_path))
        return found

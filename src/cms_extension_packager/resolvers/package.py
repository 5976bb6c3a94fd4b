"""Package resolver.

A package bundles other extensions. Its ``<files>`` section lists one
``<file>`` per sub-extension:

    <files folder="packages">
        <file type="module" id="newsflash" client="site">mod_newsflash.zip</file>
        <file type="component" id="events">com_events.zip</file>
    </files>

Each entry is matched to the sub-extension's manifest in the
installation; the pipeline then packages it on its own and nests the
resulting archive.
"""

from dataclasses import dataclass

from ..core.manifest import ExtensionType, PackageFileDeclaration
from ..errors import ManifestError, MissingExtensionError, UnsupportedTypeError
from ..paths import add_prefix, stem
from .base import FileSetResolver


@dataclass(frozen=True)
class SubExtension:
    """A resolved sub-extension of a package.

    Attributes:
        declaration: The ``<file>`` entry
        extension_name: Element name, e.g. ``mod_newsflash``
        manifest_path: Backend path of the sub-extension manifest
    """

    declaration: PackageFileDeclaration
    extension_name: str
    manifest_path: str


class PackageResolver(FileSetResolver):
    """Resolves ``pkg_*`` extensions."""

    extension_type = ExtensionType.PACKAGE

    SECTION_PLAN = (
        ("scriptfile", True),
        ("languages", True),
    )

    def sub_manifest_path(self, declaration: PackageFileDeclaration) -> str:
        """Manifest location of a sub-extension.

        Looks in the same places as a direct lookup of the element; site
        module locations come first unless the entry's client is the
        administrator. Returns the most likely location when none exists.

        Raises:
            ManifestError: If the entry has no ``type`` attribute
            UnsupportedTypeError: For types other than component and module
        """
        if not declaration.type:
            raise ManifestError(
                f"'file' node '{declaration.filename}' in the 'files' section "
                "is missing the 'type' attribute"
            )
        if declaration.type not in (ExtensionType.COMPONENT.value, ExtensionType.MODULE.value):
            raise UnsupportedTypeError(f"package type '{declaration.type}' not currently supported")
        candidates = self.installation.manifest_candidates(self.sub_element(declaration))
        if declaration.type == ExtensionType.MODULE.value and declaration.client in ("admin", "administrator"):
            candidates.reverse()
        for candidate in candidates:
            if self.backend.is_file(candidate):
                return candidate
        return candidates[0]

    @staticmethod
    def sub_element(declaration: PackageFileDeclaration) -> str:
        """Element name of a sub-extension, e.g. ``mod_news`` for ``mod_news.zip``."""
        return add_prefix(stem(declaration.filename), ExtensionType(declaration.type).prefix)

    def sub_extensions(self, strict: bool = True) -> list[SubExtension]:
        """Every declared sub-extension, in declaration order.

        Args:
            strict: Raise on the first missing sub-extension; otherwise
                record an error for each missing one and skip it

        Raises:
            ManifestError: If the files section is empty or an entry lacks a type
            UnsupportedTypeError: For unsupported sub-extension types
            MissingExtensionError: If a sub-extension is not installed (strict)
        """
        declarations = self.manifest.package_files()
        if not declarations:
            raise ManifestError(
                "a 'files' section is empty: expecting package ZIP file declarations"
            )
        subs: list[SubExtension] = []
        for declaration in declarations:
            manifest_path = self.sub_manifest_path(declaration)
            name = self.sub_element(declaration)
            if not self.backend.is_file(manifest_path):
                if strict:
                    raise MissingExtensionError(
                        name,
                        f"extension '{name}' is not found in the installation: "
                        f"is '{self.element_name}' fully installed? Expected {manifest_path}",
                    )
                self.diagnostics.error(str(MissingExtensionError(name)))
                continue
            subs.append(SubExtension(declaration, name, manifest_path))
            self.checkpoint(name)
        return subs

    @property
    def element_name(self) -> str:
        """Package element from the manifest filename (``pkg_bundle``)."""
        return stem(self.manifest.source_path)

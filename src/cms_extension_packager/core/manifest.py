"""Extension manifest model.

A manifest is the XML descriptor shipped with every extension:

    <extension type="component" version="3.0" method="upgrade">
        <name>com_events</name>
        <files folder="site">
            <filename>events.php</filename>
            <folder>views</folder>
        </files>
        <administration>
            <files folder="admin">...</files>
            <languages folder="admin">
                <language tag="en-GB">language/en-GB.com_events.ini</language>
            </languages>
        </administration>
        ...
    </extension>

``parse_manifest`` turns such a document into an immutable
ExtensionManifest, or raises: there is no partially parsed manifest.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from ..errors import ManifestError, MissingSectionsError, UnsupportedTypeError
from .xmlnode import Element, Node, parse_xml

logger = logging.getLogger(__name__)

# Token syntax reserved for component templates
PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")

# Historical language path shapes and their canonical replacement
_LEGACY_LANGUAGE_PREFIXES = ("admin/languages/", "site/languages/")


class ExtensionType(str, Enum):
    """Extension types handled by the packager."""

    COMPONENT = "component"
    MODULE = "module"
    PACKAGE = "package"

    @property
    def prefix(self) -> str:
        return {"component": "com_", "module": "mod_", "package": "pkg_"}[self.value]


REQUIRED_SECTIONS: dict[ExtensionType, tuple[str, ...]] = {
    ExtensionType.PACKAGE: (
        "author", "authorEmail", "authorUrl", "copyright", "creationDate",
        "description", "files", "license", "name", "packagename", "version",
    ),
    ExtensionType.COMPONENT: (
        "name", "creationDate", "author", "authorEmail", "authorUrl", "copyright",
        "license", "version", "description", "files", "administration", "media",
        "languages",
    ),
    ExtensionType.MODULE: (
        "name", "author", "creationDate", "copyright", "license", "authorEmail",
        "authorUrl", "version", "description", "files",
    ),
}

OPTIONAL_SECTIONS: dict[ExtensionType, tuple[str, ...]] = {
    ExtensionType.PACKAGE: ("packager", "packagerurl", "scriptfile", "updateservers", "url"),
    ExtensionType.COMPONENT: ("scriptfile", "install", "uninstall", "update"),
    ExtensionType.MODULE: ("install", "uninstall", "update"),
}


@dataclass(frozen=True)
class ExplicitFile:
    relative_path: str


@dataclass(frozen=True)
class FolderInclusion:
    relative_folder: str


FileDeclaration = ExplicitFile | FolderInclusion


@dataclass(frozen=True)
class MediaResource:
    """A file or folder of a ``<media>`` section."""

    relative_path: str
    is_folder: bool = False


@dataclass(frozen=True)
class LanguageResource:
    """A ``<language>`` declaration.

    Attributes:
        locale: Value of the ``tag`` attribute ('' when not declared)
        relative_file: Declared path
        folder_scope: 'admin', 'site', or the explicit folder attribute
    """

    locale: str
    relative_file: str
    folder_scope: str

    @property
    def canonical_file(self) -> str:
        return canonical_language_path(self.relative_file)


@dataclass(frozen=True)
class SqlResource:
    """An install or uninstall SQL file declaration."""

    relative_file: str
    phase: str
    driver: str = ""
    charset: str = ""


@dataclass(frozen=True)
class PackageFileDeclaration:
    """A sub-extension entry of a package's ``<files>`` section."""

    filename: str
    type: str
    id: str = ""
    client: str = ""


@dataclass(frozen=True)
class UpdateServer:
    url: str
    type: str = ""
    priority: str = ""
    name: str = ""


def canonical_language_path(path: str) -> str:
    """Rewrite legacy ``admin/languages/`` and ``site/languages/`` prefixes.

    Example:
        >>> canonical_language_path("admin/languages/en-GB/en-GB.com_x.ini")
        'language/en-GB/en-GB.com_x.ini'
    """
    normalized = path.replace("\\", "/")
    lowered = normalized.lower()
    for legacy in _LEGACY_LANGUAGE_PREFIXES:
        if len(lowered) > len(legacy) and lowered.startswith(legacy):
            return "language/" + normalized[len(legacy):]
    return normalized


def file_declarations(node: Node) -> list[FileDeclaration]:
    """Read ``<filename>`` and ``<folder>`` children in declaration order."""
    declarations: list[FileDeclaration] = []
    for child in node.sequence:
        if not child.text:
            continue
        if child.tag == "filename":
            declarations.append(ExplicitFile(child.text))
        elif child.tag == "folder":
            declarations.append(FolderInclusion(child.text))
    return declarations


def media_declarations(node: Node) -> list[MediaResource]:
    return [
        MediaResource(d.relative_folder, is_folder=True)
        if isinstance(d, FolderInclusion)
        else MediaResource(d.relative_path)
        for d in file_declarations(node)
    ]


def language_declarations(node: Node, default_scope: str = "") -> list[LanguageResource]:
    """Read the ``<language>`` children of a ``<languages>`` node."""
    scope = node.attr("folder").strip().lower() or default_scope
    return [
        LanguageResource(
            locale=child.attr("tag").strip(),
            relative_file=child.text,
            folder_scope=scope,
        )
        for child in node.children("language")
    ]


@dataclass(frozen=True)
class ExtensionManifest:
    """Parsed extension descriptor.

    Attributes:
        extension_type: Component, module or package
        attributes: Root tag attributes (type, version, method, client, ...)
        root: Root XML node
        source_path: Backend path the manifest was read from
    """

    extension_type: ExtensionType
    attributes: dict[str, str]
    root: Element
    source_path: str

    @property
    def sections(self) -> dict[str, list[Node]]:
        return self.root.grouped

    def section(self, name: str) -> Node | None:
        return self.root.child(name)

    def has_section(self, name: str) -> bool:
        return self.root.child(name) is not None

    def missing_sections(self) -> list[str]:
        return [s for s in REQUIRED_SECTIONS[self.extension_type] if not self.has_section(s)]

    def check_requirements(self) -> None:
        """Raise if any required section is absent.

        Raises:
            MissingSectionsError: Listing every absent section
        """
        missing = self.missing_sections()
        if missing:
            raise MissingSectionsError(missing, self.source_path)

    @property
    def name(self) -> str:
        return self.root.child_text("name")

    @property
    def version(self) -> str:
        return self.root.child_text("version") or self.attributes.get("version", "")

    @property
    def client(self) -> str:
        """The ``client`` root attribute (modules: 'site' or 'administrator')."""
        return self.attributes.get("client", "")

    @property
    def scriptfile(self) -> str:
        return self.root.child_text("scriptfile")

    def language_files(self) -> dict[str, list[LanguageResource]]:
        """Language resources keyed by folder scope.

        'admin' comes from ``administration/languages`` and 'site' from
        the root ``languages`` section. An explicit ``folder`` attribute
        overrides the key. Paths are returned in canonical
        ``language/...`` form.
        """
        result: dict[str, list[LanguageResource]] = {}
        administration = self.section("administration")
        candidates = [
            ("admin", administration.child("languages") if administration else None),
            ("site", self.section("languages")),
        ]
        for location, node in candidates:
            if node is None:
                continue
            scope = node.attr("folder").strip() or location
            result.setdefault(scope, []).extend(
                LanguageResource(
                    locale=child.attr("tag").strip(),
                    relative_file=canonical_language_path(child.text),
                    folder_scope=scope,
                )
                for child in node.children("language")
                if child.text
            )
        return result

    def sql_resources(self, phase: str) -> list[SqlResource]:
        """SQL files of ``<install>`` or ``<uninstall>``.

        Args:
            phase: 'install' or 'uninstall'
        """
        section = self.section(phase)
        if section is None:
            return []
        resources: list[SqlResource] = []
        for sql in section.children("sql"):
            for f in sql.children("file"):
                if not f.text:
                    continue
                resources.append(
                    SqlResource(
                        relative_file=f.text,
                        phase=phase,
                        driver=f.attr("driver"),
                        charset=f.attr("charset"),
                    )
                )
        return resources

    def package_files(self) -> list[PackageFileDeclaration]:
        """Sub-extension declarations of every ``<files>`` section."""
        declarations: list[PackageFileDeclaration] = []
        for files in self.sections.get("files", []):
            for f in files.children("file"):
                attrs = f.extract_attributes({"type": "", "id": "", "client": ""})
                declarations.append(
                    PackageFileDeclaration(
                        filename=f.text,
                        type=attrs["type"].strip(),
                        id=attrs["id"],
                        client=attrs["client"],
                    )
                )
        return declarations

    def update_servers(self) -> list[UpdateServer]:
        section = self.section("updateservers")
        if section is None:
            return []
        servers: list[UpdateServer] = []
        for server in section.children("server"):
            attrs = server.extract_attributes({"type": "", "priority": "", "name": ""})
            servers.append(
                UpdateServer(
                    url=server.text,
                    type=attrs["type"],
                    priority=attrs["priority"],
                    name=attrs["name"],
                )
            )
        return servers

    def placeholders(self) -> list[str]:
        """Names of ``{{placeholder}}`` tokens found in section text."""
        found: list[str] = []

        def visit(node: Node) -> None:
            for name in PLACEHOLDER_PATTERN.findall(node.value):
                if name not in found:
                    found.append(name)
            for child in node.sequence:
                visit(child)

        visit(self.root)
        return found


def parse_manifest(
    data: bytes | str,
    source_path: str,
    require_sections: bool = True,
) -> ExtensionManifest:
    """Parse manifest XML into an ExtensionManifest.

    Args:
        data: Manifest XML
        source_path: Path the manifest was read from
        require_sections: Check the type's required sections

    Returns:
        Parsed manifest

    Raises:
        ManifestError: If the XML is malformed or the root ``type`` is missing
        UnsupportedTypeError: If the type is not component, module or package
        MissingSectionsError: If required sections are absent
    """
    root = parse_xml(data, source_path)
    attributes = root.extract_attributes({"type": ""})
    type_name = attributes["type"].strip()
    if not type_name:
        raise ManifestError(
            f"The manifest '{source_path}' is missing the extension 'type' attribute: "
            "expecting an extension type like 'component'"
        )
    try:
        extension_type = ExtensionType(type_name.lower())
    except ValueError:
        raise UnsupportedTypeError(
            f"extension type '{type_name}' not currently supported"
        ) from None

    manifest = ExtensionManifest(
        extension_type=extension_type,
        attributes=attributes,
        root=root,
        source_path=source_path,
    )
    if require_sections:
        manifest.check_requirements()
    logger.debug("Parsed %s manifest %s", extension_type.value, source_path)
    return manifest

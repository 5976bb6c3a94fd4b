"""File-set resolution shared by every extension type.

A resolver walks the sections of a parsed manifest and turns each
declaration into concrete ``(source path, archive entry name)`` pairs
by looking at the installation through a storage backend. Resolution
is fail-fast: the first missing file or unreadable folder raises.
"""

import hashlib
import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from ..backends.base import EntryInfo, StorageBackend
from ..core.manifest import (
    ExplicitFile,
    ExtensionManifest,
    LanguageResource,
    file_declarations,
    language_declarations,
    media_declarations,
)
from ..core.xmlnode import Node
from ..diagnostics import Diagnostics
from ..errors import ManifestError, NotFoundError, UnsupportedScopeError
from ..installation import Installation
from ..paths import basename, dirname, join_path, relative_to, strip_prefix
from ..progress import RECONNECT_THRESHOLD, Progress, reconnect_if_due
from .sql import has_no_data_marker, parse_create_tables, parse_drop_tables

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en-GB"
DEFAULT_CODE_FILE_TYPES = ("php", "phtml", "xml")

# en-GB.com_events.ini -> en-GB
_LOCALE_FROM_FILENAME = re.compile(r"(.*?)\.(.*?)\.ini$", re.IGNORECASE)

LANGUAGE_SCOPES = {"admin": "administrator", "site": ""}


@dataclass(frozen=True)
class ResolvedFileEntry:
    """One file to place in the archive.

    Attributes:
        source_path: Backend path of the file (local path when staged)
        archive_entry_name: Destination path inside the archive
        staged: True when the source is a local file produced by the run
            (generated SQL, child archives) rather than a backend file
    """

    source_path: str
    archive_entry_name: str
    staged: bool = False

    @property
    def key(self) -> str:
        return hashlib.md5(f"{self.source_path}_{self.archive_entry_name}".encode()).hexdigest()


class FileSet:
    """Ordered collection of entries, deduplicated by ``(source, dest)``.

    Adding an entry whose pair is already present replaces the stored
    entry in place (last write wins, first position kept).
    """

    def __init__(self, entries: Iterable[ResolvedFileEntry] = ()):
        self._entries: dict[str, ResolvedFileEntry] = {}
        self.extend(entries)

    def add(self, entry: ResolvedFileEntry) -> None:
        self._entries[entry.key] = entry

    def add_file(self, source: str, dest: str, staged: bool = False) -> ResolvedFileEntry:
        entry = ResolvedFileEntry(source, dest, staged)
        self.add(entry)
        return entry

    def extend(self, entries: Iterable[ResolvedFileEntry]) -> None:
        for entry in entries:
            self.add(entry)

    def replace_destination(self, entry: ResolvedFileEntry) -> None:
        """Add an entry, dropping any other entry with the same archive name."""
        for key in [k for k, e in self._entries.items() if e.archive_entry_name == entry.archive_entry_name]:
            del self._entries[key]
        self.add(entry)

    def find_source(self, source: str) -> ResolvedFileEntry | None:
        for entry in self._entries.values():
            if entry.source_path == source:
                return entry
        return None

    @property
    def entries(self) -> list[ResolvedFileEntry]:
        return list(self._entries.values())

    def archive_entry_names(self) -> list[str]:
        return [e.archive_entry_name for e in self._entries.values()]

    def __iter__(self) -> Iterator[ResolvedFileEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class TableScan:
    """Tables referenced by an extension's SQL scripts.

    Attributes:
        install_path: Backend path of the install script ('' if none)
        uninstall_path: Backend path of the uninstall script ('' if none)
        no_data: The install script carries the ``__no_data__`` marker
        created: Tables created by the install script
        dropped: Tables dropped by the uninstall script
    """

    install_path: str = ""
    uninstall_path: str = ""
    no_data: bool = False
    created: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


def resolve_locale(file: str, default: str = DEFAULT_LOCALE) -> str:
    """Infer the locale from a language filename such as ``en-GB.com_x.ini``."""
    match = _LOCALE_FROM_FILENAME.match(basename(file))
    return match.group(1) if match else default


class FileSetResolver:
    """Base resolver with the per-section algorithms.

    Subclasses declare ``SECTION_PLAN``, the ordered sections to
    resolve with their optionality, and may override ``resolve``.

    Attributes:
        SECTION_PLAN: ``(section name, is_optional)`` pairs in resolution order
    """

    SECTION_PLAN: tuple[tuple[str, bool], ...] = ()

    def __init__(
        self,
        installation: Installation,
        backend: StorageBackend,
        manifest: ExtensionManifest,
        progress: Progress | None = None,
        diagnostics: Diagnostics | None = None,
        reconnect_threshold: float = RECONNECT_THRESHOLD,
    ):
        self.installation = installation
        self.backend = backend
        self.manifest = manifest
        self.progress = progress or Progress()
        self.diagnostics = diagnostics or Diagnostics()
        self.reconnect_threshold = reconnect_threshold

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def extension_dir(self) -> str:
        return dirname(self.manifest.source_path)

    @property
    def element(self) -> str:
        """Element folder name, e.g. ``com_events`` for a component."""
        return basename(self.extension_dir)

    @property
    def type_folder(self) -> str:
        return self.manifest.extension_type.value + "s"

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def resolve(self) -> FileSet:
        """Resolve every planned section into a file set.

        Raises:
            PackagerError: On the first resolution failure
        """
        file_set = FileSet()
        for section, optional in self.SECTION_PLAN:
            handler = getattr(self, f"_section_{section}")
            file_set.extend(handler(optional))
            self.checkpoint(section)
        logger.debug("Resolved %d entries for %s", len(file_set), self.element)
        return file_set

    def checkpoint(self, name: str) -> bool:
        """Reconnect the backend if the current interval is over the threshold."""
        return reconnect_if_due(self.backend, self.progress, self.reconnect_threshold, name)

    def _missing(self, section: str, optional: bool) -> list[ResolvedFileEntry]:
        if not optional:
            raise ManifestError(f"'{section}' section is missing")
        return []

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _section_files(self, optional: bool) -> list[ResolvedFileEntry]:
        nodes = self.manifest.sections.get("files", [])
        if not nodes:
            return self._missing("files", optional)
        entries: list[ResolvedFileEntry] = []
        for node in nodes:
            entries.extend(self.resolve_files_node(node))
        return entries

    def _section_languages(self, optional: bool) -> list[ResolvedFileEntry]:
        node = self.manifest.section("languages")
        if node is None:
            self.diagnostics.warning("'languages' section is missing")
            return self._missing("languages", optional)
        return self.resolve_languages_node(node)

    def _section_media(self, optional: bool) -> list[ResolvedFileEntry]:
        node = self.manifest.section("media")
        if node is None:
            return self._missing("media", optional)
        return self.resolve_media_node(node)

    def _section_scriptfile(self, optional: bool) -> list[ResolvedFileEntry]:
        script = self.manifest.scriptfile
        if not script:
            return self._missing("scriptfile", optional)
        source = join_path(self.extension_dir, script)
        if not self.backend.is_file(source):
            raise NotFoundError(f"Script file not found: {source}", source)
        return [ResolvedFileEntry(source, script)]

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def client_dir(self, folder: str) -> str:
        if self.manifest.client.lower() in ("administrator", "admin"):
            return "administrator"
        return "" if folder in ("", "site") else "administrator"

    def resolve_files_node(self, node: Node) -> list[ResolvedFileEntry]:
        """Resolve a ``<files>`` node.

        Source files live under
        ``{web root}/{'' | administrator}/{type}s/{element}/``; archive
        entries are rooted at the node's ``folder`` attribute.
        """
        folder = node.extract_attributes({"folder": ""})["folder"].strip()
        source_dir = self.installation.path(self.client_dir(folder), self.type_folder, self.element)
        entries: list[ResolvedFileEntry] = []
        for declaration in file_declarations(node):
            if isinstance(declaration, ExplicitFile):
                source = join_path(source_dir, declaration.relative_path)
                if not self.backend.exists(source):
                    raise NotFoundError(f"Source file not found: {source}", source)
                entries.append(
                    ResolvedFileEntry(source, join_path(folder, declaration.relative_path))
                )
            else:
                entries.extend(
                    self.expand_folder(
                        join_path(source_dir, declaration.relative_folder),
                        join_path(folder, declaration.relative_folder),
                    )
                )
        return entries

    def expand_folder(self, source_dir: str, dest_dir: str) -> list[ResolvedFileEntry]:
        """Every file under ``source_dir``, mapped below ``dest_dir``.

        Raises:
            NotFoundError: If the folder does not exist
            StorageIOError: If any directory cannot be listed
        """
        if not self.backend.is_directory(source_dir):
            raise NotFoundError(f"Source folder not found: {source_dir}", source_dir)
        entries: list[ResolvedFileEntry] = []

        def visit(is_dir: bool, full_path: str, info: EntryInfo) -> bool:
            if not is_dir:
                entries.append(
                    ResolvedFileEntry(full_path, join_path(dest_dir, relative_to(full_path, source_dir)))
                )
            return True

        self.backend.iterate(source_dir, True, visit)
        return entries

    def language_scope(self, node: Node, in_administration: bool = False) -> str:
        """Scope of a ``<languages>`` node: 'admin' or 'site'.

        Raises:
            UnsupportedScopeError: For any other scope
        """
        scope = node.attr("folder").strip().lower()
        if not scope and in_administration:
            scope = "admin"
        if not scope:
            first = node.child("language")
            if first is not None and first.text:
                scope = first.text.replace("\\", "/").split("/")[0].lower()
        if not scope:
            raise UnsupportedScopeError("Missing language folder: expecting 'admin' or 'site'")
        if scope not in LANGUAGE_SCOPES:
            raise UnsupportedScopeError(
                f"Unsupported language folder '{scope}': expecting 'admin' or 'site'"
            )
        return scope

    def resolve_languages_node(self, node: Node, in_administration: bool = False) -> list[ResolvedFileEntry]:
        """Resolve a ``<languages>`` node.

        Files are read from ``{web root}/{administrator|''}/language/{locale}/``
        and placed under ``{scope}/{declared path}``.
        """
        scope = self.language_scope(node, in_administration)
        entries: list[ResolvedFileEntry] = []
        for resource in language_declarations(node, scope):
            entries.append(self.resolve_language(resource, scope))
        return entries

    def resolve_language(self, resource: LanguageResource, scope: str) -> ResolvedFileEntry:
        if not resource.relative_file:
            raise ManifestError(f"Language file entry is empty in the {scope} section")
        dest = join_path(scope, resource.relative_file)
        locale = resource.locale
        if not locale:
            locale = resolve_locale(resource.relative_file)
            self.diagnostics.warning(
                f"Missing 'tag' language attribute for {resource.relative_file}: using '{locale}'"
            )
        source = self.installation.path(
            LANGUAGE_SCOPES[scope], "language", locale, basename(resource.relative_file)
        )
        if not self.backend.is_file(source):
            raise NotFoundError(f"Language file not found for '{basename(source)}': {dest}", source)
        return ResolvedFileEntry(source, dest)

    def resolve_media_node(self, node: Node) -> list[ResolvedFileEntry]:
        """Resolve a ``<media>`` node.

        Sources live under ``{web root}/{folder}/{destination or element}/``
        and are placed under ``{folder}/`` in the archive.
        """
        attrs = node.extract_attributes({"folder": "", "destination": ""})
        folder = attrs["folder"].strip()
        source_dir = self.installation.path(folder, attrs["destination"].strip() or self.element)
        entries: list[ResolvedFileEntry] = []
        for resource in media_declarations(node):
            source = join_path(source_dir, resource.relative_path)
            dest = join_path(folder, resource.relative_path)
            if resource.is_folder:
                entries.extend(self.expand_folder(source, dest))
                continue
            if not self.backend.exists(source):
                raise NotFoundError(f"Media file not found: {source}", source)
            entries.append(ResolvedFileEntry(source, dest))
        return entries

    # ------------------------------------------------------------------
    # Database scripts
    # ------------------------------------------------------------------

    def sql_path(self, relative_file: str) -> str:
        """Scripts are declared relative to the extension's own folder."""
        return join_path(self.extension_dir, relative_file)

    def _read_text(self, path: str) -> str:
        return self.backend.read_file(path).decode("utf-8", errors="replace")

    def scan_tables(self) -> TableScan:
        """Read the install/uninstall scripts and collect table names.

        Raises:
            NotFoundError: If a declared script is missing
        """
        scan = TableScan()
        installs = self.manifest.sql_resources("install")
        uninstalls = self.manifest.sql_resources("uninstall")
        if not installs:
            self.diagnostics.info(
                f"The manifest has no database 'install/sql/file' section: {self.manifest.source_path}"
            )
            return scan

        scan.install_path = self.sql_path(installs[0].relative_file)
        contents = self._read_text(scan.install_path)
        if has_no_data_marker(contents):
            scan.no_data = True
            return scan
        scan.created = parse_create_tables(contents)
        if not scan.created:
            self.diagnostics.warning(
                f"database table install file has no CREATE TABLE statements: '{installs[0].relative_file}'"
            )

        if uninstalls:
            scan.uninstall_path = self.sql_path(uninstalls[0].relative_file)
            scan.dropped = parse_drop_tables(self._read_text(scan.uninstall_path))
        else:
            self.diagnostics.info(
                "The manifest has an install section but no 'uninstall/sql/file' section"
            )
        return scan

    # ------------------------------------------------------------------
    # Code files
    # ------------------------------------------------------------------

    def code_files(self, file_types: Iterable[str] = DEFAULT_CODE_FILE_TYPES) -> dict[str, list[str]]:
        """Source files that may reference language constants, by scope.

        Includes the manifest itself, the matching plugin folder, the
        script file and every file of the ``<files>`` sections whose
        extension is in ``file_types``.
        """
        types = {t.lower().lstrip(".") for t in file_types}
        storage: dict[str, list[str]] = {"admin": [self.manifest.source_path]}

        def wanted(path: str) -> bool:
            name = basename(path)
            return "." in name and name.rsplit(".", 1)[1].lower() in types

        def collect(scope: str, folder: str) -> None:
            if not self.backend.is_directory(folder):
                self.diagnostics.warning(f"Code folder not found: {folder}")
                return

            def visit(is_dir: bool, full_path: str, info: EntryInfo) -> bool:
                if not is_dir and wanted(full_path):
                    storage.setdefault(scope, []).append(full_path)
                return True

            self.backend.iterate(folder, True, visit)

        plugin_dir = self.installation.path("plugins", strip_prefix(self.element, "com_"))
        if self.backend.is_directory(plugin_dir):
            collect("admin", plugin_dir)

        if self.manifest.scriptfile and wanted(self.manifest.scriptfile):
            storage["admin"].append(join_path(self.extension_dir, self.manifest.scriptfile))

        nodes = list(self.manifest.sections.get("files", []))
        administration = self.manifest.section("administration")
        if administration is not None:
            nodes.extend(administration.children("files"))
        for node in nodes:
            client = self.client_dir(node.attr("folder").strip())
            scope = "admin" if client else "site"
            source_dir = self.installation.path(client, self.type_folder, self.element)
            for declaration in file_declarations(node):
                if isinstance(declaration, ExplicitFile):
                    if wanted(declaration.relative_path):
                        storage.setdefault(scope, []).append(join_path(source_dir, declaration.relative_path))
                else:
                    collect(scope, join_path(source_dir, declaration.relative_folder))

        for scope, files in storage.items():
            storage[scope] = list(dict.fromkeys(files))
        return storage

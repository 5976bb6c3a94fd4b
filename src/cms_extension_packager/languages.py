"""Language constant cross-referencing.

Compares the constants declared in an extension's language files with
the constants its code actually uses. Code files are discovered the
same way the resolvers find files to package, and both sides are
grouped by scope ('admin' or 'site') so that administrator strings are
only matched against administrator code.
"""

import logging
import re
from dataclasses import dataclass

from .backends.base import StorageBackend
from .core.ini import IniEntry, parse_ini_bytes
from .core.manifest import ExtensionManifest, LanguageResource, parse_manifest
from .diagnostics import Diagnostics
from .installation import Installation
from .paths import basename
from .resolvers import DEFAULT_CODE_FILE_TYPES, FileSetResolver, resolver_for
from .resolvers.base import LANGUAGE_SCOPES

logger = logging.getLogger(__name__)

# Naming convention of component and module constants
CONSTANT_REFERENCE = re.compile(r"(?:COM|MOD)_[A-Z_]+")
_XML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)


@dataclass(frozen=True)
class OrphanedReference:
    """A constant used in code but declared in no language file of its scope.

    Attributes:
        file: Backend path of the code file
        line_number: 1-based line of the reference
        constant: The referenced constant
    """

    file: str
    line_number: int
    constant: str


def strip_xml_comments(path: str, contents: str) -> str:
    """Remove ``<!-- -->`` comments from XML files, keeping line breaks."""
    if not path.lower().endswith(".xml") or "<!--" not in contents:
        return contents
    return _XML_COMMENT.sub(lambda m: "\n" * m.group(0).count("\n"), contents)


class LanguageCrossReferencer:
    """Finds unused and orphaned language constants of an extension.

    Example:
        >>> refs = LanguageCrossReferencer(installation, backend)
        >>> unused = refs.find_unused_constants('com_events')
        >>> unused['admin']['language/en-GB/en-GB.com_events.ini']
        [IniEntry(key='COM_EVENTS_OLD_LABEL', value='Old', line_number=12)]
    """

    def __init__(
        self,
        installation: Installation,
        backend: StorageBackend,
        file_types: tuple[str, ...] = DEFAULT_CODE_FILE_TYPES,
        diagnostics: Diagnostics | None = None,
    ):
        self.installation = installation
        self.backend = backend
        self.file_types = file_types
        self.diagnostics = diagnostics or Diagnostics()
        self._contents: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_manifest(self, element: str) -> ExtensionManifest:
        path = self.installation.find_manifest(self.backend, element)
        return parse_manifest(self.backend.read_file(path), path, require_sections=False)

    def _resolver(self, manifest: ExtensionManifest) -> FileSetResolver:
        return resolver_for(self.installation, self.backend, manifest, diagnostics=self.diagnostics)

    def language_file_path(self, resource: LanguageResource, scope: str) -> str:
        """Backend path of a declared language file.

        Declared paths are relative to the site root for 'site' and to
        ``administrator/`` otherwise. Files declared without the
        ``language/{locale}/`` part are looked up there as well.
        """
        base = LANGUAGE_SCOPES.get(scope, LANGUAGE_SCOPES["admin"])
        path = self.installation.path(base, resource.canonical_file)
        if not self.backend.is_file(path) and resource.locale:
            fallback = self.installation.path(base, "language", resource.locale, basename(resource.relative_file))
            if self.backend.is_file(fallback):
                return fallback
        return path

    def declared_constants(self, manifest: ExtensionManifest) -> dict[str, dict[str, list[IniEntry]]]:
        """Constants of every declared language file, by scope and declared path.

        Raises:
            NotFoundError: If a declared language file is missing
            LanguageFileSyntaxError: If a language file is malformed
        """
        declared: dict[str, dict[str, list[IniEntry]]] = {}
        for scope, resources in manifest.language_files().items():
            files = declared.setdefault(scope, {})
            for resource in resources:
                path = self.language_file_path(resource, scope)
                files[resource.canonical_file] = parse_ini_bytes(self.backend.read_file(path), path)
        return declared

    def _read(self, path: str) -> str:
        if path not in self._contents:
            text = self.backend.read_file(path).decode("utf-8", errors="replace")
            self._contents[path] = strip_xml_comments(path, text)
        return self._contents[path]

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def find_unused_constants(self, element: str) -> dict[str, dict[str, list[IniEntry]]]:
        """Declared constants that no code file of the same scope mentions.

        The constant named after the extension itself (``COM_EVENTS`` for
        ``com_events``) is used by the CMS and never reported.

        Args:
            element: Extension element name

        Returns:
            ``{scope: {language file: [unused entries]}}`` for every scope
            that has code files

        Raises:
            PackagerError: If the extension, a language file or a code
                file cannot be read
        """
        manifest = self.load_manifest(element)
        reserved = element.strip().upper()
        declared = self.declared_constants(manifest)
        code_files = self._resolver(manifest).code_files(self.file_types)

        unused: dict[str, dict[str, list[IniEntry]]] = {}
        for scope, files in declared.items():
            scope_code = code_files.get(scope, [])
            if not scope_code:
                self.diagnostics.warning(f"No code files found for language scope '{scope}'")
                continue
            unused[scope] = {}
            for language_file, entries in files.items():
                remaining = {e.key: e for e in entries if e.key.upper() != reserved}
                if remaining:
                    self._discard_used(remaining, scope_code)
                unused[scope][language_file] = list(remaining.values())
                logger.debug("%s: %d unused constant(s)", language_file, len(remaining))
        return unused

    def _discard_used(self, remaining: dict[str, IniEntry], code_files: list[str]) -> None:
        pattern = re.compile(
            r"(?<!\w)(" + "|".join(re.escape(k) for k in remaining) + r")(?!\w)"
        )
        for path in code_files:
            for constant in pattern.findall(self._read(path)):
                remaining.pop(constant, None)
            if not remaining:
                return

    def find_orphaned_constants(self, element: str) -> dict[str, list[OrphanedReference]]:
        """Constant references in code that no language file of the scope declares.

        Args:
            element: Extension element name

        Returns:
            ``{scope: [OrphanedReference]}`` in file and line order

        Raises:
            PackagerError: If the extension, a language file or a code
                file cannot be read
        """
        manifest = self.load_manifest(element)
        reserved = element.strip().upper()
        declared = self.declared_constants(manifest)
        code_files = self._resolver(manifest).code_files(self.file_types)

        orphaned: dict[str, list[OrphanedReference]] = {}
        for scope, files in code_files.items():
            if not files:
                continue
            if scope not in declared:
                self.diagnostics.warning(f"No language files declared for code scope '{scope}'")
                continue
            known = {e.key for entries in declared[scope].values() for e in entries}
            if not known:
                self.diagnostics.warning(f"Language files of scope '{scope}' contain no constants")
                continue
            known.add(reserved)
            found = orphaned.setdefault(scope, [])
            for path in files:
                text = self._read(path).replace("\r\n", "\n").replace("\r", "\n")
                for line_number, line in enumerate(text.split("\n"), start=1):
                    for constant in CONSTANT_REFERENCE.findall(line):
                        if constant not in known:
                            found.append(OrphanedReference(path, line_number, constant))
        return orphaned


def format_orphans(orphans: dict[str, list[OrphanedReference]]) -> dict[str, list[dict[str, object]]]:
    """JSON-friendly form of ``find_orphaned_constants`` output."""
    return {
        scope: [
            {"file": r.file, "line_number": r.line_number, "constant": r.constant}
            for r in refs
        ]
        for scope, refs in orphans.items()
    }


def format_unused(unused: dict[str, dict[str, list[IniEntry]]]) -> dict[str, dict[str, list[dict[str, object]]]]:
    """JSON-friendly form of ``find_unused_constants`` output."""
    return {
        scope: {
            name: [{"key": e.key, "value": e.value, "line_number": e.line_number} for e in entries]
            for name, entries in files.items()
        }
        for scope, files in unused.items()
    }


__all__ = [
    "CONSTANT_REFERENCE",
    "LanguageCrossReferencer",
    "OrphanedReference",
    "format_orphans",
    "format_unused",
    "strip_xml_comments",
]

"""Component resolver."""

from ..core.manifest import ExtensionType
from ..errors import ManifestError
from .base import FileSetResolver, ResolvedFileEntry


class ComponentResolver(FileSetResolver):
    """Resolves ``com_*`` extensions.

    Besides the site ``<files>``, a component carries an
    ``<administration>`` section with its own ``<files>`` and
    ``<languages>``.
    """

    extension_type = ExtensionType.COMPONENT

    SECTION_PLAN = (
        ("files", False),
        ("administration", False),
        ("languages", True),
        ("scriptfile", True),
        ("media", True),
    )

    def _section_administration(self, optional: bool) -> list[ResolvedFileEntry]:
        section = self.manifest.section("administration")
        if section is None:
            return self._missing("administration", optional)
        files = section.children("files")
        if not files:
            raise ManifestError("'administration' section is empty")

        entries: list[ResolvedFileEntry] = []
        for node in files:
            entries.extend(self.resolve_files_node(node))

        languages = section.child("languages")
        if languages is None:
            self.diagnostics.warning("'languages' section is missing from the administration section")
        else:
            entries.extend(self.resolve_languages_node(languages, in_administration=True))
        return entries

"""Module resolver."""

from ..core.manifest import ExtensionType
from .base import FileSetResolver


class ModuleResolver(FileSetResolver):
    """Resolves ``mod_*`` extensions.

    Site modules live in ``modules/``; modules whose manifest declares
    ``client="administrator"`` live in ``administrator/modules/``.
    """

    extension_type = ExtensionType.MODULE

    SECTION_PLAN = (
        ("files", False),
        ("languages", True),
        ("media", True),
    )

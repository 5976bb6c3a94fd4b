"""Exception hierarchy for the packager.

Every error raised deliberately by this package derives from
PackagerError so callers can catch the whole family at once while
still distinguishing the cases that need a specific remediation
message (for example a sub-extension that is not installed).
"""


class PackagerError(Exception):
    """Base class for all packager errors."""


class StorageIOError(PackagerError):
    """A storage backend could not list, read or copy a path."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NotFoundError(StorageIOError):
    """A file or directory does not exist on the backend."""


class BackendConnectionError(PackagerError):
    """A remote backend could not connect or reconnect."""


class ManifestError(PackagerError):
    """Malformed manifest XML or a missing/empty root ``type`` attribute."""


class MissingSectionsError(ManifestError):
    """One or more required manifest sections are absent.

    Attributes:
        missing: Every absent section name, in required-section order
    """

    def __init__(self, missing: list[str], source: str | None = None):
        self.missing = list(missing)
        self.source = source
        where = f" in '{source}'" if source else ""
        super().__init__(
            f"required element(s) missing{where}: {', '.join(self.missing)}"
        )


class UnsupportedTypeError(PackagerError):
    """An extension type this packager does not handle."""


class UnsupportedScopeError(PackagerError):
    """A language folder scope other than 'admin' or 'site'."""


class MissingExtensionError(PackagerError):
    """A referenced extension is not present in the installation."""

    def __init__(self, extension: str, message: str | None = None):
        self.extension = extension
        super().__init__(message or f"extension '{extension}' is not installed")


class InvalidNameError(PackagerError):
    """An extension name cannot be derived from the manifest filename."""


class ArchiveError(PackagerError):
    """The archive could not be created, written or finalized."""


class LanguageFileSyntaxError(PackagerError):
    """A language ``.ini`` file contains a malformed line.

    Attributes:
        line_number: 1-based line number of the offending line
    """

    def __init__(self, source: str, line_number: int, line: str):
        self.source = source
        self.line_number = line_number
        self.line = line
        super().__init__(f"syntax error in '{source}' on line {line_number}: {line}")


class ConfigError(PackagerError):
    """Invalid or unreadable packager configuration."""

"""Base abstractions for storage backends.

This module defines the interface every backend implements so the
resolvers, the archive builder and the language analysis can run
unchanged against a local installation or one reached over FTP.
"""

import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class EntryKind(str, Enum):
    """Kind of a directory entry."""

    FILE = "file"
    DIR = "dir"
    OTHER = "other"


@dataclass(frozen=True)
class EntryInfo:
    """Details of one directory entry.

    Attributes:
        name: Entry basename
        full_path: Backend path of the entry (forward slashes)
        kind: File, directory or other (links, devices)
        size: Size in bytes (0 when unknown)
        modified_time: POSIX timestamp, or None when unknown
        permissions: ``ls -l`` style display string, e.g. ``drwxr-xr-x``
    """

    name: str
    full_path: str
    kind: EntryKind
    size: int = 0
    modified_time: float | None = None
    permissions: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIR


# visitor(is_dir, full_path, info) -> False aborts the walk
Visitor = Callable[[bool, str, EntryInfo], "bool | None"]


def format_permissions(mode: int) -> str:
    """Render a ``st_mode`` value the way ``ls -l`` does.

    Example:
        >>> format_permissions(0o40755)
        'drwxr-xr-x'
    """
    return stat.filemode(mode)


class StorageBackend(ABC):
    """Abstract base class for all storage backends.

    ``exists``, ``is_file`` and ``is_directory`` never raise; every
    other operation reports failures with StorageIOError (or its
    NotFoundError subclass).

    Attributes:
        backend_id: Registry name of the backend
        supports_reconnect: Whether ``reconnect`` re-establishes a session
        stages_remote_files: Whether files must be copied to local disk
            before a local tool (the ZIP writer) can read them
    """

    backend_id: str = ""
    supports_reconnect: bool = False
    stages_remote_files: bool = False

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def is_file(self, path: str) -> bool:
        pass

    @abstractmethod
    def is_directory(self, path: str) -> bool:
        pass

    @abstractmethod
    def list_entries(
        self,
        path: str,
        recursive: bool = False,
        include_dot_entries: bool = False,
    ) -> list[EntryInfo]:
        """List the entries of a directory.

        Entries are sorted by name. Recursive listings are depth-first:
        each directory appears before its contents.

        Args:
            path: Directory to list
            recursive: Descend into subdirectories
            include_dot_entries: Include ``.`` and ``..``

        Returns:
            Directory entries

        Raises:
            StorageIOError: If the path does not exist or cannot be read
        """
        pass

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Return the full contents of a file.

        Raises:
            NotFoundError: If the file does not exist
            StorageIOError: If reading fails
        """
        pass

    @abstractmethod
    def download(self, remote_path: str, local_path: str) -> None:
        """Copy a backend file to a path on the local disk.

        Raises:
            NotFoundError: If the file does not exist
            StorageIOError: If the copy fails
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Human-readable description of the connection."""
        pass

    def iterate(self, path: str, recursive: bool, visitor: Visitor) -> bool:
        """Walk a directory depth-first, calling ``visitor`` for each entry.

        Args:
            path: Directory to walk
            recursive: Descend into subdirectories
            visitor: Called as ``visitor(is_dir, full_path, info)``;
                returning False aborts the walk

        Returns:
            False if the visitor aborted the walk, True otherwise

        Raises:
            StorageIOError: If a directory cannot be listed
        """
        for info in self.list_entries(path):
            if visitor(info.is_dir, info.full_path, info) is False:
                return False
            if recursive and info.is_dir:
                if not self.iterate(info.full_path, True, visitor):
                    return False
        return True

    def local_path(self, path: str) -> str:
        """Path on the local disk the ZIP writer can open for ``path``.

        Only meaningful for backends that do not stage remote files.
        """
        return path

    def reconnect(self) -> None:
        """Re-establish the session. No-op for backends without one."""

    def close(self) -> None:
        """Release the session. No-op for backends without one."""

    def __enter__(self) -> "StorageBackend":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

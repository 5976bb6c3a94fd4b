"""Local filesystem backend.

Reads an installation directly from the local disk. Optionally confined
to a root directory, in which case any path resolving outside it is
rejected.
"""

import logging
import os
import shutil
from pathlib import Path

from ...backends.base import EntryInfo, EntryKind, StorageBackend, format_permissions
from ...errors import NotFoundError, StorageIOError
from ...paths import join_path, validate_path_safety

logger = logging.getLogger(__name__)


class LocalBackend(StorageBackend):
    """Storage backend over the local filesystem.

    Example:
        >>> backend = LocalBackend(Path('/var/www/joomla'))
        >>> backend.is_file('/var/www/joomla/configuration.php')
        True
    """

    backend_id = "local"
    supports_reconnect = False
    stages_remote_files = False

    def __init__(self, root: Path | None = None):
        """Initialize the backend.

        Args:
            root: Optional directory every accessed path must stay within.
                Relative paths are resolved against it.

        Raises:
            ValueError: If root doesn't exist or isn't a directory
        """
        self.root = root.resolve() if root is not None else None

        if self.root is not None and not self.root.is_dir():
            raise ValueError(f"Path is not a directory: {self.root}")

    def _resolve(self, path: str) -> Path:
        target = Path(path)
        if self.root is None:
            return target
        if not target.is_absolute():
            target = self.root / target
        try:
            validate_path_safety(target, self.root)
        except ValueError as e:
            raise StorageIOError(str(e), path) from e
        return target

    def _info(self, target: Path, full_path: str, name: str | None = None) -> EntryInfo:
        try:
            st = target.stat()
        except FileNotFoundError:
            # dangling symlink
            st = target.lstat()
        if target.is_dir():
            kind = EntryKind.DIR
        elif target.is_file():
            kind = EntryKind.FILE
        else:
            kind = EntryKind.OTHER
        return EntryInfo(
            name=name if name is not None else target.name,
            full_path=full_path,
            kind=kind,
            size=st.st_size if kind is EntryKind.FILE else 0,
            modified_time=st.st_mtime,
            permissions=format_permissions(st.st_mode),
        )

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except (OSError, StorageIOError):
            return False

    def is_file(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except (OSError, StorageIOError):
            return False

    def is_directory(self, path: str) -> bool:
        try:
            return self._resolve(path).is_dir()
        except (OSError, StorageIOError):
            return False

    def list_entries(
        self,
        path: str,
        recursive: bool = False,
        include_dot_entries: bool = False,
    ) -> list[EntryInfo]:
        target = self._resolve(path)
        if not target.is_dir():
            raise StorageIOError(f"Directory not found: {path}", path)

        entries: list[EntryInfo] = []
        if include_dot_entries:
            entries.append(self._info(target, join_path(path, "."), "."))
            entries.append(self._info(target.parent, join_path(path, ".."), ".."))
        try:
            children = sorted(os.scandir(target), key=lambda e: e.name)
        except OSError as e:
            raise StorageIOError(f"Cannot list directory {path}: {e}", path) from e

        # full paths stay relative to the caller's path, not the root
        for child in children:
            try:
                info = self._info(Path(child.path), join_path(path, child.name))
            except OSError as e:
                raise StorageIOError(f"Cannot stat {child.path}: {e}", child.path) from e
            entries.append(info)
            if recursive and info.is_dir:
                entries.extend(self.list_entries(info.full_path, recursive=True))
        return entries

    def read_file(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {path}", path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageIOError(f"Cannot read file {path}: {e}", path) from e

    def download(self, remote_path: str, local_path: str) -> None:
        target = self._resolve(remote_path)
        if not target.is_file():
            raise NotFoundError(f"File not found: {remote_path}", remote_path)
        try:
            shutil.copyfile(target, local_path)
        except OSError as e:
            raise StorageIOError(
                f"Cannot copy {remote_path} to {local_path}: {e}", remote_path
            ) from e
        logger.debug("Copied %s -> %s", remote_path, local_path)

    def local_path(self, path: str) -> str:
        return str(self._resolve(path))

    def describe(self) -> str:
        return f"Local filesystem ({self.root})" if self.root else "Local filesystem"

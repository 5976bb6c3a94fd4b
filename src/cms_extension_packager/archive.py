"""ZIP archive assembly.

The builder writes resolved entries into a ZIP file. Files on a local
backend are added straight from disk; files on a remote backend are
read into memory, written to a staging file and added from there. The
staging files belong to the builder session and are removed when it is
closed.
"""

import logging
import os
import shutil
import tempfile
import zipfile
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Callable

from .backends.base import EntryInfo, StorageBackend
from .errors import ArchiveError
from .paths import join_path, relative_to, sanitize_filename, to_entry_name
from .progress import RECONNECT_THRESHOLD, Progress
from .resolvers.base import ResolvedFileEntry

logger = logging.getLogger(__name__)


class ProgressAction(Enum):
    """What the builder should do before adding the next file."""

    CONTINUE = "continue"
    RECONNECT = "reconnect"
    ABORT = "abort"


ProgressCallback = Callable[[Progress, ResolvedFileEntry], "ProgressAction | None"]


def reconnect_when_due(threshold: float = RECONNECT_THRESHOLD) -> ProgressCallback:
    """Callback asking for a reconnect once the interval reaches ``threshold``."""

    def callback(progress: Progress, entry: ResolvedFileEntry) -> ProgressAction:
        if progress.interval() >= threshold:
            return ProgressAction.RECONNECT
        return ProgressAction.CONTINUE

    return callback


class ArchiveBuilder:
    """Writes resolved entries into a ZIP archive.

    Example:
        >>> builder = ArchiveBuilder(backend)
        >>> builder.open()
        >>> builder.add_entries(file_set)
        True
        >>> path = builder.close()
    """

    def __init__(
        self,
        backend: StorageBackend,
        progress: Progress | None = None,
        callback: ProgressCallback | None = None,
        temp_dir: str | None = None,
        reconnect_threshold: float = RECONNECT_THRESHOLD,
    ):
        """Initialize the builder.

        Args:
            backend: Backend the entry sources are read from
            progress: Progress of the current run
            callback: Called before every file; defaults to a reconnect
                check when the backend supports reconnecting
            temp_dir: Directory for the temporary archive and staging files
            reconnect_threshold: Seconds used by the default callback
        """
        self.backend = backend
        self.progress = progress or Progress()
        if callback is None and backend.supports_reconnect:
            callback = reconnect_when_due(reconnect_threshold)
        self.callback = callback
        self.temp_dir = temp_dir
        self.path: str | None = None
        self._zip: zipfile.ZipFile | None = None
        self._staging_dir: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, target: str | None = None, mode: str = "w") -> zipfile.ZipFile:
        """Create or open the archive.

        Args:
            target: Archive path; a new temporary file when None
            mode: ``zipfile`` mode ('w' creates/overwrites, 'a' appends)

        Returns:
            The open ZipFile

        Raises:
            ArchiveError: If the archive cannot be created or opened
        """
        try:
            if target is None:
                fd, target = tempfile.mkstemp(prefix="pkg", suffix=".zip", dir=self.temp_dir)
                os.close(fd)
            self._zip = zipfile.ZipFile(target, mode, compression=zipfile.ZIP_DEFLATED)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise ArchiveError(f"Cannot open archive {target}: {e}") from e
        self.path = target
        logger.debug("Opened archive %s", target)
        return self._zip

    def close(self) -> str:
        """Finalize the archive and remove staging files.

        Returns:
            Path of the finished archive

        Raises:
            ArchiveError: If no archive is open or finalizing fails
        """
        if self._zip is None or self.path is None:
            raise ArchiveError("Cannot close archive: no archive is open")
        try:
            self._zip.close()
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise ArchiveError(f"Cannot close archive {self.path}: {e}") from e
        finally:
            self._zip = None
            self.cleanup()
        logger.debug("Closed archive %s", self.path)
        return self.path

    def entry_names(self) -> list[str]:
        """Names of the entries written so far, or of the closed archive."""
        if self._zip is not None:
            return self._zip.namelist()
        if self.path is None:
            return []
        return list_archive_entries(self.path)

    def cleanup(self) -> None:
        """Remove the session's staging files."""
        if self._staging_dir is not None:
            shutil.rmtree(self._staging_dir, ignore_errors=True)
            self._staging_dir = None

    def __enter__(self) -> "ArchiveBuilder":
        if self._zip is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._zip is None:
            self.cleanup()
            return
        if exc_type is None:
            self.close()
        else:
            self._zip.close()
            self._zip = None
            self.cleanup()

    # ------------------------------------------------------------------
    # Adding entries
    # ------------------------------------------------------------------

    def _require_open(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveError("Cannot add file to archive: no archive is open, use open()")
        return self._zip

    def add_entries(self, entries: Iterable[ResolvedFileEntry]) -> bool:
        """Add every entry to the archive.

        Directory sources are added recursively below their entry name.
        The first failure raises; files already added stay in the archive.

        Returns:
            False if the progress callback aborted, True otherwise

        Raises:
            ArchiveError: If writing to the archive fails
            StorageIOError: If a source cannot be read
            BackendConnectionError: If a requested reconnect fails
        """
        self._require_open()
        for entry in entries:
            if not entry.staged and self.backend.is_directory(entry.source_path):
                if not self._add_directory(entry):
                    return False
            elif not self._add_file(entry):
                return False
        return True

    def _add_directory(self, entry: ResolvedFileEntry) -> bool:
        files: list[ResolvedFileEntry] = []

        def visit(is_dir: bool, full_path: str, info: EntryInfo) -> bool:
            if not is_dir:
                relative = relative_to(full_path, entry.source_path)
                files.append(ResolvedFileEntry(full_path, join_path(entry.archive_entry_name, relative)))
            return True

        self.backend.iterate(entry.source_path, True, visit)
        for file_entry in files:
            if not self._add_file(file_entry):
                return False
        return True

    def _before_add(self, entry: ResolvedFileEntry) -> bool:
        action = self.callback(self.progress, entry) if self.callback else None
        if action is ProgressAction.ABORT:
            logger.info("Archiving aborted before %s", entry.archive_entry_name)
            return False
        if action is ProgressAction.RECONNECT:
            self.backend.reconnect()
            self.progress.interval(reset=True, name="archive")
        self.progress.add(1)
        return True

    def _add_file(self, entry: ResolvedFileEntry) -> bool:
        zf = self._require_open()
        if not self._before_add(entry):
            return False
        try:
            name = to_entry_name(entry.archive_entry_name)
        except ValueError as e:
            raise ArchiveError(str(e)) from e

        if entry.staged:
            local_path = entry.source_path
        elif self.backend.stages_remote_files:
            local_path = self._stage(entry.source_path)
        else:
            local_path = self.backend.local_path(entry.source_path)
        try:
            zf.write(local_path, name)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError(f"Cannot add file to ZIP archive: {entry.source_path}: {e}") from e
        return True

    def _stage(self, source: str) -> str:
        """Copy a remote file to the session staging directory."""
        data = self.backend.read_file(source)
        if self._staging_dir is None:
            self._staging_dir = tempfile.mkdtemp(prefix="pkgstage", dir=self.temp_dir)
        fd, staged = tempfile.mkstemp(dir=self._staging_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ArchiveError(f"Cannot write temporary file for {source}: {e}") from e
        return staged


def list_archive_entries(path: str) -> list[str]:
    """Entry names of a ZIP archive.

    Raises:
        ArchiveError: If the file is not a readable ZIP archive
    """
    try:
        with zipfile.ZipFile(path) as zf:
            return zf.namelist()
    except (OSError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"Cannot read archive {path}: {e}") from e


def backup_filename(path: Path, limit: int = 10000) -> Path:
    """First free ``name_0001.zip`` style sibling of ``path``.

    Raises:
        ArchiveError: If every candidate is taken
    """
    for i in range(1, limit):
        candidate = path.with_name(f"{path.stem}_{i:04d}{path.suffix}")
        if not candidate.exists():
            return candidate
    raise ArchiveError(f"Cannot create backup filename for existing file: {path}")


def save_archive(
    archive_path: str,
    dest_dir: str,
    file_name: str,
    rename_existing: bool = False,
) -> tuple[str, str | None]:
    """Move a finished archive to ``dest_dir/file_name.zip``.

    Args:
        archive_path: Temporary archive to move
        dest_dir: Destination directory
        file_name: Archive name, with or without ``.zip``
        rename_existing: Back up an existing destination instead of failing

    Returns:
        Tuple of (destination path, backup path or None)

    Raises:
        ArchiveError: If the archive is missing, the destination exists and
            renaming is disabled, or moving fails
    """
    source = Path(archive_path)
    if not source.is_file():
        raise ArchiveError(f"Cannot save archive: the archive temporary file has disappeared: {source}")
    file_name = sanitize_filename(file_name)
    if not file_name.lower().endswith(".zip"):
        file_name += ".zip"
    dest = Path(dest_dir) / file_name

    backup: Path | None = None
    try:
        if dest.exists():
            if not rename_existing:
                raise ArchiveError(
                    f"Cannot save archive: the archive file exists and renaming is disabled: {dest}"
                )
            backup = backup_filename(dest)
            dest.rename(backup)
            logger.info("Backed up existing archive %s to %s", dest.name, backup.name)
        shutil.move(str(source), str(dest))
    except OSError as e:
        raise ArchiveError(f"Cannot save archive to {dest}: {e}") from e
    logger.info("Saved archive %s", dest)
    return str(dest), str(backup) if backup else None

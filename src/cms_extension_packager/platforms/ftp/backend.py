"""FTP storage backend.

Reads a remote installation over FTP (optionally FTPS). Listings, file
reads and downloads are memoized for the lifetime of the backend: one
packaging run assumes the remote tree does not change underneath it.
The cache makes an instance unsuitable for sharing between concurrent
runs.
"""

import ftplib
import io
import logging
from typing import Callable

from ...backends.base import EntryInfo, StorageBackend
from ...core.cache import ResponseCache
from ...errors import BackendConnectionError, NotFoundError, StorageIOError
from ...paths import basename, dirname, join_path
from .listing import entry_from_mlsd, parse_list_line

logger = logging.getLogger(__name__)


def _is_missing(exc: BaseException) -> bool:
    return isinstance(exc, ftplib.error_perm) and str(exc).startswith("550")


def _is_unsupported(exc: BaseException) -> bool:
    return isinstance(exc, ftplib.error_perm) and str(exc)[:3] in ("500", "502")


class FtpBackend(StorageBackend):
    """Storage backend over an FTP connection.

    Example:
        >>> backend = FtpBackend()
        >>> backend.connect('ftp.example.com', 'user', 'secret', use_tls=True)
        >>> backend.list_entries('/public_html/administrator/components')
    """

    backend_id = "ftp"
    supports_reconnect = True
    stages_remote_files = True

    def __init__(
        self,
        ftp_factory: Callable[..., ftplib.FTP] | None = None,
        cache: ResponseCache | None = None,
    ):
        """Initialize an unconnected backend.

        Args:
            ftp_factory: Callable returning an unconnected ``ftplib.FTP``
                object; defaults to ``FTP`` or ``FTP_TLS`` per connection
            cache: Response cache to use (a fresh one by default)
        """
        self._ftp_factory = ftp_factory
        self.cache = cache if cache is not None else ResponseCache()
        self._ftp: ftplib.FTP | None = None
        self._settings: dict | None = None
        self._mlsd_supported = True

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(
        self,
        host: str,
        login: str,
        password: str,
        use_tls: bool = False,
        port: int = 21,
        timeout: float = 20,
        passive: bool = True,
    ) -> None:
        """Open the FTP session.

        Raises:
            BackendConnectionError: If connecting or logging in fails
        """
        self._settings = {
            "host": host,
            "login": login,
            "password": password,
            "use_tls": use_tls,
            "port": port,
            "timeout": timeout,
            "passive": passive,
        }
        self._open()

    def _open(self) -> None:
        if self._settings is None:
            raise BackendConnectionError("No connection: use connect()")
        s = self._settings
        factory = self._ftp_factory or (ftplib.FTP_TLS if s["use_tls"] else ftplib.FTP)
        ftp = factory(timeout=s["timeout"])
        try:
            ftp.connect(s["host"], s["port"])
            ftp.login(s["login"], s["password"])
            if s["use_tls"] and isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
            ftp.set_pasv(s["passive"])
        except ftplib.all_errors as e:
            ftp.close()
            raise BackendConnectionError(
                f"Cannot connect to {s['host']}:{s['port']}: {e}"
            ) from e
        self._ftp = ftp
        logger.debug("Connected %s", self.describe())

    def reconnect(self) -> None:
        """Drop and re-open the session; the response cache is kept.

        Raises:
            BackendConnectionError: If the new session cannot be opened
        """
        self._drop()
        self._open()

    def close(self) -> None:
        self._drop()

    def _drop(self) -> None:
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except ftplib.all_errors:
            self._ftp.close()
        self._ftp = None

    @property
    def connected(self) -> bool:
        return self._ftp is not None

    def _client(self) -> ftplib.FTP:
        if self._ftp is None:
            raise BackendConnectionError("No connection: use connect()")
        return self._ftp

    def describe(self) -> str:
        if self._settings is None:
            return "FTP (not connected)"
        s = self._settings
        mode = "passive" if s["passive"] else "active"
        tls = ", TLS" if s["use_tls"] else ""
        return f"ftp://{s['login']}@{s['host']}:{s['port']} ({mode}{tls})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _stat(self, path: str) -> EntryInfo | None:
        normalized = join_path(path).rstrip("/")
        if normalized in ("", "/"):
            return None
        try:
            siblings = self.list_entries(dirname(normalized) or "/")
        except (StorageIOError, BackendConnectionError):
            return None
        name = basename(normalized)
        for info in siblings:
            if info.name == name:
                return info
        return None

    def exists(self, path: str) -> bool:
        if join_path(path).rstrip("/") in ("", "/"):
            return self.connected
        return self._stat(path) is not None

    def is_file(self, path: str) -> bool:
        info = self._stat(path)
        return info is not None and not info.is_dir

    def is_directory(self, path: str) -> bool:
        if join_path(path).rstrip("/") in ("", "/"):
            return self.connected
        info = self._stat(path)
        return info is not None and info.is_dir

    def list_entries(
        self,
        path: str,
        recursive: bool = False,
        include_dot_entries: bool = False,
    ) -> list[EntryInfo]:
        directory = join_path(path) or "/"
        key = ResponseCache.make_key("list_entries", directory, recursive, include_dot_entries)
        return self.cache.get_or_compute(
            key, lambda: self._list(directory, recursive, include_dot_entries)
        )

    def _list(self, directory: str, recursive: bool, include_dot_entries: bool) -> list[EntryInfo]:
        entries: list[EntryInfo] = []
        for info in self._list_dir(directory):
            if info.name in (".", ".."):
                if include_dot_entries:
                    entries.append(info)
                continue
            entries.append(info)
            if recursive and info.is_dir:
                entries.extend(self.list_entries(info.full_path, recursive=True))
        return entries

    def _list_dir(self, directory: str) -> list[EntryInfo]:
        ftp = self._client()
        try:
            if self._mlsd_supported:
                try:
                    rows = list(ftp.mlsd(directory))
                except ftplib.error_perm as e:
                    if not _is_unsupported(e):
                        raise
                    logger.debug("MLSD rejected by server, falling back to LIST")
                    self._mlsd_supported = False
                else:
                    infos = []
                    for name, facts in rows:
                        fact_type = facts.get("type", "").lower()
                        # cdir/pdir names vary between servers
                        if fact_type == "cdir":
                            name = "."
                        elif fact_type == "pdir":
                            name = ".."
                        infos.append(entry_from_mlsd(name, facts, directory))
                    return sorted(infos, key=lambda i: i.name)
            lines: list[str] = []
            ftp.retrlines(f"LIST -a {directory}", lines.append)
        except ftplib.all_errors as e:
            if _is_missing(e):
                raise StorageIOError(f"Directory not found: {directory}", directory) from e
            raise StorageIOError(f"Cannot list directory {directory}: {e}", directory) from e
        infos = [info for info in (parse_list_line(line, directory) for line in lines) if info]
        return sorted(infos, key=lambda i: i.name)

    def read_file(self, path: str) -> bytes:
        remote = join_path(path)
        key = ResponseCache.make_key("read_file", remote)
        return self.cache.get_or_compute(key, lambda: self._retrieve(remote))

    def _retrieve(self, remote: str) -> bytes:
        ftp = self._client()
        buffer = io.BytesIO()
        try:
            ftp.retrbinary(f"RETR {remote}", buffer.write)
        except ftplib.all_errors as e:
            if _is_missing(e):
                raise NotFoundError(f"File not found: {remote}", remote) from e
            raise StorageIOError(f"Cannot read file {remote}: {e}", remote) from e
        logger.debug("Read %d bytes from %s", buffer.tell(), remote)
        return buffer.getvalue()

    def download(self, remote_path: str, local_path: str) -> None:
        remote = join_path(remote_path)
        key = ResponseCache.make_key("download", remote, local_path)
        self.cache.get_or_compute(key, lambda: self._download(remote, local_path))

    def _download(self, remote: str, local_path: str) -> bool:
        data = self.read_file(remote)
        try:
            with open(local_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageIOError(f"Cannot write {local_path}: {e}", remote) from e
        return True

"""Tests for the FTP backend and its listing parser."""

import ftplib
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from cms_extension_packager.backends.base import EntryKind
from cms_extension_packager.errors import BackendConnectionError, NotFoundError, StorageIOError
from cms_extension_packager.platforms.ftp import FtpBackend, entry_from_mlsd, parse_list_line

MLSD_LISTINGS = {
    "/www": [
        (".", {"type": "cdir"}),
        ("..", {"type": "pdir"}),
        ("index.php", {"type": "file", "size": "12", "modify": "20240102030405"}),
        ("components", {"type": "dir", "unix.mode": "0755"}),
    ],
    "/www/components": [
        ("com_events", {"type": "dir"}),
    ],
    "/www/components/com_events": [
        ("events.php", {"type": "file", "size": "30"}),
    ],
}

LIST_LINES = [
    "total 8",
    "drwxr-xr-x    2 owner group     4096 Jan 01 12:00 components",
    "-rw-r--r--    1 owner group       12 Mar 15  2020 index.php",
]


def _mlsd(directory):
    if directory not in MLSD_LISTINGS:
        raise ftplib.error_perm("550 No such directory")
    return iter(MLSD_LISTINGS[directory])


@pytest.fixture
def ftp() -> Mock:
    """A mocked ftplib.FTP session."""
    session = Mock(spec=ftplib.FTP)
    session.mlsd.side_effect = _mlsd
    return session


@pytest.fixture
def factory(ftp: Mock) -> Mock:
    return Mock(return_value=ftp)


@pytest.fixture
def backend(factory: Mock) -> FtpBackend:
    ftp_backend = FtpBackend(ftp_factory=factory)
    ftp_backend.connect("ftp.example.com", "user", "secret")
    return ftp_backend


# ============================================================================
# Connection
# ============================================================================


class TestConnection:
    """Test the session lifecycle."""

    def test_connect_logs_in(self, backend: FtpBackend, factory: Mock, ftp: Mock) -> None:
        """Test that connect opens and authenticates a session."""
        factory.assert_called_once_with(timeout=20)
        ftp.connect.assert_called_once_with("ftp.example.com", 21)
        ftp.login.assert_called_once_with("user", "secret")
        ftp.set_pasv.assert_called_once_with(True)
        assert backend.connected

    def test_login_failure(self, factory: Mock, ftp: Mock) -> None:
        """Test that a rejected login raises and closes the socket."""
        ftp.login.side_effect = ftplib.error_perm("530 Login incorrect")
        backend = FtpBackend(ftp_factory=factory)
        with pytest.raises(BackendConnectionError, match="ftp.example.com:21"):
            backend.connect("ftp.example.com", "user", "wrong")
        ftp.close.assert_called_once()
        assert not backend.connected

    def test_operations_need_a_connection(self) -> None:
        with pytest.raises(BackendConnectionError, match="connect"):
            FtpBackend().read_file("/www/index.php")

    def test_reconnect_opens_a_new_session(self, backend: FtpBackend, factory: Mock, ftp: Mock) -> None:
        """Test that reconnect quits and logs in again."""
        backend.reconnect()
        ftp.quit.assert_called_once()
        assert factory.call_count == 2
        assert ftp.login.call_count == 2

    def test_reconnect_keeps_cache(self, backend: FtpBackend, ftp: Mock) -> None:
        backend.list_entries("/www")
        backend.reconnect()
        backend.list_entries("/www")
        assert ftp.mlsd.call_count == 1

    def test_close_falls_back_to_socket_close(self, backend: FtpBackend, ftp: Mock) -> None:
        """Test that a failing QUIT still releases the session."""
        ftp.quit.side_effect = EOFError()
        backend.close()
        ftp.close.assert_called_once()
        assert not backend.connected

    def test_describe(self, backend: FtpBackend) -> None:
        assert backend.describe() == "ftp://user@ftp.example.com:21 (passive)"
        assert FtpBackend().describe() == "FTP (not connected)"

    def test_describe_active_tls(self, factory: Mock) -> None:
        backend = FtpBackend(ftp_factory=factory)
        backend.connect("host", "me", "pw", use_tls=True, port=2121, passive=False)
        assert backend.describe() == "ftp://me@host:2121 (active, TLS)"


# ============================================================================
# Listings
# ============================================================================


class TestListing:
    """Test directory listings over MLSD and LIST."""

    def test_mlsd_listing_sorted_without_dot_entries(self, backend: FtpBackend) -> None:
        entries = backend.list_entries("/www")
        assert [e.name for e in entries] == ["components", "index.php"]
        assert entries[0].kind is EntryKind.DIR
        assert entries[0].permissions == "drwxr-xr-x"
        assert entries[1].size == 12
        assert entries[1].full_path == "/www/index.php"

    def test_dot_entries_on_request(self, backend: FtpBackend) -> None:
        names = [e.name for e in backend.list_entries("/www", include_dot_entries=True)]
        assert "." in names and ".." in names

    def test_recursive_listing(self, backend: FtpBackend) -> None:
        paths = [e.full_path for e in backend.list_entries("/www", recursive=True)]
        assert paths == [
            "/www/components",
            "/www/components/com_events",
            "/www/components/com_events/events.php",
            "/www/index.php",
        ]

    def test_listings_are_cached(self, backend: FtpBackend, ftp: Mock) -> None:
        """Test that repeated listings hit the cache."""
        backend.list_entries("/www")
        backend.list_entries("/www")
        assert ftp.mlsd.call_count == 1
        assert backend.cache.hits == 1

    def test_falls_back_to_list(self, backend: FtpBackend, ftp: Mock) -> None:
        """Test that a server rejecting MLSD is listed with LIST."""
        ftp.mlsd.side_effect = ftplib.error_perm("500 Unknown command MLSD")
        ftp.retrlines.side_effect = lambda command, callback: [callback(line) for line in LIST_LINES]

        entries = backend.list_entries("/www")
        assert [e.name for e in entries] == ["components", "index.php"]
        ftp.retrlines.assert_called_once()
        assert ftp.retrlines.call_args[0][0] == "LIST -a /www"

        # MLSD is not retried once rejected
        backend.list_entries("/www/components")
        assert ftp.mlsd.call_count == 1

    def test_missing_directory(self, backend: FtpBackend) -> None:
        with pytest.raises(StorageIOError, match="Directory not found"):
            backend.list_entries("/nowhere")

    def test_exists_and_kinds(self, backend: FtpBackend) -> None:
        """Test queries answered from the parent listing."""
        assert backend.is_file("/www/index.php")
        assert backend.is_directory("/www/components")
        assert not backend.is_file("/www/components")
        assert not backend.exists("/www/missing.php")
        assert not backend.exists("/nowhere/file.php")
        assert backend.is_directory("/")


# ============================================================================
# Reads
# ============================================================================


class TestReading:
    """Test file retrieval."""

    def test_read_file(self, backend: FtpBackend, ftp: Mock) -> None:
        ftp.retrbinary.side_effect = lambda command, callback: callback(b"<?php echo 1;")
        assert backend.read_file("/www/index.php") == b"<?php echo 1;"
        assert ftp.retrbinary.call_args[0][0] == "RETR /www/index.php"

    def test_reads_are_cached(self, backend: FtpBackend, ftp: Mock) -> None:
        ftp.retrbinary.side_effect = lambda command, callback: callback(b"data")
        backend.read_file("/www/index.php")
        backend.read_file("/www/index.php")
        assert ftp.retrbinary.call_count == 1

    def test_missing_file(self, backend: FtpBackend, ftp: Mock) -> None:
        """Test that 550 replies raise NotFoundError and are not cached."""
        ftp.retrbinary.side_effect = ftplib.error_perm("550 No such file")
        with pytest.raises(NotFoundError):
            backend.read_file("/www/gone.php")
        with pytest.raises(NotFoundError):
            backend.read_file("/www/gone.php")
        assert ftp.retrbinary.call_count == 2

    def test_transfer_error(self, backend: FtpBackend, ftp: Mock) -> None:
        ftp.retrbinary.side_effect = ftplib.error_temp("425 Can't open data connection")
        with pytest.raises(StorageIOError, match="Cannot read file"):
            backend.read_file("/www/index.php")

    def test_download_writes_local_file(self, backend: FtpBackend, ftp: Mock, tmp_path) -> None:
        ftp.retrbinary.side_effect = lambda command, callback: callback(b"css")
        target = tmp_path / "events.css"
        backend.download("/www/media/events.css", str(target))
        assert target.read_bytes() == b"css"


# ============================================================================
# Listing parser
# ============================================================================


class TestListParsing:
    """Test parsing of LIST lines and MLSD facts."""

    def test_directory_line(self) -> None:
        info = parse_list_line("drwxr-xr-x    2 owner group     4096 Jan 01 12:00 components", "/www")
        assert info.name == "components"
        assert info.full_path == "/www/components"
        assert info.is_dir
        assert info.size == 0

    def test_file_line_with_year(self) -> None:
        info = parse_list_line("-rw-r--r--    1 owner group     1234 Mar 15  2020 index.php", "/www")
        assert info.kind is EntryKind.FILE
        assert info.size == 1234
        assert info.modified_time == datetime(2020, 3, 15, tzinfo=timezone.utc).timestamp()

    def test_names_with_spaces(self) -> None:
        info = parse_list_line("-rw-r--r--    1 owner group 10 Mar 15  2020 read me.txt", "/")
        assert info.name == "read me.txt"

    def test_symlink_target_is_dropped(self) -> None:
        info = parse_list_line("lrwxrwxrwx    1 owner group 7 Jan 01 12:00 current -> release", "/")
        assert info.name == "current"
        assert info.kind is EntryKind.OTHER

    def test_year_less_date_in_future_is_last_year(self) -> None:
        """Test that year-less dates never lie in the future."""
        now = datetime(2024, 1, 15, tzinfo=timezone.utc)
        info = parse_list_line("-rw-r--r-- 1 o g 1 Dec 20 10:00 old.txt", "/", now=now)
        assert info.modified_time == datetime(2023, 12, 20, 10, 0, tzinfo=timezone.utc).timestamp()

    def test_non_entry_lines(self) -> None:
        assert parse_list_line("total 12", "/") is None
        assert parse_list_line("", "/") is None

    def test_mlsd_file_facts(self) -> None:
        info = entry_from_mlsd(
            "a.php",
            {"type": "file", "size": "10", "modify": "20240102030405", "unix.mode": "0644"},
            "/www",
        )
        assert info.permissions == "-rw-r--r--"
        assert info.size == 10
        assert info.modified_time == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc).timestamp()

    def test_mlsd_unknown_type(self) -> None:
        info = entry_from_mlsd("link", {"type": "OS.unix=symlink"}, "/www")
        assert info.kind is EntryKind.OTHER
        assert info.modified_time is None

"""Tests for paths module."""

import tempfile
from pathlib import Path

import pytest

from cms_extension_packager.paths import (
    add_prefix,
    basename,
    dirname,
    join_path,
    relative_to,
    sanitize_filename,
    stem,
    strip_prefix,
    to_entry_name,
    validate_path_safety,
)


class TestJoinPath:
    """Test forward-slash path joining."""

    def test_skips_empty_segments(self) -> None:
        """Test that empty segments do not produce double separators."""
        assert join_path("/var/www", "", "components", "com_x") == "/var/www/components/com_x"

    def test_normalizes_backslashes(self) -> None:
        """Test that Windows separators are converted."""
        assert join_path("admin\\views", "list\\default.php") == "admin/views/list/default.php"

    def test_keeps_leading_separator(self) -> None:
        """Test that absolute paths stay absolute."""
        assert join_path("/", "modules") == "/modules"
        assert join_path("site", "/index.php") == "site/index.php"

    def test_all_empty(self) -> None:
        """Test that joining nothing yields an empty string."""
        assert join_path("", "") == ""


class TestEntryNames:
    """Test archive entry name normalization."""

    def test_strips_leading_separator_and_dots(self) -> None:
        """Test that entry names are relative and free of '.' segments."""
        assert to_entry_name("/site/./index.php") == "site/index.php"

    def test_rejects_parent_segments(self) -> None:
        """Test that '..' can never escape the archive root."""
        with pytest.raises(ValueError, match="Invalid archive entry name"):
            to_entry_name("site/../../etc/passwd")

    def test_rejects_empty(self) -> None:
        """Test that an empty name is rejected."""
        with pytest.raises(ValueError):
            to_entry_name("")


class TestPathParts:
    """Test relative_to, basename, dirname and stem."""

    def test_relative_to(self) -> None:
        assert relative_to("/a/b/c/d.php", "/a/b") == "c/d.php"
        assert relative_to("/a/b", "/a/b/") == ""

    def test_relative_to_outside_base(self) -> None:
        """Test that sibling prefixes are not mistaken for parents."""
        with pytest.raises(ValueError):
            relative_to("/a/bc/d.php", "/a/b")

    def test_basename_dirname_stem(self) -> None:
        assert basename("/a/b/events.xml") == "events.xml"
        assert dirname("/a/b/events.xml") == "/a/b"
        assert dirname("events.xml") == ""
        assert stem("/a/b/pkg_bundle.xml") == "pkg_bundle"


class TestPrefixes:
    """Test extension type prefix handling."""

    def test_strip_prefix_case_insensitive(self) -> None:
        """Test that prefixes are removed regardless of case."""
        assert strip_prefix("COM_Events", "com_") == "Events"
        assert strip_prefix("  mod_news ", "mod_") == "news"

    def test_strip_prefix_without_prefix(self) -> None:
        """Test that names without the prefix are only trimmed."""
        assert strip_prefix(" events ", "com_") == "events"

    def test_add_prefix(self) -> None:
        """Test that a prefix is only added when missing."""
        assert add_prefix("events", "com_") == "com_events"
        assert add_prefix("COM_events", "com_") == "COM_events"
        assert add_prefix("", "com_") == ""


class TestSanitizeFilename:
    """Test filename sanitization."""

    def test_removes_dangerous_characters(self) -> None:
        """Test that dangerous characters are removed."""
        assert sanitize_filename("com<events>.zip") == "comevents.zip"
        assert sanitize_filename('pkg"bundle".zip') == "pkgbundle.zip"

    def test_removes_path_separators(self) -> None:
        """Test that path separators are removed."""
        assert sanitize_filename("../../../etc/passwd") == "......etcpasswd"

    def test_safe_filenames_unchanged(self) -> None:
        """Test that safe filenames pass through unchanged."""
        assert sanitize_filename("mod_news_0001.zip") == "mod_news_0001.zip"


class TestValidatePathSafety:
    """Test path traversal prevention."""

    def test_allows_paths_within_base(self) -> None:
        """Test that paths within base directory are allowed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            validate_path_safety(base / "components" / "index.php", base)

    def test_rejects_path_traversal(self) -> None:
        """Test that path traversal attempts are rejected."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            with pytest.raises(ValueError, match="escapes base directory"):
                validate_path_safety(base / ".." / ".." / "etc" / "passwd", base)

    def test_allows_symlinks_within_base(self) -> None:
        """Test that symlinks within base directory are allowed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir)
            target = base / "target.txt"
            link = base / "link.txt"
            target.touch()
            link.symlink_to(target)
            validate_path_safety(link, base)

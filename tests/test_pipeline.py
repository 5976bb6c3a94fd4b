"""Tests for the packaging pipeline."""

import io
import zipfile
from pathlib import Path

import pytest

from cms_extension_packager.core.manifest import parse_manifest
from cms_extension_packager.core.validator import validate_report_with_error_details
from cms_extension_packager.dbexport import DbExporter
from cms_extension_packager.errors import InvalidNameError
from cms_extension_packager.installation import Installation
from cms_extension_packager.pipeline import (
    PackageOptions,
    PackagePipeline,
    PipelineState,
    extension_name_for,
)
from cms_extension_packager.platforms.local import LocalBackend
from cms_extension_packager.progress import Progress

from conftest import COMPONENT_MANIFEST, MODULE_MANIFEST, PACKAGE_MANIFEST

COMPONENT_ENTRIES = [
    "events.xml",
    "site/index.php",
    "site/views/item/default.php",
    "site/views/list/default.php",
    "site/views/list/view.html.php",
    "admin/events.php",
    "admin/sql/install.mysql.utf8.sql",
    "admin/sql/uninstall.mysql.utf8.sql",
    "admin/language/en-GB/en-GB.com_events.ini",
    "admin/language/en-GB/en-GB.com_events.sys.ini",
    "site/language/en-GB/en-GB.com_events.ini",
    "script.php",
    "media/css/events.css",
    "media/js/events.js",
]


class FakeExporter:
    """Database exporter returning canned statements."""

    def __init__(self):
        self.calls = []

    def export(self, installation, table_names):
        self.calls.append(list(table_names))
        return {
            "create": [f"CREATE TABLE `{t}` (`id` int);" for t in table_names],
            "insert": ["INSERT INTO `#__events` VALUES (1);"],
            "drop": [f"DROP TABLE IF EXISTS `{t}`;" for t in table_names],
        }


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    path = tmp_path / "tmp"
    path.mkdir()
    return path


@pytest.fixture
def pipeline(installation, backend, temp_dir) -> PackagePipeline:
    return PackagePipeline(installation, backend, PackageOptions(temp_dir=str(temp_dir)))


def _names(path: str) -> list[str]:
    with zipfile.ZipFile(path) as zf:
        return zf.namelist()


def _read(path: str, name: str) -> bytes:
    with zipfile.ZipFile(path) as zf:
        return zf.read(name)


# ============================================================================
# Naming
# ============================================================================


class TestExtensionName:
    """Test canonical names derived from manifest filenames."""

    def test_component_prefix_is_added(self):
        manifest = parse_manifest(COMPONENT_MANIFEST, "/x/events.xml")
        assert extension_name_for(manifest) == "com_events"

    def test_existing_prefix_is_kept(self):
        assert extension_name_for(parse_manifest(MODULE_MANIFEST, "/x/mod_news.xml")) == "mod_news"
        assert extension_name_for(parse_manifest(PACKAGE_MANIFEST, "/x/pkg_bundle.xml")) == "pkg_bundle"

    def test_prefix_only_name(self):
        with pytest.raises(InvalidNameError):
            extension_name_for(parse_manifest(COMPONENT_MANIFEST, "/x/com_.xml"))


# ============================================================================
# Successful runs
# ============================================================================


class TestPackageComponent:
    """Test packaging com_events."""

    def test_archive_contents(self, pipeline):
        result = pipeline.package_extension("com_events")
        assert result.success, result.errors
        assert result.state is PipelineState.DONE
        assert result.extension_name == "com_events"
        assert result.entries == COMPONENT_ENTRIES
        assert _names(result.archive_path) == COMPONENT_ENTRIES
        assert _read(result.archive_path, "site/index.php").startswith(b"<?php")
        assert result.items_processed == len(COMPONENT_ENTRIES)

    def test_report_matches_schema(self, pipeline):
        report = pipeline.package_extension("com_events").to_report()
        assert validate_report_with_error_details(report) == (True, None)
        assert report["state"] == "done"
        assert report["children"] == []

    def test_temporary_files_are_removed(self, pipeline, temp_dir):
        """Test that only the finished archive is left in the temp directory."""
        result = pipeline.package_extension("com_events")
        assert [p.name for p in temp_dir.iterdir()] == [Path(result.archive_path).name]

    def test_archive_timing_is_recorded(self, pipeline):
        assert "archive" in pipeline.package_extension("com_events").timings

    def test_build_job_without_archiving(self, pipeline, component_manifest_path):
        job = pipeline.build_job(component_manifest_path)
        assert job.state is PipelineState.SECTIONS_RESOLVED
        assert job.file_set.archive_entry_names() == COMPONENT_ENTRIES
        assert job.archive_path is None


class TestPackageModule:
    def test_module_entries(self, pipeline):
        result = pipeline.package_extension("mod_news")
        assert result.success, result.errors
        assert _names(result.archive_path) == [
            "mod_news.xml",
            "mod_news.php",
            "tmpl/default.php",
            "site/en-GB.mod_news.ini",
        ]


class TestPackagePackage:
    """Test packaging pkg_bundle with nested sub-extension archives."""

    def test_nested_archives(self, pipeline):
        result = pipeline.package_extension("pkg_bundle")
        assert result.success, result.errors
        assert _names(result.archive_path) == [
            "pkg_bundle.xml",
            "packages/com_events.zip",
            "packages/mod_news.zip",
        ]
        nested = _read(result.archive_path, "packages/com_events.zip")
        with zipfile.ZipFile(io.BytesIO(nested)) as zf:
            assert zf.namelist() == COMPONENT_ENTRIES

    def test_children_results(self, pipeline):
        result = pipeline.package_extension("pkg_bundle")
        assert [c.extension_name for c in result.children] == ["com_events", "mod_news"]
        assert all(c.state is PipelineState.DONE for c in result.children)
        assert result.warnings == ["'languages' section is missing"]

    def test_nested_report_matches_schema(self, pipeline):
        report = pipeline.package_extension("pkg_bundle").to_report()
        assert validate_report_with_error_details(report) == (True, None)
        assert len(report["children"]) == 2


# ============================================================================
# Failures
# ============================================================================


class TestFailures:
    """Test that failures end in the failed state with their errors."""

    def test_unknown_extension(self, pipeline):
        result = pipeline.package_extension("com_nothing")
        assert not result.success
        assert result.state is PipelineState.FAILED
        assert result.extension_name == "com_nothing"
        assert "is not found in the installation" in result.errors[0]
        assert validate_report_with_error_details(result.to_report()) == (True, None)

    def test_missing_sections(self, pipeline, web_root):
        manifest = web_root / "modules/mod_news/mod_news.xml"
        manifest.write_text(MODULE_MANIFEST.replace("<author>News Team</author>", ""))
        result = pipeline.package_extension("mod_news")
        assert result.state is PipelineState.FAILED
        assert "author" in result.errors[0]
        assert result.archive_path is None

    def test_missing_file(self, pipeline, web_root):
        (web_root / "components/com_events/index.php").unlink()
        result = pipeline.package_extension("com_events")
        assert result.state is PipelineState.FAILED
        assert len(result.errors) == 1
        assert "index.php" in result.errors[0]

    def test_missing_sub_extensions_are_all_reported(self, pipeline, web_root):
        """Test that every missing sub-extension is listed before failing."""
        (web_root / "modules/mod_news/mod_news.xml").unlink()
        manifest = web_root / "administrator/manifests/packages/pkg_bundle.xml"
        manifest.write_text(
            PACKAGE_MANIFEST.replace("</files>", '<file type="module" id="gone">mod_gone.zip</file></files>')
        )
        result = pipeline.package_extension("pkg_bundle")
        assert result.state is PipelineState.FAILED
        assert result.errors == [
            "extension 'mod_news' is not installed",
            "extension 'mod_gone' is not installed",
        ]
        assert result.archive_path is None

    def test_failing_sub_extension(self, pipeline, web_root):
        """Test that a child's error is reported with the child's name."""
        (web_root / "media/com_events/js/events.js").unlink()
        result = pipeline.package_extension("pkg_bundle")
        assert result.state is PipelineState.FAILED
        assert result.errors[0].startswith("com_events: Media file not found")
        assert result.children[0].state is PipelineState.FAILED


# ============================================================================
# Database export
# ============================================================================


class TestDatabaseExport:
    """Test the optional table export."""

    def _pipeline(self, installation, backend, temp_dir, exporter=None):
        options = PackageOptions(import_database=True, temp_dir=str(temp_dir))
        return PackagePipeline(installation, backend, options, db_exporter=exporter)

    def test_exported_files_replace_scripts(self, installation, backend, temp_dir):
        exporter = FakeExporter()
        assert isinstance(exporter, DbExporter)
        result = self._pipeline(installation, backend, temp_dir, exporter).package_extension("com_events")

        assert result.success, result.errors
        assert exporter.calls == [["#__events", "#__event_types"]]
        names = _names(result.archive_path)
        assert "admin/sql/sampledata.mysql.utf8.sql" in names
        assert names.count("admin/sql/install.mysql.utf8.sql") == 1
        assert len(names) == len(COMPONENT_ENTRIES) + 1
        install = _read(result.archive_path, "admin/sql/install.mysql.utf8.sql").decode()
        assert install == "CREATE TABLE `#__events` (`id` int);\n\t\t\t\t\nCREATE TABLE `#__event_types` (`id` int);"
        assert "Exported 2 database table(s) into 'admin/sql'" in result.diagnostics.messages

    def test_without_exporter(self, installation, backend, temp_dir):
        result = self._pipeline(installation, backend, temp_dir).package_extension("com_events")
        assert result.success
        assert "no database exporter" in result.warnings[0]
        assert _read(result.archive_path, "admin/sql/install.mysql.utf8.sql").startswith(b"CREATE TABLE IF NOT EXISTS")

    def test_no_data_marker_skips_export(self, installation, backend, temp_dir, web_root):
        script = web_root / "administrator/components/com_events/sql/install.mysql.utf8.sql"
        script.write_text("# __no_data__\n" + script.read_text())
        exporter = FakeExporter()
        result = self._pipeline(installation, backend, temp_dir, exporter).package_extension("com_events")
        assert result.success
        assert exporter.calls == []
        assert any("__no_data__" in m for m in result.diagnostics.messages)

    def test_without_exporter_scripts_are_not_read(self, installation, backend, temp_dir, web_root):
        """Test that a missing install script only matters when exporting."""
        (web_root / "administrator/components/com_events/sql/install.mysql.utf8.sql").unlink()
        result = self._pipeline(installation, backend, temp_dir).package_extension("com_events")
        assert result.success, result.errors
        assert "no database exporter" in result.warnings[0]
        assert "admin/sql/install.mysql.utf8.sql" not in _names(result.archive_path)

    def test_missing_install_script_with_exporter(self, installation, backend, temp_dir, web_root):
        (web_root / "administrator/components/com_events/sql/install.mysql.utf8.sql").unlink()
        exporter = FakeExporter()
        result = self._pipeline(installation, backend, temp_dir, exporter).package_extension("com_events")
        assert result.state is PipelineState.FAILED
        assert "install.mysql.utf8.sql" in result.errors[0]
        assert exporter.calls == []


# ============================================================================
# Destination
# ============================================================================


class TestDestination:
    """Test saving archives to a destination directory."""

    @pytest.fixture
    def dist(self, tmp_path: Path) -> Path:
        path = tmp_path / "dist"
        path.mkdir()
        return path

    def _pipeline(self, installation, backend, temp_dir, dist, rename=False):
        options = PackageOptions(temp_dir=str(temp_dir), destination=str(dist), rename_existing=rename)
        return PackagePipeline(installation, backend, options)

    def test_archive_is_moved(self, installation, backend, temp_dir, dist):
        result = self._pipeline(installation, backend, temp_dir, dist).package_extension("com_events")
        assert result.archive_path == str(dist / "com_events.zip")
        assert result.backup_path is None
        assert list(temp_dir.iterdir()) == []

    def test_existing_archive_without_rename(self, installation, backend, temp_dir, dist):
        (dist / "mod_news.zip").write_bytes(b"old")
        result = self._pipeline(installation, backend, temp_dir, dist).package_extension("mod_news")
        assert result.state is PipelineState.FAILED
        assert "renaming is disabled" in result.errors[0]
        assert (dist / "mod_news.zip").read_bytes() == b"old"

    def test_existing_archive_is_backed_up(self, installation, backend, temp_dir, dist):
        (dist / "mod_news.zip").write_bytes(b"old")
        result = self._pipeline(installation, backend, temp_dir, dist, rename=True).package_extension("mod_news")
        assert result.success
        assert result.backup_path == str(dist / "mod_news_0001.zip")
        assert (dist / "mod_news_0001.zip").read_bytes() == b"old"
        assert "Existing archive file renamed to 'mod_news_0001.zip'" in result.diagnostics.messages


class TestRelativeWebRoot:
    """Test an installation addressed relative to a confined backend root."""

    @pytest.fixture
    def relative_pipeline(self, web_root, temp_dir) -> PackagePipeline:
        return PackagePipeline(
            Installation(name="site", web_root="."),
            LocalBackend(web_root),
            PackageOptions(temp_dir=str(temp_dir)),
        )

    def test_component(self, relative_pipeline):
        result = relative_pipeline.package_extension("com_events")
        assert result.success, result.errors
        assert _names(result.archive_path) == COMPONENT_ENTRIES
        assert _read(result.archive_path, "media/js/events.js") == b"console.log('events');\n"

    def test_package(self, relative_pipeline):
        """Test that sub-extensions resolve through the same relative root."""
        result = relative_pipeline.package_extension("pkg_bundle")
        assert result.success, result.errors
        nested = _read(result.archive_path, "packages/mod_news.zip")
        with zipfile.ZipFile(io.BytesIO(nested)) as zf:
            assert "tmpl/default.php" in zf.namelist()


class TestSharedProgress:
    def test_progress_is_shared_with_children(self, installation, backend, temp_dir):
        """Test that one Progress counts the files of every nested archive."""
        progress = Progress()
        pipeline = PackagePipeline(installation, backend, PackageOptions(temp_dir=str(temp_dir)), progress=progress)
        pipeline.package_extension("pkg_bundle")
        # 14 + 4 child entries, then 3 package entries
        assert progress.items_processed == 21

"""Extension packaging pipeline.

This module provides the main interface for turning an installed
extension into an installable archive. The pipeline reads the manifest
through a storage backend, resolves the extension's files with the
resolver matching its type, optionally exports its database tables,
and writes everything into a ZIP archive. Packages recurse: each
sub-extension is packaged on its own and nested under ``packages/``.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .archive import ArchiveBuilder, save_archive
from .backends.base import StorageBackend
from .core.manifest import ExtensionManifest, parse_manifest
from .core.types import PackageReport
from .dbexport import DbExporter, build_sql_files, write_sql_files
from .diagnostics import Diagnostics
from .errors import ArchiveError, InvalidNameError, PackagerError
from .installation import Installation
from .paths import add_prefix, basename, dirname, join_path, relative_to, stem, strip_prefix
from .progress import RECONNECT_THRESHOLD, Progress
from .resolvers import (
    DEFAULT_CODE_FILE_TYPES,
    FileSet,
    PackageResolver,
    ResolvedFileEntry,
    TableScan,
    resolver_for,
)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Stages of one extension import."""

    INITIALIZED = "initialized"
    REQUIREMENTS_CHECKED = "requirements_checked"
    SECTIONS_RESOLVED = "sections_resolved"
    DB_EXPORTED = "db_exported"
    ARCHIVED = "archived"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PackageOptions:
    """Settings of a packaging run.

    Attributes:
        import_database: Export the extension's tables into its SQL files
        reconnect_interval: Seconds after which a remote session is renewed
        temp_dir: Directory for temporary archives and staging files
        file_types: Code file extensions scanned by language analysis
        destination: Directory the finished archive is moved to (None keeps
            it in the temporary location)
        rename_existing: Back up an existing archive at the destination
    """

    import_database: bool = False
    reconnect_interval: float = RECONNECT_THRESHOLD
    temp_dir: str | None = None
    file_types: tuple[str, ...] = DEFAULT_CODE_FILE_TYPES
    destination: str | None = None
    rename_existing: bool = False


@dataclass
class PackageJob:
    """Everything known about one extension while it is being packaged.

    Attributes:
        manifest_path: Backend path of the manifest
        backend: Backend the extension is read from
        progress: Progress shared with parent and child jobs
        diagnostics: Messages of this job
        manifest: Parsed manifest, once read
        extension_name: Canonical name such as ``com_events``
        file_set: Entries to archive, manifest first
        tables: Tables found in the install/uninstall scripts
        children: Jobs of a package's sub-extensions
        state: Current pipeline state
        archive_path: Finished archive
        backup_path: Where an existing archive at the destination was moved
    """

    manifest_path: str
    backend: StorageBackend
    progress: Progress
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    manifest: ExtensionManifest | None = None
    extension_name: str = ""
    file_set: FileSet = field(default_factory=FileSet)
    tables: TableScan | None = None
    children: list["PackageJob"] = field(default_factory=list)
    state: PipelineState = PipelineState.INITIALIZED
    archive_path: str | None = None
    backup_path: str | None = None

    def transition(self, state: PipelineState) -> None:
        logger.debug("%s: %s -> %s", self.extension_name or self.manifest_path, self.state.value, state.value)
        self.state = state

    def fail(self, error: Exception) -> None:
        self.diagnostics.error(str(error))
        self.transition(PipelineState.FAILED)

    @property
    def failed(self) -> bool:
        return self.state is PipelineState.FAILED


@dataclass
class PackageResult:
    """Outcome of packaging one extension."""

    success: bool
    state: PipelineState
    extension_name: str
    manifest_path: str
    archive_path: str | None
    entries: list[str]
    diagnostics: Diagnostics
    children: list["PackageResult"] = field(default_factory=list)
    backup_path: str | None = None
    items_processed: int = 0
    timings: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_job(cls, job: PackageJob) -> "PackageResult":
        return cls(
            success=job.state is PipelineState.DONE,
            state=job.state,
            extension_name=job.extension_name,
            manifest_path=job.manifest_path,
            archive_path=job.archive_path,
            entries=job.file_set.archive_entry_names(),
            diagnostics=job.diagnostics,
            children=[cls.from_job(child) for child in job.children],
            backup_path=job.backup_path,
            items_processed=job.progress.items_processed,
            timings=dict(job.progress.timings),
        )

    @property
    def errors(self) -> list[str]:
        return self.diagnostics.errors

    @property
    def warnings(self) -> list[str]:
        return self.diagnostics.warnings

    def to_report(self) -> PackageReport:
        """JSON-serializable summary, see ``schemas/package_report.schema.json``."""
        return {
            "extension_name": self.extension_name,
            "manifest_path": self.manifest_path,
            "success": self.success,
            "state": self.state.value,
            "archive_path": self.archive_path,
            "backup_path": self.backup_path,
            "entries": list(self.entries),
            "errors": list(self.diagnostics.errors),
            "warnings": list(self.diagnostics.warnings),
            "messages": list(self.diagnostics.messages),
            "items_processed": self.items_processed,
            "children": [child.to_report() for child in self.children],
        }


def extension_name_for(manifest: ExtensionManifest) -> str:
    """Canonical extension name derived from the manifest filename.

    ``events.xml`` of a component becomes ``com_events``; a name that
    already carries its prefix keeps it.

    Raises:
        InvalidNameError: If nothing is left once the prefix is removed
    """
    prefix = manifest.extension_type.prefix
    name = strip_prefix(stem(manifest.source_path), prefix)
    if not name:
        raise InvalidNameError(
            f"cannot determine the extension name from the manifest file '{basename(manifest.source_path)}'"
        )
    return add_prefix(name, prefix)


class PackagePipeline:
    """Main interface for packaging extensions.

    The pipeline is backend-agnostic: it works with any StorageBackend,
    and backends register themselves with BackendRegistry.

    Example:
        >>> # Via registry (recommended)
        >>> from cms_extension_packager import BackendRegistry, Installation
        >>> pipeline = BackendRegistry.create_pipeline(
        ...     'local', installation=Installation('site', '/var/www/joomla')
        ... )
        >>> result = pipeline.package_extension('com_events')
        >>>
        >>> # Direct instantiation (advanced)
        >>> from cms_extension_packager.platforms.local import LocalBackend
        >>> pipeline = PackagePipeline(Installation('site', '/var/www/joomla'), LocalBackend())
    """

    def __init__(
        self,
        installation: Installation,
        backend: StorageBackend,
        options: PackageOptions | None = None,
        db_exporter: DbExporter | None = None,
        progress: Progress | None = None,
    ):
        """Initialize the pipeline.

        Args:
            installation: Installation the extensions are read from
            backend: Backend to access the installation through
            options: Run settings
            db_exporter: Collaborator exporting database tables
            progress: Progress to share, e.g. with a fake clock in tests
        """
        self.installation = installation
        self.backend = backend
        self.options = options or PackageOptions()
        self.db_exporter = db_exporter
        self.progress = progress or Progress()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def package_extension(self, element: str) -> PackageResult:
        """Package an installed extension by element name (``com_events``)."""
        try:
            manifest_path = self.installation.find_manifest(self.backend, element)
        except PackagerError as e:
            job = self._new_job("")
            job.extension_name = element
            job.fail(e)
            return PackageResult.from_job(job)
        return self.package_manifest(manifest_path)

    def package_manifest(self, manifest_path: str) -> PackageResult:
        """Package the extension described by a manifest.

        Errors never propagate: the result carries the final state and
        every recorded error.

        Args:
            manifest_path: Backend path of the manifest

        Returns:
            PackageResult with the archive path on success
        """
        job = self._new_job(manifest_path)
        self.progress.reset()
        staging = Path(tempfile.mkdtemp(prefix="pkgjob", dir=self.options.temp_dir))
        try:
            if self._resolve(job):
                self._produce(job, staging)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        return PackageResult.from_job(job)

    def build_job(self, manifest_path: str) -> PackageJob:
        """Resolve an extension without archiving it.

        Raises:
            PackagerError: On the first resolution failure
        """
        job = self._new_job(manifest_path)
        self._resolve_sections(job)
        return job

    def _new_job(self, manifest_path: str) -> PackageJob:
        return PackageJob(manifest_path=manifest_path, backend=self.backend, progress=self.progress)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, job: PackageJob) -> bool:
        try:
            self._resolve_sections(job)
        except PackagerError as e:
            job.fail(e)
        return not job.failed

    def _resolve_sections(self, job: PackageJob) -> None:
        manifest = parse_manifest(
            self.backend.read_file(job.manifest_path), job.manifest_path, require_sections=False
        )
        job.manifest = manifest
        manifest.check_requirements()
        job.transition(PipelineState.REQUIREMENTS_CHECKED)

        job.extension_name = extension_name_for(manifest)
        resolver = resolver_for(
            self.installation,
            self.backend,
            manifest,
            progress=job.progress,
            diagnostics=job.diagnostics,
            reconnect_threshold=self.options.reconnect_interval,
        )
        job.file_set.add_file(job.manifest_path, basename(job.manifest_path))
        job.file_set.extend(resolver.resolve())
        if self.options.import_database and self.db_exporter is not None:
            job.tables = resolver.scan_tables()

        if isinstance(resolver, PackageResolver):
            for sub in resolver.sub_extensions(strict=False):
                child = self._new_job(sub.manifest_path)
                if not self._resolve(child):
                    job.diagnostics.extend(child.diagnostics, prefix=sub.extension_name)
                job.children.append(child)

        if job.diagnostics.has_errors:
            job.transition(PipelineState.FAILED)
            return
        job.transition(PipelineState.SECTIONS_RESOLVED)

    # ------------------------------------------------------------------
    # Export and archiving
    # ------------------------------------------------------------------

    def _produce(self, job: PackageJob, staging: Path, target: str | None = None) -> bool:
        try:
            self._package_children(job, staging)
            self._export_database(job, staging)
            self._archive(job, target)
            if target is None and self.options.destination:
                job.archive_path, job.backup_path = save_archive(
                    job.archive_path,
                    self.options.destination,
                    job.extension_name,
                    self.options.rename_existing,
                )
                if job.backup_path:
                    job.diagnostics.info(
                        f"Existing archive file renamed to '{basename(job.backup_path)}'"
                    )
            job.transition(PipelineState.DONE)
        except PackagerError as e:
            job.fail(e)
        return not job.failed

    def _package_children(self, job: PackageJob, staging: Path) -> None:
        failed: list[str] = []
        for child in job.children:
            target = staging / f"{child.extension_name}.zip"
            ok = self._produce(child, staging / child.extension_name, str(target))
            job.diagnostics.extend(child.diagnostics, prefix=child.extension_name)
            if not ok:
                failed.append(child.extension_name)
                continue
            job.file_set.add_file(str(target), f"packages/{child.extension_name}.zip", staged=True)
        if failed:
            raise PackagerError(f"sub-extension(s) could not be packaged: {', '.join(failed)}")

    def _export_database(self, job: PackageJob, staging: Path) -> None:
        if not self.options.import_database:
            return
        if self.db_exporter is None:
            job.diagnostics.warning("Database export requested but no database exporter is configured: skipped")
            return
        scan = job.tables
        if scan is None or not scan.install_path:
            return
        if scan.no_data:
            job.diagnostics.info(f"'{basename(scan.install_path)}' is marked __no_data__: database export skipped")
            return
        if not scan.created:
            return

        exported = self.db_exporter.export(self.installation, scan.created)
        files = build_sql_files(scan.install_path, exported)
        written = write_sql_files(files, staging / job.extension_name / "sql")

        install_entry = job.file_set.find_source(scan.install_path)
        if install_entry is not None:
            archive_dir = dirname(install_entry.archive_entry_name)
        else:
            archive_dir = dirname(relative_to(scan.install_path, dirname(job.manifest_path)))
        for name, path in written.items():
            job.file_set.replace_destination(
                ResolvedFileEntry(str(path), join_path(archive_dir, name), staged=True)
            )
        job.diagnostics.info(
            f"Exported {len(scan.created)} database table(s) into '{archive_dir or '.'}'"
        )
        job.transition(PipelineState.DB_EXPORTED)

    def _archive(self, job: PackageJob, target: str | None) -> None:
        if target is not None:
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        builder = ArchiveBuilder(
            self.backend,
            job.progress,
            temp_dir=self.options.temp_dir,
            reconnect_threshold=self.options.reconnect_interval,
        )
        builder.open(target)
        try:
            with builder:
                completed = builder.add_entries(job.file_set)
        except PackagerError:
            Path(builder.path).unlink(missing_ok=True)
            raise
        if not completed:
            Path(builder.path).unlink(missing_ok=True)
            raise ArchiveError(f"Archiving of '{job.extension_name}' was aborted")
        job.archive_path = builder.path
        job.progress.interval(reset=True, name="archive")
        job.transition(PipelineState.ARCHIVED)
        logger.info("Archived %s (%d entries) to %s", job.extension_name, len(job.file_set), builder.path)

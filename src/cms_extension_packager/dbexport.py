"""Database export collaborator.

Exporting table definitions and data from a live database is left to
the caller: anything with an ``export(installation, table_names)``
method returning ``drop``, ``create`` and ``insert`` statement lists
can be handed to the pipeline. This module turns such an export into
the three SQL files shipped with an extension.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from .installation import Installation
from .paths import basename

STATEMENT_SEPARATOR = "\n\t\t\t\t\n"
SAMPLE_DATA_FILE = "sampledata.mysql.utf8.sql"
UNINSTALL_FILE = "uninstall.mysql.utf8.sql"


@runtime_checkable
class DbExporter(Protocol):
    """Produces SQL statements for a list of tables."""

    def export(self, installation: Installation, table_names: list[str]) -> dict[str, list[str]]:
        """Export tables.

        Returns:
            Mapping with 'drop', 'create' and 'insert' statement lists
        """
        ...


def build_sql_files(install_file: str, exported: dict[str, list[str]]) -> dict[str, str]:
    """Assemble exported statements into SQL file contents.

    The install file keeps its own name and receives the CREATE
    statements; sample data and DROP statements go to the fixed
    ``sampledata`` and ``uninstall`` files beside it.

    Args:
        install_file: Path or name of the extension's install script
        exported: Result of ``DbExporter.export``

    Returns:
        Mapping of file basename to file contents, in install, sample
        data, uninstall order
    """
    return {
        basename(install_file): STATEMENT_SEPARATOR.join(exported.get("create", [])),
        SAMPLE_DATA_FILE: STATEMENT_SEPARATOR.join(exported.get("insert", [])),
        UNINSTALL_FILE: STATEMENT_SEPARATOR.join(exported.get("drop", [])),
    }


def write_sql_files(files: dict[str, str], directory: Path) -> dict[str, Path]:
    """Write SQL file contents into ``directory``; empty contents make empty files."""
    directory.mkdir(parents=True, exist_ok=True)
    written: dict[str, Path] = {}
    for name, contents in files.items():
        path = directory / name
        path.write_text(contents, encoding="utf-8")
        written[name] = path
    return written

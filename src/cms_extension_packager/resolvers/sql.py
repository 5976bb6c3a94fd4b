"""Table-name extraction from install/uninstall SQL scripts.

An install script that starts with a ``# __no_data__`` comment marks an
extension whose tables are intentionally not exported.
"""

import re

NO_DATA_MARKER = re.compile(r"^#[ \t]*__no_data__")

_CREATE = r"(?:CREATE[ \t]+TABLE[ \t]+IF[ \t]+NOT[ \t]+EXISTS[ \t]*|CREATE[ \t]+TABLE[ \t]*)"
_DROP = r"(?:DROP[ \t]+TABLE[ \t]+IF[ \t]+EXISTS[ \t]*|DROP[ \t]+TABLE[ \t]*)"

CREATE_TABLE_QUOTED = re.compile(_CREATE + r"`([^`]+)`", re.IGNORECASE)
CREATE_TABLE_BARE = re.compile(_CREATE + r"([^ \t`\(;]+)", re.IGNORECASE)
DROP_TABLE_QUOTED = re.compile(_DROP + r"`([^`]+)`", re.IGNORECASE)
DROP_TABLE_BARE = re.compile(_DROP + r"([^ \t`\(;]+)", re.IGNORECASE)


def has_no_data_marker(contents: str) -> bool:
    return NO_DATA_MARKER.match(contents) is not None


def _table_names(contents: str, quoted: re.Pattern, bare: re.Pattern) -> list[str]:
    names = quoted.findall(contents) or bare.findall(contents)
    unique: list[str] = []
    for name in names:
        name = name.strip()
        if name and name not in unique:
            unique.append(name)
    return unique


def parse_create_tables(contents: str) -> list[str]:
    """Names of the tables created by a script, in order of appearance.

    Backtick-quoted names are preferred; bare identifiers are only used
    when no quoted name is found.

    Example:
        >>> parse_create_tables("CREATE TABLE IF NOT EXISTS `#__events` (id INT);")
        ['#__events']
    """
    return _table_names(contents, CREATE_TABLE_QUOTED, CREATE_TABLE_BARE)


def parse_drop_tables(contents: str) -> list[str]:
    """Names of the tables dropped by a script, in order of appearance."""
    return _table_names(contents, DROP_TABLE_QUOTED, DROP_TABLE_BARE)

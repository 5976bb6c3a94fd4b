"""Reader for language ``.ini`` files.

Language files hold one ``KEY="value"`` pair per line. Blank lines and
lines starting with ``;`` are ignored, as are ``[section]`` headers.
"""

import re
from dataclasses import dataclass

from ..errors import LanguageFileSyntaxError

_KEY = r"[^\s=;{}|&~!\[\]()^\"]+"
_ENTRY = re.compile(r"^(?P<key>" + _KEY + r")\s*=\s*(?P<value>.*)$")
_SECTION = re.compile(r"^\[[^\]]*\]$")


@dataclass(frozen=True)
class IniEntry:
    """One constant declared in a language file.

    Attributes:
        key: Constant name
        value: Translated text with quotes removed
        line_number: 1-based line of the declaration
    """

    key: str
    value: str
    line_number: int


def _parse_value(raw: str) -> str | None:
    raw = raw.strip()
    if raw.startswith('"'):
        end = raw.rfind('"')
        if end == 0:
            return None
        trailing = raw[end + 1:].strip()
        if trailing and not trailing.startswith(";"):
            return None
        return raw[1:end]
    # unquoted values end at an inline comment
    return raw.split(";", 1)[0].strip()


def parse_ini(text: str, source: str = "<string>") -> list[IniEntry]:
    """Parse language file contents.

    Args:
        text: File contents
        source: Name used in error messages

    Returns:
        Declared constants in file order

    Raises:
        LanguageFileSyntaxError: On the first malformed line
    """
    entries: list[IniEntry] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip().lstrip("﻿")
        if not stripped or stripped.startswith(";") or _SECTION.match(stripped):
            continue
        match = _ENTRY.match(stripped)
        value = _parse_value(match.group("value")) if match else None
        if match is None or value is None:
            raise LanguageFileSyntaxError(source, line_number, stripped)
        entries.append(IniEntry(match.group("key").strip(), value, line_number))
    return entries


def parse_ini_bytes(data: bytes, source: str = "<bytes>") -> list[IniEntry]:
    return parse_ini(data.decode("utf-8", errors="replace"), source)

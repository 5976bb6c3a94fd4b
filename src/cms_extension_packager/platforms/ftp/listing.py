"""Parsing of FTP directory listings.

MLSD facts are preferred. Servers that reject MLSD are listed with
``LIST`` and the Unix ``ls -l`` style lines are parsed here.
"""

import re
import stat
from datetime import datetime, timezone

from ...backends.base import EntryInfo, EntryKind, format_permissions
from ...paths import join_path

_MONTHS = {
    m: i
    for i, m in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}

# drwxr-xr-x    2 owner group     4096 Jan 01 12:00 name
_UNIX_LINE = re.compile(
    r"^(?P<perm>[bcdlps\-][rwxsStT\-]{9})[+@.]?\s+"
    r"\d+\s+\S+\s+(?:\S+\s+)?"
    r"(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<when>\d{1,2}:\d{2}|\d{4})\s"
    r"(?P<name>.+)$"
)


def _kind_from_char(char: str) -> EntryKind:
    if char == "d":
        return EntryKind.DIR
    if char == "-":
        return EntryKind.FILE
    return EntryKind.OTHER


def _parse_list_time(month: str, day: str, when: str, now: datetime) -> float | None:
    month_no = _MONTHS.get(month.lower())
    if month_no is None:
        return None
    try:
        if ":" in when:
            hour, minute = (int(x) for x in when.split(":"))
            stamp = datetime(now.year, month_no, int(day), hour, minute, tzinfo=timezone.utc)
            # No year means within the last six months
            if stamp > now:
                stamp = stamp.replace(year=now.year - 1)
        else:
            stamp = datetime(int(when), month_no, int(day), tzinfo=timezone.utc)
    except ValueError:
        return None
    return stamp.timestamp()


def parse_list_line(line: str, directory: str, now: datetime | None = None) -> EntryInfo | None:
    """Parse one Unix-style ``LIST`` line.

    Args:
        line: Raw listing line
        directory: Directory that was listed
        now: Reference time for year-less dates (defaults to current UTC time)

    Returns:
        Entry details, or None for lines that are not entries
        (``total 12`` headers, blank lines)
    """
    match = _UNIX_LINE.match(line.rstrip("\r\n"))
    if not match:
        return None
    perm = match.group("perm")
    name = match.group("name")
    kind = _kind_from_char(perm[0])
    if perm[0] == "l" and " -> " in name:
        name = name.split(" -> ", 1)[0]
    return EntryInfo(
        name=name,
        full_path=join_path(directory, name),
        kind=kind,
        size=int(match.group("size")) if kind is EntryKind.FILE else 0,
        modified_time=_parse_list_time(
            match.group("month"),
            match.group("day"),
            match.group("when"),
            now or datetime.now(timezone.utc),
        ),
        permissions=perm,
    )


def parse_mlsd_modify(value: str) -> float | None:
    """Convert an MLSD ``modify`` fact (``YYYYMMDDHHMMSS[.sss]``, UTC) to a timestamp."""
    try:
        stamp = datetime.strptime(value[:14], "%Y%m%d%H%M%S")
    except ValueError:
        return None
    return stamp.replace(tzinfo=timezone.utc).timestamp()


def entry_from_mlsd(name: str, facts: dict[str, str], directory: str) -> EntryInfo:
    """Build entry details from an MLSD name and its facts."""
    fact_type = facts.get("type", "").lower()
    if fact_type in ("dir", "cdir", "pdir"):
        kind = EntryKind.DIR
        type_bits = stat.S_IFDIR
    elif fact_type == "file":
        kind = EntryKind.FILE
        type_bits = stat.S_IFREG
    else:
        kind = EntryKind.OTHER
        type_bits = stat.S_IFLNK

    permissions = ""
    mode = facts.get("unix.mode")
    if mode:
        try:
            permissions = format_permissions(type_bits | int(mode, 8))
        except ValueError:
            permissions = ""

    size = 0
    if kind is EntryKind.FILE:
        try:
            size = int(facts.get("size", "0"))
        except ValueError:
            size = 0

    modify = facts.get("modify")
    return EntryInfo(
        name=name,
        full_path=join_path(directory, name),
        kind=kind,
        size=size,
        modified_time=parse_mlsd_modify(modify) if modify else None,
        permissions=permissions,
    )

"""Path helpers shared by backends, resolvers and the archive builder.

Backend paths and archive entry names always use forward slashes,
regardless of the host OS, so the same resolution logic works for the
local filesystem and for FTP servers.
"""

import re
from pathlib import Path, PurePosixPath

# Dangerous characters to remove from filenames
DANGEROUS_FILENAME_CHARS = r'[<>:"|?*\x00-\x1f]'

# Name prefixes by extension type
TYPE_PREFIXES = {
    "component": "com_",
    "module": "mod_",
    "package": "pkg_",
}


def join_path(*parts: str) -> str:
    """Join path segments with '/', skipping empty segments.

    Backslashes are normalized and duplicate separators collapsed. A
    leading separator (or Windows drive) on the first non-empty segment
    is kept.

    Example:
        >>> join_path("/var/www", "", "components", "com_x/", "x.php")
        '/var/www/components/com_x/x.php'
    """
    cleaned = [p.replace("\\", "/") for p in parts if p]
    if not cleaned:
        return ""
    absolute = cleaned[0].startswith("/")
    segments: list[str] = []
    for part in cleaned:
        segments.extend(s for s in part.split("/") if s)
    joined = "/".join(segments)
    return "/" + joined if absolute else joined


def to_entry_name(path: str) -> str:
    """Normalize a relative path into a ZIP entry name.

    Raises:
        ValueError: If the name is empty or escapes the archive root
    """
    name = join_path(path).lstrip("/")
    parts = PurePosixPath(name).parts
    if not parts or ".." in parts:
        raise ValueError(f"Invalid archive entry name: {path!r}")
    return "/".join(p for p in parts if p != ".")


def relative_to(path: str, base: str) -> str:
    """Return ``path`` relative to ``base`` using forward slashes."""
    path_n = join_path(path)
    base_n = join_path(base).rstrip("/")
    if path_n == base_n:
        return ""
    if not path_n.startswith(base_n + "/"):
        raise ValueError(f"{path} is not under {base}")
    return path_n[len(base_n) + 1:]


def basename(path: str) -> str:
    return join_path(path).rstrip("/").rsplit("/", 1)[-1]


def dirname(path: str) -> str:
    normalized = join_path(path).rstrip("/")
    if "/" not in normalized:
        return ""
    head = normalized.rsplit("/", 1)[0]
    return head or "/"


def stem(path: str) -> str:
    name = basename(path)
    return name.rsplit(".", 1)[0] if "." in name else name


def sanitize_filename(filename: str) -> str:
    """Sanitize filename by removing dangerous characters.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for storage
    """
    sanitized = re.sub(DANGEROUS_FILENAME_CHARS, "", filename)
    sanitized = sanitized.replace("/", "").replace("\\", "")
    return sanitized


def validate_path_safety(path: Path, base_dir: Path) -> None:
    """Validate that a path stays within the base directory.

    Args:
        path: Path to validate
        base_dir: Base directory that path must be within

    Raises:
        ValueError: If path escapes the base directory
    """
    resolved_path = path.resolve()
    resolved_base = base_dir.resolve()

    if not resolved_path.is_relative_to(resolved_base):
        raise ValueError(f"Path {path} escapes base directory {base_dir}")


def strip_prefix(name: str, prefix: str) -> str:
    """Remove a type prefix (case-insensitive) and surrounding whitespace.

    Example:
        >>> strip_prefix("COM_Events", "com_")
        'Events'
    """
    match = re.match(r"^\s*" + re.escape(prefix) + r"(.*)$", name, re.IGNORECASE)
    return (match.group(1) if match else name).strip()


def add_prefix(name: str, prefix: str) -> str:
    """Apply a type prefix unless the name already carries it.

    Example:
        >>> add_prefix("events", "com_")
        'com_events'
        >>> add_prefix("COM_events", "com_")
        'COM_events'
    """
    if not name.strip():
        return name
    if re.match(r"^\s*" + re.escape(prefix), name, re.IGNORECASE):
        return name
    return prefix + name

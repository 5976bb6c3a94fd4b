"""Storage backend abstractions."""

from .base import EntryInfo, EntryKind, StorageBackend, Visitor, format_permissions

__all__ = [
    "EntryInfo",
    "EntryKind",
    "StorageBackend",
    "Visitor",
    "format_permissions",
]

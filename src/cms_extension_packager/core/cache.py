"""Response cache for remote backend operations.

The cache is unbounded and never invalidated: within one packaging run
the remote tree is assumed not to change. An instance must not be
shared between concurrent runs.
"""

from collections.abc import Hashable
from typing import Any, Callable, TypeVar

T = TypeVar("T")

CacheKey = tuple[str, tuple[Hashable, ...]]


class ResponseCache:
    """Memoizes operation results keyed by ``(operation, normalized args)``."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(operation: str, *args: Hashable) -> CacheKey:
        return (operation, tuple(args))

    def get_or_compute(self, key: CacheKey, compute: Callable[[], T]) -> T:
        """Return the cached value for ``key``, computing it on a miss.

        Exceptions raised by ``compute`` propagate and nothing is cached.
        """
        if key in self._entries:
            self.hits += 1
            return self._entries[key]  # type: ignore[no-any-return]
        self.misses += 1
        value = compute()
        self._entries[key] = value
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

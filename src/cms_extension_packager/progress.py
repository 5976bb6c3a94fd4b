"""Progress counters and the advisory reconnect policy.

Long FTP sessions are silently dropped by many servers when the control
connection sits idle. Resolution and archiving therefore check, at
phase boundaries, how long the current interval has been running and
ask the backend to reconnect once it passes a threshold.
"""

import logging
import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .backends.base import StorageBackend

logger = logging.getLogger(__name__)

# Seconds after which a remote session is proactively re-established
RECONNECT_THRESHOLD = 10.0


class Progress:
    """Elapsed-time and item counters for one run.

    Attributes:
        items_processed: Number of items reported through ``add``
        timings: Named elapsed-time accumulators, filled by ``interval``
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        callback: Callable[["Progress", str], None] | None = None,
    ):
        """Initialize counters.

        Args:
            clock: Monotonic time source, injectable for tests
            callback: Optional observer called on every ``interval`` read
        """
        self._clock = clock
        self._callback = callback
        self._started = clock()
        self._interval_start = self._started
        self.items_processed = 0
        self.timings: dict[str, float] = {}

    def interval(self, reset: bool = False, name: str = "") -> float:
        """Return seconds since the current interval started.

        Args:
            reset: Start a new interval after reading
            name: When resetting, add the closed interval to this accumulator

        Returns:
            Elapsed seconds of the current interval
        """
        elapsed = self._clock() - self._interval_start
        if reset:
            if name:
                self.timings[name] = self.timings.get(name, 0.0) + elapsed
            self._interval_start = self._clock()
        if self._callback is not None:
            self._callback(self, name)
        return elapsed

    def reset(self) -> None:
        self._interval_start = self._clock()

    def add(self, count: int = 1) -> "Progress":
        self.items_processed += count
        return self

    @property
    def total_elapsed(self) -> float:
        return self._clock() - self._started


def reconnect_if_due(
    backend: "StorageBackend",
    progress: Progress,
    threshold: float = RECONNECT_THRESHOLD,
    name: str = "",
) -> bool:
    """Reconnect the backend when the current interval reached the threshold.

    Exactly one ``reconnect()`` is issued when due, then the interval is
    reset to zero. Backends that cannot reconnect are left untouched.

    Args:
        backend: Storage backend in use
        progress: Progress of the current run
        threshold: Seconds after which reconnecting is due
        name: Accumulator name for the closed interval

    Returns:
        True if a reconnect was performed

    Raises:
        BackendConnectionError: If the reconnect fails
    """
    if not backend.supports_reconnect:
        return False
    if progress.interval() < threshold:
        return False
    logger.debug("Interval reached %.1fs, reconnecting %s", threshold, backend.backend_id)
    backend.reconnect()
    progress.interval(reset=True, name=name)
    return True

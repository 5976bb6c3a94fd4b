"""Per-run collection of errors, warnings and informational messages."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """Messages accumulated by one pipeline or analysis run.

    Errors and warnings are kept apart: warnings never change the
    outcome of a run, errors mark it failed. Each entry is also sent
    to the module logger so library users get the same information
    without inspecting the result.

    Attributes:
        errors: Error messages in the order they were recorded
        warnings: Warning messages in the order they were recorded
        messages: Informational messages
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.errors.append(message)
        logger.error(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def info(self, message: str) -> None:
        self.messages.append(message)
        logger.info(message)

    def extend(self, other: "Diagnostics", prefix: str = "") -> None:
        """Merge another run's messages into this one.

        Args:
            other: Diagnostics to merge (typically a child pipeline's)
            prefix: Optional label prepended to every merged message
        """
        label = f"{prefix}: " if prefix else ""
        self.errors.extend(label + m for m in other.errors)
        self.warnings.extend(label + m for m in other.warnings)
        self.messages.extend(label + m for m in other.messages)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

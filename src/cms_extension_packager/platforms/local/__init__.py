"""Local filesystem platform.

Provides the ``local`` backend, used when the installation lives on the
same machine as the packager.
"""

from pathlib import Path

from .backend import LocalBackend

# Auto-register with the registry
from ...registry import BackendRegistry


def _create_local_backend(root: Path | str | None = None, **kwargs) -> LocalBackend:
    """Factory function for creating local backends.

    Args:
        root: Optional directory to confine access to
        **kwargs: Additional parameters (unused for local)

    Returns:
        LocalBackend instance
    """
    return LocalBackend(Path(root) if root is not None else None)


# Auto-register at module import
BackendRegistry.register_factory("local", _create_local_backend)

__all__ = ["LocalBackend"]

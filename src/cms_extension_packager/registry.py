"""Backend registry for factory-based pipeline creation.

This module provides a central registry for storage backend factories,
enabling backend-agnostic pipeline creation and automatic platform
discovery.
"""

import importlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from .backends.base import StorageBackend
    from .installation import Installation
    from .pipeline import PackagePipeline

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Central registry for storage backend factories.

    Platforms register a factory when their package is imported, and
    ``discover_platforms`` imports every platform package it finds.
    """

    _factories: dict[str, Callable[..., "StorageBackend"]] = {}

    @classmethod
    def register_factory(cls, name: str, factory: Callable[..., "StorageBackend"]) -> None:
        """Register a factory function for creating backends.

        Args:
            name: Name of the backend (e.g., 'local', 'ftp')
            factory: Callable that creates a StorageBackend instance

        Example:
            >>> def create_local(root=None, **kwargs):
            ...     return LocalBackend(root)
            >>> BackendRegistry.register_factory('local', create_local)
        """
        cls._factories[name] = factory

    @classmethod
    def create_backend(cls, backend_name: str, **kwargs: Any) -> "StorageBackend":
        """Create a backend from a registered factory.

        Args:
            backend_name: Name of the registered backend
            **kwargs: Arguments passed to the factory

        Raises:
            ValueError: If backend_name is not registered
        """
        if backend_name not in cls._factories:
            available = ", ".join(cls._factories.keys()) or "none"
            raise ValueError(
                f"Unknown backend: '{backend_name}'. Available backends: {available}"
            )
        return cls._factories[backend_name](**kwargs)

    @classmethod
    def create_pipeline(
        cls,
        backend_name: str,
        installation: "Installation",
        options: Any = None,
        db_exporter: Any = None,
        **kwargs: Any,
    ) -> "PackagePipeline":
        """Create a packaging pipeline over a registered backend.

        Args:
            backend_name: Name of the registered backend
            installation: Installation to package extensions from
            options: Optional PackageOptions
            db_exporter: Optional database export collaborator
            **kwargs: Arguments passed to the backend factory

        Returns:
            PackagePipeline using the new backend

        Example:
            >>> pipeline = BackendRegistry.create_pipeline(
            ...     'local',
            ...     installation=Installation('site', '/var/www/joomla'),
            ... )
        """
        # Import here to avoid circular dependency
        from .pipeline import PackagePipeline

        backend = cls.create_backend(backend_name, **kwargs)
        return PackagePipeline(installation, backend, options, db_exporter)

    @classmethod
    def list_backends(cls) -> list[str]:
        """List all registered backend names.

        Example:
            >>> BackendRegistry.list_backends()
            ['ftp', 'local']
        """
        return list(cls._factories.keys())

    @classmethod
    def discover_platforms(cls) -> None:
        """Auto-discover and import all platforms.

        Every package under ``platforms/`` is imported, which triggers
        its registration. Platforms whose dependencies are missing are
        skipped.
        """
        platforms_dir = Path(__file__).parent / "platforms"

        if not platforms_dir.exists():
            return

        for platform_path in sorted(platforms_dir.iterdir()):
            if not platform_path.is_dir():
                continue

            if not (platform_path / "__init__.py").exists():
                continue

            platform_name = platform_path.name

            try:
                importlib.import_module(f".platforms.{platform_name}", package=__package__)
            except ImportError as e:
                logger.debug("Skipping platform %s: %s", platform_name, e)

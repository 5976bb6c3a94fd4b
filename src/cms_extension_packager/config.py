"""JSON configuration files.

A configuration file names the installation, how to reach it and the
packaging options::

    {
      "installation": {"name": "live", "web_root": "/public_html"},
      "backend": {"type": "ftp", "host": "ftp.example.com",
                  "login": "deploy", "password": "secret", "use_tls": true},
      "options": {"import_database": false, "destination": "/tmp/builds"}
    }

The backend defaults to the local filesystem.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .core.types import ConfigDocument
from .core.validator import validate_config_with_error_details
from .errors import ConfigError
from .installation import Installation
from .pipeline import PackageOptions


@dataclass
class PackagerConfig:
    """Validated configuration.

    Attributes:
        installation: Installation to work on
        backend_name: Registered backend name ('local' or 'ftp')
        backend_options: Keyword arguments for the backend factory
        options: Packaging options
    """

    installation: Installation
    backend_name: str = "local"
    backend_options: dict[str, Any] = field(default_factory=dict)
    options: PackageOptions = field(default_factory=PackageOptions)

    def create_backend(self):
        """Create and connect the configured backend."""
        from .registry import BackendRegistry

        return BackendRegistry.create_backend(self.backend_name, **self.backend_options)


def config_from_document(document: ConfigDocument) -> PackagerConfig:
    """Build a PackagerConfig from a parsed document.

    Raises:
        ConfigError: If the document does not match the schema
    """
    is_valid, error = validate_config_with_error_details(document)
    if not is_valid:
        raise ConfigError(f"Invalid configuration: {error}")

    inst = document["installation"]
    installation = Installation(
        name=inst.get("name", "") or inst["web_root"],
        web_root=inst["web_root"],
        config=dict(inst.get("settings", {})),
        element=inst.get("element", ""),
    )

    backend = dict(document.get("backend", {"type": "local"}))
    backend_name = backend.pop("type")

    opts = document.get("options", {})
    options = PackageOptions(
        import_database=opts.get("import_database", False),
        reconnect_interval=float(opts.get("reconnect_interval", PackageOptions.reconnect_interval)),
        temp_dir=opts.get("temp_dir"),
        file_types=tuple(opts.get("file_types", PackageOptions.file_types)),
        destination=opts.get("destination"),
        rename_existing=opts.get("rename_existing", False),
    )
    return PackagerConfig(installation, backend_name, backend, options)


def load_config(path: Path) -> PackagerConfig:
    """Read and validate a configuration file.

    Raises:
        ConfigError: If the file cannot be read, is not JSON or is invalid
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            document = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Configuration file {path} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")
    return config_from_document(document)

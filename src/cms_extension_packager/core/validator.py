"""JSON Schema validation for packaging reports and configuration files.

This module loads the formal JSON Schemas shipped with the package and
validates documents against them.
"""

import json
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema import ValidationError

from .types import ConfigDocument, PackageReport

# cms_extension_packager/core/validator.py -> cms_extension_packager/schemas/
SCHEMA_DIR = Path(__file__).parent.parent / "schemas"
REPORT_SCHEMA = "package_report.schema.json"
CONFIG_SCHEMA = "config.schema.json"


def load_schema(name: str = REPORT_SCHEMA) -> dict[str, Any]:
    """Load a JSON schema from disk.

    Args:
        name: Schema filename inside the schemas directory

    Returns:
        Dictionary containing the JSON Schema.

    Raises:
        FileNotFoundError: If schema file doesn't exist
        json.JSONDecodeError: If schema is invalid JSON
    """
    path = SCHEMA_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def _error_details(e: ValidationError) -> str:
    error_path = " -> ".join(str(p) for p in e.path) if e.path else "root"
    error_msg = f"Validation error at {error_path}: {e.message}"
    if e.instance:
        error_msg += f"\nInvalid value: {e.instance}"
    return error_msg


def validate_report(report: PackageReport) -> None:
    """Validate a packaging report against the JSON Schema.

    Raises:
        ValidationError: If the report doesn't conform to the schema
        FileNotFoundError: If schema file is missing
        json.JSONDecodeError: If schema is invalid
    """
    jsonschema.validate(instance=report, schema=load_schema(REPORT_SCHEMA))


def validate_report_with_error_details(report: PackageReport) -> tuple[bool, str | None]:
    """Validate a report and return detailed error information.

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.
    """
    try:
        validate_report(report)
        return True, None
    except ValidationError as e:
        return False, _error_details(e)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        return False, f"Schema error: {e}"


def validate_config(document: ConfigDocument) -> None:
    """Validate a configuration document against the JSON Schema.

    Raises:
        ValidationError: If the document doesn't conform to the schema
        FileNotFoundError: If schema file is missing
        json.JSONDecodeError: If schema is invalid
    """
    jsonschema.validate(instance=document, schema=load_schema(CONFIG_SCHEMA))


def validate_config_with_error_details(document: ConfigDocument) -> tuple[bool, str | None]:
    """Validate a configuration document and return detailed error information.

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.
    """
    try:
        validate_config(document)
        return True, None
    except ValidationError as e:
        return False, _error_details(e)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        return False, f"Schema error: {e}"

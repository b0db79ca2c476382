"""JSON Schema definitions for tokenworkflow configuration files.

Schemas:
    - governance.schema.json: WorkflowGovernanceConfig (snake_case keys)

Usage:
    from tokenworkflow.schemas import validate_governance

    with open("governance.json") as f:
        data = json.load(f)
    validate_governance(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from importlib.resources import files
from typing import Any

import jsonschema


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'governance.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("tokenworkflow.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_governance_schema() -> dict[str, Any]:
    return _load_schema("governance.schema.json")


def validate_governance(data: dict[str, Any]) -> None:
    """Validate a governance configuration against the schema.

    Args:
        data: Governance configuration with snake_case keys

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_governance_schema())


__all__ = [
    "get_governance_schema",
    "validate_governance",
]

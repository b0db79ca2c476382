"""
Governance configuration loading.

Reads WorkflowGovernanceConfig from a JSON file or an already-parsed
mapping, validates it against the governance schema and returns the
immutable value the engine is constructed with.
"""

import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import jsonschema

from tokenworkflow.domain.exceptions import GovernanceConfigError
from tokenworkflow.domain.governance import WorkflowGovernanceConfig
from tokenworkflow.schemas import validate_governance

logger = logging.getLogger(__name__)

SECTION_NAME = "WorkflowGovernanceConfig"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _snake_case(key: str) -> str:
    """EnforcePostCommitVerification -> enforce_post_commit_verification."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def governance_config_from_mapping(data: Mapping[str, Any]) -> WorkflowGovernanceConfig:
    """
    Build a governance config from a mapping.

    Accepts PascalCase or snake_case keys, either at the top level or nested
    under a "WorkflowGovernanceConfig" section. Missing keys take defaults.

    Args:
        data: Parsed configuration

    Returns:
        Validated WorkflowGovernanceConfig

    Raises:
        GovernanceConfigError: If the data does not match the schema
    """
    if not isinstance(data, Mapping):
        raise GovernanceConfigError(
            f"Governance config must be an object, got {type(data).__name__}"
        )
    section = data.get(SECTION_NAME, data)
    if not isinstance(section, Mapping):
        raise GovernanceConfigError(f"'{SECTION_NAME}' must be an object")

    normalized = {_snake_case(str(k)): v for k, v in section.items()}
    try:
        validate_governance(normalized)
    except jsonschema.ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path) or "(root)"
        raise GovernanceConfigError(
            f"Invalid governance config at {location}: {e.message}"
        ) from e

    return WorkflowGovernanceConfig(**normalized)


def load_governance_config(path: str | Path) -> WorkflowGovernanceConfig:
    """
    Load a governance config from a JSON file.

    Raises:
        GovernanceConfigError: If the file is missing, not JSON or invalid
    """
    config_path = Path(path)
    try:
        with open(config_path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise GovernanceConfigError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise GovernanceConfigError(f"Config file is not valid JSON: {e}") from e

    config = governance_config_from_mapping(data)
    logger.info(
        "Loaded governance config from %s (enabled=%s, policy_version=%s, "
        "rollout_percentage=%d)",
        config_path,
        config.enabled,
        config.policy_version,
        config.rollout_percentage,
    )
    return config

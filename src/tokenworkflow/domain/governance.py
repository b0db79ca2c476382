"""
Workflow governance configuration and rollout routing.

The configuration is an immutable value loaded once at startup and injected
into the engine. Rollout routing hashes an identity together with the policy
version so that the same identity always lands in the same bucket for a
given policy version, across process restarts.
"""

import hashlib
from dataclasses import dataclass

from tokenworkflow.domain.exceptions import GovernanceConfigError

BUCKET_COUNT = 100


@dataclass(frozen=True)
class WorkflowGovernanceConfig:
    """Feature flags controlling which stages enforce vs. merely log."""

    enabled: bool = True
    enforce_validation: bool = True
    enforce_preconditions: bool = True
    enforce_post_commit_verification: bool = True
    max_retry_attempts: int = 3  # Caller-side retry bound
    policy_version: str = "1.0.0"
    rollout_percentage: int = 100  # 0 = nobody governed, 100 = everybody

    def __post_init__(self) -> None:
        if not 0 <= self.rollout_percentage <= 100:
            raise GovernanceConfigError(
                f"rollout_percentage must be between 0 and 100, "
                f"got {self.rollout_percentage}"
            )
        if self.max_retry_attempts < 0:
            raise GovernanceConfigError(
                f"max_retry_attempts must be >= 0, got {self.max_retry_attempts}"
            )
        if not self.policy_version:
            raise GovernanceConfigError("policy_version must be non-empty")


@dataclass(frozen=True)
class GovernanceDecision:
    """Effective enforcement for one execution."""

    governed: bool
    bucket: int
    identity: str
    policy_version: str
    enforce_validation: bool
    enforce_preconditions: bool
    enforce_post_commit_verification: bool


def rollout_bucket(identity: str, policy_version: str) -> int:
    """
    Map an identity to a rollout bucket in [0, 100).

    Uses SHA-256 (stable, unkeyed) over "identity|policy_version" and takes
    the first 8 bytes as an unsigned big-endian integer.

    Args:
        identity: User id or correlation id
        policy_version: Governance policy version

    Returns:
        Bucket number
    """
    digest = hashlib.sha256(f"{identity}|{policy_version}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % BUCKET_COUNT


def is_governed(identity: str, config: WorkflowGovernanceConfig) -> bool:
    if not config.enabled:
        return False
    return rollout_bucket(identity, config.policy_version) < config.rollout_percentage


def evaluate_governance(
    config: WorkflowGovernanceConfig, identity: str
) -> GovernanceDecision:
    """Compute the enforcement flags in effect for identity."""
    bucket = rollout_bucket(identity, config.policy_version)
    governed = config.enabled and bucket < config.rollout_percentage
    return GovernanceDecision(
        governed=governed,
        bucket=bucket,
        identity=identity,
        policy_version=config.policy_version,
        enforce_validation=governed and config.enforce_validation,
        enforce_preconditions=governed and config.enforce_preconditions,
        enforce_post_commit_verification=(
            governed and config.enforce_post_commit_verification
        ),
    )

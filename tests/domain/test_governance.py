"""Tests for governance config and rollout routing."""

import hashlib

import pytest

from tokenworkflow.domain.exceptions import GovernanceConfigError
from tokenworkflow.domain.governance import (
    WorkflowGovernanceConfig,
    evaluate_governance,
    is_governed,
    rollout_bucket,
)


class TestWorkflowGovernanceConfig:
    """Tests for the config value object."""

    def test_defaults(self):
        """Defaults enforce everything for everybody."""
        config = WorkflowGovernanceConfig()
        assert config.enabled
        assert config.enforce_validation
        assert config.enforce_preconditions
        assert config.enforce_post_commit_verification
        assert config.max_retry_attempts == 3
        assert config.policy_version == "1.0.0"
        assert config.rollout_percentage == 100

    @pytest.mark.parametrize("percentage", [-1, 101])
    def test_rollout_out_of_range(self, percentage):
        """Rollout percentage outside [0, 100] is rejected."""
        with pytest.raises(GovernanceConfigError):
            WorkflowGovernanceConfig(rollout_percentage=percentage)

    def test_negative_retry_attempts(self):
        """max_retry_attempts must not be negative."""
        with pytest.raises(GovernanceConfigError):
            WorkflowGovernanceConfig(max_retry_attempts=-1)

    def test_empty_policy_version(self):
        """policy_version must be non-empty."""
        with pytest.raises(GovernanceConfigError):
            WorkflowGovernanceConfig(policy_version="")

    def test_config_error_is_value_error(self):
        """GovernanceConfigError can be caught as ValueError."""
        with pytest.raises(ValueError):
            WorkflowGovernanceConfig(rollout_percentage=500)


class TestRolloutBucket:
    """Tests for the stable rollout hash."""

    def test_matches_documented_hash(self):
        """Bucket is SHA-256 of 'identity|version', first 8 bytes, mod 100."""
        digest = hashlib.sha256(b"alice|1.0.0").digest()
        expected = int.from_bytes(digest[:8], "big") % 100
        assert rollout_bucket("alice", "1.0.0") == expected

    def test_stable(self):
        """The same inputs always give the same bucket."""
        assert rollout_bucket("user-42", "2.1.0") == rollout_bucket("user-42", "2.1.0")

    def test_in_range(self):
        """Buckets fall within [0, 100)."""
        for i in range(200):
            assert 0 <= rollout_bucket(f"user-{i}", "1.0.0") < 100

    def test_spreads_identities(self):
        """A few hundred identities hit many different buckets."""
        buckets = {rollout_bucket(f"user-{i}", "1.0.0") for i in range(500)}
        assert len(buckets) > 50


class TestIsGoverned:
    """Tests for rollout gating."""

    def test_zero_percent_governs_nobody(self):
        """rollout_percentage=0 leaves every identity ungoverned."""
        config = WorkflowGovernanceConfig(rollout_percentage=0)
        assert not any(is_governed(f"user-{i}", config) for i in range(100))

    def test_hundred_percent_governs_everybody(self):
        """rollout_percentage=100 governs every identity."""
        config = WorkflowGovernanceConfig(rollout_percentage=100)
        assert all(is_governed(f"user-{i}", config) for i in range(100))

    def test_disabled_governs_nobody(self):
        """enabled=False overrides the rollout percentage."""
        config = WorkflowGovernanceConfig(enabled=False)
        assert not is_governed("alice", config)

    def test_monotonic_in_percentage(self):
        """An identity governed at p stays governed at any higher p."""
        for i in range(50):
            identity = f"user-{i}"
            governed_at = [
                is_governed(identity, WorkflowGovernanceConfig(rollout_percentage=p))
                for p in range(0, 101, 10)
            ]
            first = governed_at.index(True)
            assert all(governed_at[first:])


class TestEvaluateGovernance:
    """Tests for evaluate_governance()."""

    def test_governed_uses_config_flags(self):
        """A governed identity gets the configured enforce flags."""
        config = WorkflowGovernanceConfig(enforce_preconditions=False)
        decision = evaluate_governance(config, "alice")
        assert decision.governed
        assert decision.enforce_validation
        assert not decision.enforce_preconditions
        assert decision.enforce_post_commit_verification
        assert decision.bucket == rollout_bucket("alice", "1.0.0")

    def test_ungoverned_enforces_nothing(self):
        """An ungoverned identity has every enforce flag off."""
        config = WorkflowGovernanceConfig(rollout_percentage=0)
        decision = evaluate_governance(config, "alice")
        assert not decision.governed
        assert not decision.enforce_validation
        assert not decision.enforce_preconditions
        assert not decision.enforce_post_commit_verification

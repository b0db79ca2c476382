"""Tests for the command line interface."""

import json
import logging

import pytest
from click.testing import CliRunner

from tokenworkflow.cli import cli
from tokenworkflow.domain.governance import rollout_bucket


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo the handler the CLI installs so later tests do not log to a closed stream."""
    package_logger = logging.getLogger("tokenworkflow")
    handlers, level = package_logger.handlers[:], package_logger.level
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)


class TestBucketCommand:
    def test_prints_bucket(self):
        """The bucket matches rollout_bucket() for the identity and version."""
        result = CliRunner().invoke(cli, ["bucket", "alice", "--policy-version", "1.0.0"])

        assert result.exit_code == 0
        assert f"Bucket: {rollout_bucket('alice', '1.0.0')}" in result.output
        assert "Decision: governed" in result.output

    def test_zero_rollout_not_governed(self):
        """With 0% rollout nobody is governed."""
        result = CliRunner().invoke(
            cli,
            ["bucket", "alice", "--policy-version", "1.0.0", "--rollout-percentage", "0"],
        )
        assert "Decision: not governed" in result.output

    def test_rejects_out_of_range_percentage(self):
        """Percentages above 100 are a usage error."""
        result = CliRunner().invoke(
            cli,
            ["bucket", "alice", "--policy-version", "1.0.0", "--rollout-percentage", "150"],
        )
        assert result.exit_code == 2

    def test_requires_policy_version(self):
        """--policy-version is mandatory."""
        result = CliRunner().invoke(cli, ["bucket", "alice"])
        assert result.exit_code == 2


class TestCheckConfigCommand:
    def test_valid_config(self, tmp_path):
        """A valid file prints the effective values."""
        path = tmp_path / "governance.json"
        path.write_text(json.dumps({"WorkflowGovernanceConfig": {"RolloutPercentage": 30}}))

        result = CliRunner().invoke(cli, ["--debug", "check-config", str(path)])

        assert result.exit_code == 0
        assert "[OK]" in result.output
        assert "rollout_percentage: 30" in result.output

    def test_invalid_config(self, tmp_path):
        """An invalid file exits non-zero."""
        path = tmp_path / "governance.json"
        path.write_text(json.dumps({"RolloutPercentage": 300}))

        result = CliRunner().invoke(cli, ["check-config", str(path)])

        assert result.exit_code == 1
        assert "rollout_percentage" in result.output

"""Tests for retry guidance."""

import pytest

from tokenworkflow.domain.models import OrchestrationFailureCategory as Category
from tokenworkflow.domain.retry import RetryPolicy, retry_delay_seconds, retry_guidance


class TestRetryDelay:
    """Tests for exponential back-off."""

    @pytest.mark.parametrize(
        "attempt,delay", [(0, 0), (1, 10), (2, 20), (3, 40), (5, 160), (6, 300), (20, 300)]
    )
    def test_delays(self, attempt, delay):
        """Delay doubles from 10s and is capped at 300s."""
        assert retry_delay_seconds(attempt) == delay


class TestRetryGuidance:
    """Tests for retry_guidance()."""

    def test_transient_retried_within_bound(self):
        """Transient failures retry automatically while attempts remain."""
        guidance = retry_guidance(Category.TRANSIENT_INFRASTRUCTURE_FAILURE, 1, 3)
        assert guidance.policy is RetryPolicy.RETRY_WITH_BACKOFF
        assert guidance.should_retry
        assert guidance.delay_seconds == 10

    def test_transient_stops_at_max_attempts(self):
        """No automatic retry once max_attempts is reached."""
        guidance = retry_guidance(Category.TRANSIENT_INFRASTRUCTURE_FAILURE, 3, 3)
        assert guidance.retryable
        assert not guidance.should_retry
        assert guidance.delay_seconds == 0

    @pytest.mark.parametrize(
        "category", [Category.VALIDATION_FAILURE, Category.POLICY_FAILURE]
    )
    def test_never_retried(self, category):
        """Validation and policy failures are never retried."""
        guidance = retry_guidance(category, 1, 3)
        assert guidance.policy is RetryPolicy.NOT_RETRYABLE
        assert not guidance.retryable
        assert not guidance.should_retry

    def test_precondition_needs_remediation(self):
        """Precondition failures wait for the user."""
        guidance = retry_guidance(Category.PRECONDITION_FAILURE, 1, 3)
        assert guidance.policy is RetryPolicy.RETRY_AFTER_REMEDIATION
        assert guidance.retryable
        assert not guidance.should_retry

    def test_post_commit_needs_investigation(self):
        """Post-commit failures wait for an operator."""
        guidance = retry_guidance(Category.POST_COMMIT_VERIFICATION_FAILURE, 1, 3)
        assert guidance.policy is RetryPolicy.RETRY_AFTER_INVESTIGATION
        assert not guidance.should_retry

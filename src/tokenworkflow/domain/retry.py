"""
Retry guidance for callers.

The pipeline never retries on its own; it is stateless across attempts
except through the idempotency store. Callers use this guidance, bounded by
WorkflowGovernanceConfig.max_retry_attempts, to decide whether and when to
resubmit.
"""

from dataclasses import dataclass
from enum import Enum

from tokenworkflow.domain.models import OrchestrationFailureCategory

BASE_DELAY_SECONDS = 10
MAX_DELAY_SECONDS = 300


class RetryPolicy(Enum):
    """How a failure category may be retried."""

    NOT_RETRYABLE = "NotRetryable"
    RETRY_WITH_BACKOFF = "RetryWithBackoff"  # Automatic, exponential delay
    RETRY_AFTER_REMEDIATION = "RetryAfterRemediation"  # User action first
    RETRY_AFTER_INVESTIGATION = "RetryAfterInvestigation"  # Operator first


_POLICY_BY_CATEGORY: dict[OrchestrationFailureCategory, RetryPolicy] = {
    OrchestrationFailureCategory.NONE: RetryPolicy.NOT_RETRYABLE,
    OrchestrationFailureCategory.VALIDATION_FAILURE: RetryPolicy.NOT_RETRYABLE,
    OrchestrationFailureCategory.PRECONDITION_FAILURE: RetryPolicy.RETRY_AFTER_REMEDIATION,
    OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE: RetryPolicy.RETRY_WITH_BACKOFF,
    OrchestrationFailureCategory.POLICY_FAILURE: RetryPolicy.NOT_RETRYABLE,
    OrchestrationFailureCategory.POST_COMMIT_VERIFICATION_FAILURE: RetryPolicy.RETRY_AFTER_INVESTIGATION,
    OrchestrationFailureCategory.TERMINAL_EXECUTION_FAILURE: RetryPolicy.NOT_RETRYABLE,
}

_EXPLANATIONS: dict[RetryPolicy, str] = {
    RetryPolicy.NOT_RETRYABLE: "Not retryable without changing the request or policy",
    RetryPolicy.RETRY_WITH_BACKOFF: "Transient failure - retry with exponential back-off",
    RetryPolicy.RETRY_AFTER_REMEDIATION: "Retry once the unmet precondition is resolved",
    RetryPolicy.RETRY_AFTER_INVESTIGATION: "Retry only after an operator has investigated",
}


@dataclass(frozen=True)
class RetryGuidance:
    """Whether and when the caller should resubmit."""

    policy: RetryPolicy
    retryable: bool  # Category allows resubmission at all
    attempt: int  # Attempts made so far
    max_attempts: int
    should_retry: bool  # Automatic retry allowed now
    delay_seconds: int
    explanation: str


def retry_delay_seconds(attempt: int) -> int:
    """Exponential back-off: 10s, 20s, 40s, ... capped at 300s."""
    if attempt <= 0:
        return 0
    return min(BASE_DELAY_SECONDS * 2 ** (attempt - 1), MAX_DELAY_SECONDS)


def retry_guidance(
    category: OrchestrationFailureCategory, attempt: int, max_attempts: int
) -> RetryGuidance:
    """
    Build retry guidance for a failed attempt.

    Only transient infrastructure failures are retried automatically, and
    only while attempt < max_attempts.

    Args:
        category: Failure category of the last result
        attempt: Number of attempts made so far (1 after the first call)
        max_attempts: Caller-side retry bound

    Returns:
        RetryGuidance for the next attempt
    """
    policy = _POLICY_BY_CATEGORY[category]
    automatic = policy is RetryPolicy.RETRY_WITH_BACKOFF and attempt < max_attempts
    return RetryGuidance(
        policy=policy,
        retryable=category.retryable,
        attempt=attempt,
        max_attempts=max_attempts,
        should_retry=automatic,
        delay_seconds=retry_delay_seconds(attempt) if automatic else 0,
        explanation=_EXPLANATIONS[policy],
    )

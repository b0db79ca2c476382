"""
Failure taxonomy.

Every stage failure leaves the engine as exactly one
OrchestrationFailureCategory, together with an error code and a remediation
hint. Collaborators choose a code explicitly by raising StageFailure or by
returning StageOutcome.failed(..., error_code=...); otherwise the code is
derived from the exception type or the stage.
"""

from enum import Enum

from tokenworkflow.domain.exceptions import OperationCancelled, StageFailure
from tokenworkflow.domain.lifecycle import OrchestrationStage
from tokenworkflow.domain.models import OrchestrationFailureCategory


class ErrorCode(str, Enum):
    """Structured error codes surfaced on failed results."""

    # Validation
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_TOKEN_PARAMETERS = "INVALID_TOKEN_PARAMETERS"
    INVALID_NETWORK = "INVALID_NETWORK"
    # Preconditions
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    KYC_REQUIRED = "KYC_REQUIRED"
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"
    COMPLIANCE_VIOLATION = "COMPLIANCE_VIOLATION"
    # Transient infrastructure
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    IPFS_UPLOAD_FAILED = "IPFS_UPLOAD_FAILED"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"
    IDEMPOTENCY_KEY_IN_FLIGHT = "IDEMPOTENCY_KEY_IN_FLIGHT"
    # Policy
    POLICY_VIOLATION = "POLICY_VIOLATION"
    FORBIDDEN = "FORBIDDEN"
    # Post-commit
    POST_COMMIT_VERIFICATION_FAILED = "POST_COMMIT_VERIFICATION_FAILED"
    # Terminal
    OPERATION_FAILED = "OPERATION_FAILED"
    EXECUTOR_RETURNED_NO_PAYLOAD = "EXECUTOR_RETURNED_NO_PAYLOAD"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CATEGORY_BY_CODE: dict[str, OrchestrationFailureCategory] = {
    ErrorCode.INVALID_REQUEST.value: OrchestrationFailureCategory.VALIDATION_FAILURE,
    ErrorCode.MISSING_REQUIRED_FIELD.value: OrchestrationFailureCategory.VALIDATION_FAILURE,
    ErrorCode.INVALID_TOKEN_PARAMETERS.value: OrchestrationFailureCategory.VALIDATION_FAILURE,
    ErrorCode.INVALID_NETWORK.value: OrchestrationFailureCategory.VALIDATION_FAILURE,
    ErrorCode.PRECONDITION_FAILED.value: OrchestrationFailureCategory.PRECONDITION_FAILURE,
    ErrorCode.KYC_REQUIRED.value: OrchestrationFailureCategory.PRECONDITION_FAILURE,
    ErrorCode.SUBSCRIPTION_REQUIRED.value: OrchestrationFailureCategory.PRECONDITION_FAILURE,
    ErrorCode.COMPLIANCE_VIOLATION.value: OrchestrationFailureCategory.PRECONDITION_FAILURE,
    ErrorCode.TIMEOUT.value: OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
    ErrorCode.NETWORK_ERROR.value: OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
    ErrorCode.IPFS_UPLOAD_FAILED.value: OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
    ErrorCode.OPERATION_CANCELLED.value: OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
    ErrorCode.IDEMPOTENCY_KEY_IN_FLIGHT.value: OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
    ErrorCode.POLICY_VIOLATION.value: OrchestrationFailureCategory.POLICY_FAILURE,
    ErrorCode.FORBIDDEN.value: OrchestrationFailureCategory.POLICY_FAILURE,
    ErrorCode.POST_COMMIT_VERIFICATION_FAILED.value: OrchestrationFailureCategory.POST_COMMIT_VERIFICATION_FAILURE,
}

_DEFAULT_CODE_BY_STAGE: dict[OrchestrationStage, ErrorCode] = {
    OrchestrationStage.VALIDATE: ErrorCode.INVALID_REQUEST,
    OrchestrationStage.CHECK_PRECONDITIONS: ErrorCode.PRECONDITION_FAILED,
    OrchestrationStage.EXECUTE: ErrorCode.OPERATION_FAILED,
    OrchestrationStage.VERIFY_POST_COMMIT: ErrorCode.POST_COMMIT_VERIFICATION_FAILED,
}

_REMEDIATION_HINTS: dict[OrchestrationFailureCategory, str] = {
    OrchestrationFailureCategory.VALIDATION_FAILURE: (
        "Correct the request parameters and resubmit."
    ),
    OrchestrationFailureCategory.PRECONDITION_FAILURE: (
        "Resolve the precondition (complete KYC, subscribe to a plan, or "
        "address compliance issues) then retry."
    ),
    OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE: (
        "A transient error occurred. Retry with exponential back-off using the "
        "same idempotency key."
    ),
    OrchestrationFailureCategory.POLICY_FAILURE: (
        "This operation is blocked by a platform policy. Contact support if you "
        "believe this is incorrect."
    ),
    OrchestrationFailureCategory.POST_COMMIT_VERIFICATION_FAILURE: (
        "The operation was submitted but could not be verified. Contact support "
        "with the correlation ID."
    ),
    OrchestrationFailureCategory.TERMINAL_EXECUTION_FAILURE: (
        "An unexpected error occurred. Contact support with the correlation ID."
    ),
}


def _code_text(error_code: str) -> str:
    if isinstance(error_code, ErrorCode):
        return error_code.value
    return str(error_code)


def category_for_code(error_code: str) -> OrchestrationFailureCategory:
    """Map an error code to its category; unknown codes are terminal."""
    return _CATEGORY_BY_CODE.get(
        _code_text(error_code), OrchestrationFailureCategory.TERMINAL_EXECUTION_FAILURE
    )


def default_code_for_stage(stage: OrchestrationStage) -> str:
    return _DEFAULT_CODE_BY_STAGE.get(stage, ErrorCode.INTERNAL_ERROR).value


def classify_exception(exc: BaseException) -> str:
    """Derive an error code from an exception raised by a collaborator."""
    if isinstance(exc, StageFailure):
        return _code_text(exc.error_code)
    if isinstance(exc, OperationCancelled):
        return ErrorCode.OPERATION_CANCELLED.value
    if isinstance(exc, TimeoutError):
        return ErrorCode.TIMEOUT.value
    if isinstance(exc, PermissionError):
        return ErrorCode.FORBIDDEN.value
    if isinstance(exc, OSError):
        # ConnectionError and friends
        return ErrorCode.NETWORK_ERROR.value
    return ErrorCode.INTERNAL_ERROR.value


def resolve_failure(
    stage: OrchestrationStage,
    error_code: str | None,
    category: OrchestrationFailureCategory | None = None,
) -> tuple[str, OrchestrationFailureCategory]:
    """
    Decide the (error code, category) pair for a failed stage.

    An explicit category wins. Otherwise the code's category is used, with
    two stage rules: an unknown or terminal code in Validate or
    CheckPreconditions keeps that stage's category, and any non-transient
    failure in VerifyPostCommit is a post-commit verification failure.

    Args:
        stage: Stage that failed
        error_code: Code chosen by the collaborator or derived from an exception
        category: Category chosen explicitly by the collaborator

    Returns:
        Tuple of (error code, failure category)
    """
    code = default_code_for_stage(stage) if error_code is None else _code_text(error_code)
    if category is not None and category is not OrchestrationFailureCategory.NONE:
        return code, category

    resolved = category_for_code(code)
    transient = OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE
    terminal = OrchestrationFailureCategory.TERMINAL_EXECUTION_FAILURE

    if stage is OrchestrationStage.VERIFY_POST_COMMIT and resolved is not transient:
        return code, OrchestrationFailureCategory.POST_COMMIT_VERIFICATION_FAILURE
    if resolved is terminal and stage in (
        OrchestrationStage.VALIDATE,
        OrchestrationStage.CHECK_PRECONDITIONS,
    ):
        return code, category_for_code(default_code_for_stage(stage))
    return code, resolved


def remediation_hint(category: OrchestrationFailureCategory) -> str | None:
    return _REMEDIATION_HINTS.get(category)

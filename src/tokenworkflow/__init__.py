"""
tokenworkflow: policy-driven orchestration for token issuance workflows.

Every token operation runs through the same five stages (Validate,
CheckPreconditions, Execute, VerifyPostCommit, EmitTelemetry) under a
governance configuration that decides which failures abort and which are
only recorded as warnings.

Example:
    from tokenworkflow import OrchestrationPipeline, WorkflowGovernanceConfig, build_context
    from tokenworkflow.infrastructure import InMemoryIdempotencyStore

    pipeline = OrchestrationPipeline(WorkflowGovernanceConfig(), InMemoryIdempotencyStore())
    context = build_context("ERC20_MINTABLE_CREATE", idempotency_key="deploy-42", user_id="alice")
    result = pipeline.execute(context, request, validator=validator, executor=executor)
"""

# Application layer (orchestration)
from tokenworkflow.application.context_builder import (
    build_context,
    context_from_headers,
    response_headers,
)
from tokenworkflow.application.pipeline import OrchestrationPipeline

# Domain exceptions
from tokenworkflow.domain.exceptions import (
    GovernanceConfigError,
    IllegalStageTransition,
    OperationCancelled,
    StageFailure,
)
from tokenworkflow.domain.failures import ErrorCode
from tokenworkflow.domain.governance import WorkflowGovernanceConfig

# Domain interfaces (for custom collaborators)
from tokenworkflow.domain.interfaces import (
    ExecutorInterface,
    IdempotencyStoreInterface,
    PostCommitVerifierInterface,
    PreconditionCheckInterface,
    TelemetrySinkInterface,
    ValidatorInterface,
)
from tokenworkflow.domain.lifecycle import OrchestrationStage
from tokenworkflow.domain.models import (
    ContextView,
    OrchestrationAuditSummary,
    OrchestrationContext,
    OrchestrationFailureCategory,
    OrchestrationResult,
    PolicyDecision,
    PolicyOutcome,
    StageMarker,
    StageOutcome,
)
from tokenworkflow.domain.retry import RetryGuidance, RetryPolicy

__version__ = "0.1.0"

__all__ = [
    # Application
    "OrchestrationPipeline",
    "build_context",
    "context_from_headers",
    "response_headers",
    # Models
    "ContextView",
    "OrchestrationAuditSummary",
    "OrchestrationContext",
    "OrchestrationFailureCategory",
    "OrchestrationResult",
    "OrchestrationStage",
    "PolicyDecision",
    "PolicyOutcome",
    "StageMarker",
    "StageOutcome",
    "WorkflowGovernanceConfig",
    "ErrorCode",
    "RetryGuidance",
    "RetryPolicy",
    # Interfaces
    "ExecutorInterface",
    "IdempotencyStoreInterface",
    "PostCommitVerifierInterface",
    "PreconditionCheckInterface",
    "TelemetrySinkInterface",
    "ValidatorInterface",
    # Exceptions
    "GovernanceConfigError",
    "IllegalStageTransition",
    "OperationCancelled",
    "StageFailure",
]

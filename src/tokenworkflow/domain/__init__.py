"""
Domain layer for the token workflow orchestration pipeline.

Contains the pipeline's data model, stage lifecycle, governance rules and
failure taxonomy, with no dependencies on other layers.
"""

from tokenworkflow.domain.exceptions import (
    GovernanceConfigError,
    IllegalStageTransition,
    OperationCancelled,
    StageFailure,
)
from tokenworkflow.domain.failures import ErrorCode
from tokenworkflow.domain.governance import (
    GovernanceDecision,
    WorkflowGovernanceConfig,
    evaluate_governance,
    is_governed,
    rollout_bucket,
)
from tokenworkflow.domain.idempotency import Reservation, ReservationStatus
from tokenworkflow.domain.interfaces import (
    ExecutorInterface,
    IdempotencyStoreInterface,
    PostCommitVerifierInterface,
    PreconditionCheckInterface,
    TelemetrySinkInterface,
    ValidatorInterface,
)
from tokenworkflow.domain.lifecycle import PIPELINE_STAGES, OrchestrationStage
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
from tokenworkflow.domain.retry import RetryGuidance, RetryPolicy, retry_guidance
from tokenworkflow.domain.telemetry import TelemetryRecord

__all__ = [
    # Models
    "ContextView",
    "OrchestrationAuditSummary",
    "OrchestrationContext",
    "OrchestrationFailureCategory",
    "OrchestrationResult",
    "OrchestrationStage",
    "PIPELINE_STAGES",
    "PolicyDecision",
    "PolicyOutcome",
    "StageMarker",
    "StageOutcome",
    "TelemetryRecord",
    "Reservation",
    "ReservationStatus",
    # Governance
    "GovernanceDecision",
    "WorkflowGovernanceConfig",
    "evaluate_governance",
    "is_governed",
    "rollout_bucket",
    # Failures and retry
    "ErrorCode",
    "RetryGuidance",
    "RetryPolicy",
    "retry_guidance",
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

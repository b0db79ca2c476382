"""
Domain models for the token workflow orchestration pipeline.

Everything here is immutable (frozen dataclasses) except OrchestrationContext,
which is the per-execution state owned by the engine for the duration of one
call. Results and audit summaries are snapshots taken from that context.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Generic, Mapping, TypeVar, Union

from tokenworkflow.domain.exceptions import IllegalStageTransition
from tokenworkflow.domain.lifecycle import (
    OrchestrationStage,
    is_terminal,
    require_transition,
)

if TYPE_CHECKING:
    from tokenworkflow.domain.retry import RetryGuidance

PayloadT = TypeVar("PayloadT")

# Closed set of values a stage may attach to the context metadata
ScalarValue = Union[str, int, float, bool, None]
MetadataValue = Union[ScalarValue, tuple[ScalarValue, ...]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_metadata_value(value: Any) -> bool:
    """Whether value belongs to the closed MetadataValue set."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, tuple):
        return all(
            item is None or isinstance(item, (str, int, float, bool))
            for item in value
        )
    return False


# =============================================================================
# OUTCOMES AND CATEGORIES
# =============================================================================


class PolicyOutcome(Enum):
    """Verdict of a single policy evaluation."""

    PASS = "Pass"
    WARNING = "Warning"
    FAIL = "Fail"


class OrchestrationFailureCategory(Enum):
    """Classifies why a pipeline failed, to drive retry guidance."""

    NONE = "None"
    VALIDATION_FAILURE = "ValidationFailure"  # Caller must fix input
    PRECONDITION_FAILURE = "PreconditionFailure"  # Retry after remediation
    TRANSIENT_INFRASTRUCTURE_FAILURE = "TransientInfrastructureFailure"  # Backoff
    POLICY_FAILURE = "PolicyFailure"  # Needs a policy change
    POST_COMMIT_VERIFICATION_FAILURE = "PostCommitVerificationFailure"
    TERMINAL_EXECUTION_FAILURE = "TerminalExecutionFailure"  # Needs an operator

    @property
    def retryable(self) -> bool:
        """Whether the caller may ever resubmit after this failure."""
        return self in (
            OrchestrationFailureCategory.PRECONDITION_FAILURE,
            OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
            OrchestrationFailureCategory.POST_COMMIT_VERIFICATION_FAILURE,
        )


# =============================================================================
# STAGE RECORDS
# =============================================================================


@dataclass(frozen=True)
class StageMarker:
    """Timestamped record of one stage's execution and outcome."""

    stage: OrchestrationStage
    timestamp: datetime  # Stage entry time (UTC)
    success: bool
    message: str | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "message": self.message,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class PolicyDecision:
    """A named pass/warning/fail verdict."""

    policy_name: str
    outcome: PolicyOutcome
    reason: str = ""
    decided_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_name": self.policy_name,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "decided_at": self.decided_at.isoformat(),
        }


@dataclass(frozen=True)
class StageOutcome:
    """
    What a stage hands back to the engine.

    This is the only channel through which a stage affects the context: the
    engine folds decisions and metadata in, in order.
    """

    success: bool
    message: str | None = None
    policy_decisions: tuple[PolicyDecision, ...] = ()
    error_code: str | None = None  # Explicit failure code, else stage default
    category: OrchestrationFailureCategory | None = None
    payload: Any = None  # Only set by the Execute stage
    metadata: tuple[tuple[str, MetadataValue], ...] = ()

    @classmethod
    def passed(cls, message: str | None = None, **kwargs: Any) -> "StageOutcome":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def failed(
        cls, message: str, error_code: str | None = None, **kwargs: Any
    ) -> "StageOutcome":
        return cls(success=False, message=message, error_code=error_code, **kwargs)


# =============================================================================
# CONTEXT
# =============================================================================


@dataclass(frozen=True)
class ContextView:
    """Read-only view of the context handed to collaborators."""

    correlation_id: str
    idempotency_key: str | None
    operation_type: str
    user_id: str | None
    initiated_at: datetime
    current_stage: OrchestrationStage
    metadata: Mapping[str, MetadataValue]
    timeout_seconds: float | None = None  # Collaborators must honor this


class OrchestrationContext:
    """
    Mutable per-execution state carried through all stages.

    Owned exclusively by the engine for one call. Stage markers and policy
    decisions are append-only and kept in execution order; the current stage
    only moves along the lifecycle transition table.
    """

    def __init__(
        self,
        correlation_id: str,
        operation_type: str,
        idempotency_key: str | None = None,
        user_id: str | None = None,
        initiated_at: datetime | None = None,
    ):
        """
        Args:
            correlation_id: Identifier threading the request across stages/logs
            operation_type: Workflow variant, e.g. "ERC20_MINTABLE_CREATE"
            idempotency_key: Optional caller token enabling duplicate suppression
            user_id: Authenticated user, if any
            initiated_at: Creation time (defaults to now, UTC)
        """
        if not correlation_id:
            raise ValueError("correlation_id must be non-empty")
        if not operation_type:
            raise ValueError("operation_type must be non-empty")
        self._correlation_id = correlation_id
        self._operation_type = operation_type
        self._initiated_at = initiated_at or utc_now()
        self.idempotency_key = idempotency_key
        self.user_id = user_id
        self._current_stage = OrchestrationStage.NOT_STARTED
        self._stage_markers: list[StageMarker] = []
        self._policy_decisions: list[PolicyDecision] = []
        self._metadata: dict[str, MetadataValue] = {}

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    @property
    def operation_type(self) -> str:
        return self._operation_type

    @property
    def initiated_at(self) -> datetime:
        return self._initiated_at

    @property
    def current_stage(self) -> OrchestrationStage:
        return self._current_stage

    @property
    def stage_markers(self) -> tuple[StageMarker, ...]:
        return tuple(self._stage_markers)

    @property
    def policy_decisions(self) -> tuple[PolicyDecision, ...]:
        return tuple(self._policy_decisions)

    @property
    def metadata(self) -> Mapping[str, MetadataValue]:
        return MappingProxyType(self._metadata)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self._current_stage)

    def advance(self, stage: OrchestrationStage) -> None:
        """Move to stage; raises IllegalStageTransition if not allowed."""
        self._current_stage = require_transition(self._current_stage, stage)

    def fail(self) -> None:
        self.advance(OrchestrationStage.FAILED)

    def record_marker(self, marker: StageMarker) -> None:
        if self.is_terminal:
            raise IllegalStageTransition(
                self._current_stage.value, marker.stage.value
            )
        self._stage_markers.append(marker)

    def record_decision(self, decision: PolicyDecision) -> None:
        self._policy_decisions.append(decision)

    def set_metadata(self, key: str, value: MetadataValue) -> None:
        if not is_metadata_value(value):
            raise TypeError(
                f"Metadata value for '{key}' must be a scalar or tuple of "
                f"scalars, got {type(value).__name__}"
            )
        self._metadata[key] = value

    def snapshot(self, timeout_seconds: float | None = None) -> ContextView:
        return ContextView(
            correlation_id=self._correlation_id,
            idempotency_key=self.idempotency_key,
            operation_type=self._operation_type,
            user_id=self.user_id,
            initiated_at=self._initiated_at,
            current_stage=self._current_stage,
            metadata=MappingProxyType(dict(self._metadata)),
            timeout_seconds=timeout_seconds,
        )


# =============================================================================
# RESULT AND AUDIT
# =============================================================================


@dataclass(frozen=True)
class OrchestrationAuditSummary:
    """Compliance-evidence snapshot of one pipeline execution."""

    correlation_id: str
    operation_type: str
    initiated_by: str | None
    initiated_at: datetime
    completed_at: datetime
    outcome: str  # "Succeeded" or "Failed"
    completed_at_stage: str
    failure_code: str | None
    stages_completed: int  # Count of successful stage markers
    policy_decision_count: int
    has_idempotency_key: bool
    was_idempotent_replay: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "operation_type": self.operation_type,
            "initiated_by": self.initiated_by,
            "initiated_at": self.initiated_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "outcome": self.outcome,
            "completed_at_stage": self.completed_at_stage,
            "failure_code": self.failure_code,
            "stages_completed": self.stages_completed,
            "policy_decision_count": self.policy_decision_count,
            "has_idempotency_key": self.has_idempotency_key,
            "was_idempotent_replay": self.was_idempotent_replay,
        }


@dataclass(frozen=True)
class OrchestrationResult(Generic[PayloadT]):
    """
    Result of one pipeline execution.

    Invariant: success holds exactly when failure_category is NONE, which
    holds exactly when a payload is attached.
    """

    success: bool
    completed_at_stage: OrchestrationStage
    correlation_id: str
    audit_summary: OrchestrationAuditSummary
    completed_at: datetime
    total_duration_ms: int
    failure_category: OrchestrationFailureCategory = OrchestrationFailureCategory.NONE
    payload: PayloadT | None = None
    idempotency_key: str | None = None
    is_idempotent_replay: bool = False
    error_code: str | None = None
    error_message: str | None = None
    remediation_hint: str | None = None
    stage_markers: tuple[StageMarker, ...] = ()
    policy_decisions: tuple[PolicyDecision, ...] = ()

    def __post_init__(self) -> None:
        no_failure = self.failure_category is OrchestrationFailureCategory.NONE
        has_payload = self.payload is not None
        if not (self.success == no_failure == has_payload):
            raise ValueError(
                "Inconsistent result: success="
                f"{self.success}, failure_category={self.failure_category.value}, "
                f"payload={'set' if has_payload else 'None'}"
            )

    def as_replay(self) -> "OrchestrationResult[PayloadT]":
        """Copy of this result marked as served from the idempotency store."""
        return dataclasses.replace(
            self,
            is_idempotent_replay=True,
            audit_summary=dataclasses.replace(
                self.audit_summary, was_idempotent_replay=True
            ),
        )

    def retry_guidance(self, attempt: int, max_attempts: int) -> "RetryGuidance":
        """Retry guidance for the caller's next attempt."""
        # Lazy import to avoid circular dependency
        from tokenworkflow.domain.retry import retry_guidance

        return retry_guidance(self.failure_category, attempt, max_attempts)

    def to_dict(self) -> dict[str, Any]:
        """Deterministic, JSON-serialisable representation."""
        payload: Any = self.payload
        if hasattr(payload, "to_dict"):
            payload = payload.to_dict()
        elif dataclasses.is_dataclass(payload) and not isinstance(payload, type):
            payload = dataclasses.asdict(payload)
        return {
            "success": self.success,
            "completed_at_stage": self.completed_at_stage.value,
            "correlation_id": self.correlation_id,
            "idempotency_key": self.idempotency_key,
            "is_idempotent_replay": self.is_idempotent_replay,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "remediation_hint": self.remediation_hint,
            "failure_category": self.failure_category.value,
            "payload": payload,
            "stage_markers": [m.to_dict() for m in self.stage_markers],
            "policy_decisions": [d.to_dict() for d in self.policy_decisions],
            "audit_summary": self.audit_summary.to_dict(),
            "completed_at": self.completed_at.isoformat(),
            "total_duration_ms": self.total_duration_ms,
        }

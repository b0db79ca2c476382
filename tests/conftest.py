"""Shared pytest fixtures for tokenworkflow tests."""

import threading
import time
from datetime import datetime, timezone
from typing import Any

import pytest

from tokenworkflow.application.pipeline import OrchestrationPipeline
from tokenworkflow.domain.governance import WorkflowGovernanceConfig
from tokenworkflow.domain.interfaces import (
    ExecutorInterface,
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
    OrchestrationResult,
    PolicyDecision,
    PolicyOutcome,
    StageOutcome,
)
from tokenworkflow.infrastructure.persistence.memory import InMemoryIdempotencyStore
from tokenworkflow.infrastructure.telemetry import InMemoryTelemetrySink

OPERATION = "ERC20_MINTABLE_CREATE"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class StaticValidator(ValidatorInterface):
    """Returns a fixed outcome (or raises) and remembers the views it saw."""

    def __init__(
        self, outcome: StageOutcome | None = None, raises: Exception | None = None
    ):
        self.outcome = outcome or StageOutcome.passed("Request is valid")
        self.raises = raises
        self.views: list[ContextView] = []

    def validate(self, request: Any, context: ContextView) -> StageOutcome:
        self.views.append(context)
        if self.raises is not None:
            raise self.raises
        return self.outcome


class StaticPrecondition(PreconditionCheckInterface):
    def __init__(
        self,
        name: str = "KycCheck",
        outcome: PolicyOutcome = PolicyOutcome.PASS,
        reason: str = "ok",
        raises: Exception | None = None,
    ):
        self.name = name
        self.outcome = outcome
        self.reason = reason
        self.raises = raises
        self.calls = 0

    def check(self, request: Any, context: ContextView) -> PolicyDecision:
        self.calls += 1
        if self.raises is not None:
            raise self.raises
        return PolicyDecision(
            policy_name=self.name, outcome=self.outcome, reason=self.reason
        )


class CountingExecutor(ExecutorInterface):
    """Thread-safe executor counting side effects."""

    def __init__(
        self,
        payload: Any = "0xdeployed",
        raises: Exception | None = None,
        delay: float = 0.0,
    ):
        self.payload = payload
        self.raises = raises
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def execute(self, request: Any, context: ContextView) -> Any:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        return self.payload


class StaticVerifier(PostCommitVerifierInterface):
    def __init__(
        self, outcome: StageOutcome | None = None, raises: Exception | None = None
    ):
        self.outcome = outcome or StageOutcome.passed("Confirmed on chain")
        self.raises = raises
        self.payloads: list[Any] = []

    def verify(self, payload: Any, context: ContextView) -> StageOutcome:
        self.payloads.append(payload)
        if self.raises is not None:
            raise self.raises
        return self.outcome


class FailingSink(TelemetrySinkInterface):
    def emit(self, record: Any) -> None:
        raise ConnectionError("collector unreachable")


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def governance_config() -> WorkflowGovernanceConfig:
    """Fully governed configuration (the defaults)."""
    return WorkflowGovernanceConfig()


@pytest.fixture
def store() -> InMemoryIdempotencyStore:
    return InMemoryIdempotencyStore()


@pytest.fixture
def sink() -> InMemoryTelemetrySink:
    return InMemoryTelemetrySink()


@pytest.fixture
def make_pipeline(store, sink):
    """Factory building a pipeline over the shared store and sink."""

    def _make(
        config: WorkflowGovernanceConfig | None = None, **kwargs: Any
    ) -> OrchestrationPipeline:
        kwargs.setdefault("telemetry_sinks", [sink])
        return OrchestrationPipeline(
            config or WorkflowGovernanceConfig(), store, **kwargs
        )

    return _make


@pytest.fixture
def pipeline(make_pipeline) -> OrchestrationPipeline:
    return make_pipeline()


@pytest.fixture
def make_context():
    """Factory for fresh contexts of the default operation type."""

    def _make(
        idempotency_key: str | None = None,
        user_id: str | None = "user-1",
        correlation_id: str = "corr-001",
        operation_type: str = OPERATION,
    ) -> OrchestrationContext:
        return OrchestrationContext(
            correlation_id=correlation_id,
            operation_type=operation_type,
            idempotency_key=idempotency_key,
            user_id=user_id,
        )

    return _make


@pytest.fixture
def context(make_context) -> OrchestrationContext:
    return make_context()


@pytest.fixture
def validator() -> StaticValidator:
    return StaticValidator()


@pytest.fixture
def executor() -> CountingExecutor:
    return CountingExecutor()


@pytest.fixture
def sample_audit_summary() -> OrchestrationAuditSummary:
    """Audit summary of a successful execution."""
    started = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return OrchestrationAuditSummary(
        correlation_id="corr-001",
        operation_type=OPERATION,
        initiated_by="user-1",
        initiated_at=started,
        completed_at=started,
        outcome="Succeeded",
        completed_at_stage=OrchestrationStage.COMPLETED.value,
        failure_code=None,
        stages_completed=5,
        policy_decision_count=0,
        has_idempotency_key=True,
    )


@pytest.fixture
def sample_result(sample_audit_summary) -> OrchestrationResult:
    """Successful result as stored by the pipeline."""
    return OrchestrationResult(
        success=True,
        completed_at_stage=OrchestrationStage.COMPLETED,
        correlation_id="corr-001",
        audit_summary=sample_audit_summary,
        completed_at=sample_audit_summary.completed_at,
        total_duration_ms=5,
        payload={"asset_id": 42},
        idempotency_key="k",
    )

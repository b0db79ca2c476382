"""
OrchestrationPipeline: drives a token workflow through the five stages.

    Validate -> CheckPreconditions -> Execute -> VerifyPostCommit -> EmitTelemetry

Owns the OrchestrationContext for the duration of one call, applies the
governance flags, consults the idempotency store and always returns an
OrchestrationResult carrying an audit summary. Stage errors never escape as
exceptions.
"""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from tokenworkflow.application.log_sanitizer import sanitize_log_input
from tokenworkflow.application.stages import (
    run_emit_telemetry,
    run_execute,
    run_post_commit,
    run_preconditions,
    run_validate,
)
from tokenworkflow.domain.failures import ErrorCode, remediation_hint, resolve_failure
from tokenworkflow.domain.governance import (
    GovernanceDecision,
    WorkflowGovernanceConfig,
    evaluate_governance,
)
from tokenworkflow.domain.idempotency import ReservationStatus
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
    is_metadata_value,
    utc_now,
)
from tokenworkflow.domain.telemetry import TelemetryRecord

logger = logging.getLogger(__name__)

# Policy names used for soft-failure warnings
SOFT_POLICY_NAMES: dict[OrchestrationStage, str] = {
    OrchestrationStage.VALIDATE: "Validation",
    OrchestrationStage.CHECK_PRECONDITIONS: "Preconditions",
    OrchestrationStage.VERIFY_POST_COMMIT: "PostCommitVerification",
}
TELEMETRY_POLICY_NAME = "Telemetry"

# Cancellation is observed before these stages; Execute has its own check
# ahead of the point where the run counts as committed
CANCELLABLE_STAGES = frozenset(
    {
        OrchestrationStage.VALIDATE,
        OrchestrationStage.CHECK_PRECONDITIONS,
    }
)


class _StageAborted(Exception):
    """Internal signal carrying the outcome of an enforced stage failure."""

    def __init__(self, stage: OrchestrationStage, outcome: StageOutcome):
        super().__init__(outcome.message)
        self.stage = stage
        self.outcome = outcome


class OrchestrationPipeline:
    """
    Policy-driven orchestration engine.

    One instance serves many concurrent executions: the only state shared
    between calls is the injected idempotency store.
    """

    def __init__(
        self,
        config: WorkflowGovernanceConfig,
        idempotency_store: IdempotencyStoreInterface,
        telemetry_sinks: Sequence[TelemetrySinkInterface] = (),
        collaborator_timeout: float | None = None,
        in_flight_wait_seconds: float = 5.0,
    ):
        """
        Args:
            config: Immutable governance configuration loaded at startup
            idempotency_store: Store shared by all executions
            telemetry_sinks: Observability collaborators for EmitTelemetry
            collaborator_timeout: Seconds each collaborator call may take,
                exposed to collaborators as ContextView.timeout_seconds
            in_flight_wait_seconds: How long a duplicate request waits for the
                owner of its idempotency key before failing fast
        """
        self._config = config
        self._store = idempotency_store
        self._sinks = tuple(telemetry_sinks)
        self._timeout = collaborator_timeout
        self._in_flight_wait = in_flight_wait_seconds

    @property
    def config(self) -> WorkflowGovernanceConfig:
        return self._config

    def execute(
        self,
        context: OrchestrationContext,
        request: Any,
        *,
        validator: ValidatorInterface,
        executor: ExecutorInterface,
        precondition_checks: Sequence[PreconditionCheckInterface] = (),
        post_commit_verifier: PostCommitVerifierInterface | None = None,
        cancel_event: threading.Event | None = None,
    ) -> OrchestrationResult[Any]:
        """
        Execute a token workflow through the full pipeline.

        Args:
            context: Fresh context (NotStarted) built by the boundary layer
            request: Operation-specific request payload
            validator: Collaborator for the Validate stage
            executor: Collaborator for the Execute stage
            precondition_checks: Collaborators for CheckPreconditions
            post_commit_verifier: Optional collaborator for VerifyPostCommit
            cancel_event: Set by the caller to cancel; observed between stages
                up to Execute, never during the executor call

        Returns:
            OrchestrationResult, also stored under the idempotency key if any

        Raises:
            ValueError: If the context has already been used
        """
        if context.current_stage is not OrchestrationStage.NOT_STARTED:
            raise ValueError(
                f"Context {context.correlation_id} already used "
                f"(stage {context.current_stage.value})"
            )

        started = time.perf_counter()
        governance = evaluate_governance(
            self._config, context.user_id or context.correlation_id
        )
        context.set_metadata("governed", governance.governed)
        context.set_metadata("rollout_bucket", governance.bucket)
        context.set_metadata("policy_version", governance.policy_version)

        logger.info(
            "Orchestration pipeline started. OperationType=%s, CorrelationId=%s, "
            "IdempotencyKey=%s, Governed=%s",
            sanitize_log_input(context.operation_type),
            sanitize_log_input(context.correlation_id),
            sanitize_log_input(context.idempotency_key),
            governance.governed,
        )

        key = context.idempotency_key
        if key:
            early = self._claim_key(context, key, started)
            if early is not None:
                return early

        execute_entered = threading.Event()
        try:
            result = self._run_stages(
                context,
                request,
                governance,
                started,
                validator=validator,
                executor=executor,
                precondition_checks=precondition_checks,
                post_commit_verifier=post_commit_verifier,
                cancel_event=cancel_event,
                execute_entered=execute_entered,
            )
        except BaseException:
            if key:
                self._store.release(context.operation_type, key)
            raise

        if key:
            if self._is_cacheable(result, execute_entered.is_set()):
                self._store.put(context.operation_type, key, result)
            else:
                self._store.release(context.operation_type, key)
        return result

    # --- Idempotency ---

    def _claim_key(
        self, context: OrchestrationContext, key: str, started: float
    ) -> OrchestrationResult[Any] | None:
        """Claim the key; return a replay or rejection if this call must not run."""
        op = context.operation_type
        reservation = self._store.reserve(op, key)

        if reservation.status is ReservationStatus.IN_FLIGHT:
            logger.info(
                "Idempotency key in flight, waiting up to %.1fs. CorrelationId=%s",
                self._in_flight_wait,
                sanitize_log_input(context.correlation_id),
            )
            stored = self._store.wait_for(op, key, self._in_flight_wait)
            if stored is not None:
                return self._replay(context, stored)
            # Owner released the key or the wait timed out
            reservation = self._store.reserve(op, key)
            if reservation.status is ReservationStatus.IN_FLIGHT:
                return self._build_failure(
                    context,
                    context.current_stage,
                    ErrorCode.IDEMPOTENCY_KEY_IN_FLIGHT.value,
                    OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE,
                    "A request with the same idempotency key is still in progress.",
                    started,
                )

        if reservation.status is ReservationStatus.COMPLETED:
            if reservation.result is None:
                raise ValueError(
                    f"Idempotency store reported {op}/{key} completed without a result"
                )
            return self._replay(context, reservation.result)
        return None

    def _replay(
        self, context: OrchestrationContext, stored: OrchestrationResult[Any]
    ) -> OrchestrationResult[Any]:
        context.set_metadata("idempotent_replay", True)
        logger.info(
            "Idempotent replay. OperationType=%s, CorrelationId=%s, "
            "OriginalCorrelationId=%s",
            sanitize_log_input(context.operation_type),
            sanitize_log_input(context.correlation_id),
            sanitize_log_input(stored.correlation_id),
        )
        return stored.as_replay()

    @staticmethod
    def _is_cacheable(result: OrchestrationResult[Any], execute_entered: bool) -> bool:
        """Transient failures before Execute leave no side effect; let them re-run."""
        transient = OrchestrationFailureCategory.TRANSIENT_INFRASTRUCTURE_FAILURE
        return execute_entered or result.failure_category is not transient

    # --- Stage sequence ---

    def _run_stages(
        self,
        context: OrchestrationContext,
        request: Any,
        governance: GovernanceDecision,
        started: float,
        *,
        validator: ValidatorInterface,
        executor: ExecutorInterface,
        precondition_checks: Sequence[PreconditionCheckInterface],
        post_commit_verifier: PostCommitVerifierInterface | None,
        cancel_event: threading.Event | None,
        execute_entered: threading.Event,
    ) -> OrchestrationResult[Any]:
        enforced = {
            OrchestrationStage.VALIDATE: governance.enforce_validation,
            OrchestrationStage.CHECK_PRECONDITIONS: governance.enforce_preconditions,
            OrchestrationStage.EXECUTE: True,
            OrchestrationStage.VERIFY_POST_COMMIT: (
                governance.enforce_post_commit_verification
            ),
        }

        def step(
            stage: OrchestrationStage, action: Callable[[ContextView], StageOutcome]
        ) -> StageOutcome:
            if stage in CANCELLABLE_STAGES:
                self._check_cancelled(stage, cancel_event)
            outcome = self._run_stage(context, stage, action)
            if outcome.success:
                return outcome
            if enforced.get(stage, False):
                raise _StageAborted(stage, outcome)
            self._demote(context, stage, outcome)
            return outcome

        try:
            step(
                OrchestrationStage.VALIDATE,
                lambda view: run_validate(validator, request, view),
            )
            step(
                OrchestrationStage.CHECK_PRECONDITIONS,
                lambda view: run_preconditions(precondition_checks, request, view),
            )
            self._check_cancelled(OrchestrationStage.EXECUTE, cancel_event)
            execute_entered.set()
            executed = step(
                OrchestrationStage.EXECUTE,
                lambda view: run_execute(executor, request, view),
            )
        except _StageAborted as aborted:
            return self._abort(context, aborted.stage, aborted.outcome, started)

        # Execute has committed; remaining stages run regardless of cancellation
        payload = executed.payload
        try:
            step(
                OrchestrationStage.VERIFY_POST_COMMIT,
                lambda view: run_post_commit(post_commit_verifier, payload, view),
            )
        except _StageAborted as aborted:
            return self._abort(context, aborted.stage, aborted.outcome, started)

        telemetry = self._run_stage(
            context,
            OrchestrationStage.EMIT_TELEMETRY,
            lambda view: run_emit_telemetry(
                self._sinks, self._telemetry_record(context, governance, started)
            ),
        )
        if not telemetry.success:
            context.record_decision(
                PolicyDecision(
                    policy_name=TELEMETRY_POLICY_NAME,
                    outcome=PolicyOutcome.WARNING,
                    reason=telemetry.message or "Telemetry emission failed",
                )
            )

        context.advance(OrchestrationStage.COMPLETED)
        return self._build_success(context, payload, started)

    def _check_cancelled(
        self, stage: OrchestrationStage, cancel_event: threading.Event | None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _StageAborted(
                stage,
                StageOutcome.failed(
                    "Operation was cancelled.",
                    error_code=ErrorCode.OPERATION_CANCELLED.value,
                ),
            )

    def _run_stage(
        self,
        context: OrchestrationContext,
        stage: OrchestrationStage,
        action: Callable[[ContextView], StageOutcome],
    ) -> StageOutcome:
        """Advance, time, run and record one stage."""
        context.advance(stage)
        logger.debug(
            "Orchestration stage started. Stage=%s, CorrelationId=%s",
            stage.value,
            sanitize_log_input(context.correlation_id),
        )
        entered_at = utc_now()
        t0 = time.perf_counter()
        outcome = action(context.snapshot(self._timeout))
        duration_ms = int((time.perf_counter() - t0) * 1000)

        context.record_marker(
            StageMarker(
                stage=stage,
                timestamp=entered_at,
                success=outcome.success,
                message=outcome.message,
                duration_ms=duration_ms,
            )
        )
        for decision in outcome.policy_decisions:
            context.record_decision(decision)
        for meta_key, value in outcome.metadata:
            if is_metadata_value(value):
                context.set_metadata(meta_key, value)
            else:
                logger.warning(
                    "Dropping non-scalar metadata '%s' from stage %s",
                    sanitize_log_input(meta_key),
                    stage.value,
                )

        logger.debug(
            "Orchestration stage ended. Stage=%s, Success=%s, DurationMs=%d, "
            "CorrelationId=%s",
            stage.value,
            outcome.success,
            duration_ms,
            sanitize_log_input(context.correlation_id),
        )
        return outcome

    def _demote(
        self, context: OrchestrationContext, stage: OrchestrationStage, outcome: StageOutcome
    ) -> None:
        """Record a non-enforced stage failure as a warning and carry on."""
        policy_name = SOFT_POLICY_NAMES[stage]
        reason = outcome.message or f"{stage.value} failed"
        context.record_decision(
            PolicyDecision(
                policy_name=policy_name, outcome=PolicyOutcome.WARNING, reason=reason
            )
        )
        logger.warning(
            "Stage failure not enforced, continuing. Stage=%s, Policy=%s, "
            "CorrelationId=%s, Reason=%s",
            stage.value,
            policy_name,
            sanitize_log_input(context.correlation_id),
            sanitize_log_input(reason),
        )

    def _abort(
        self,
        context: OrchestrationContext,
        stage: OrchestrationStage,
        outcome: StageOutcome,
        started: float,
    ) -> OrchestrationResult[Any]:
        code, category = resolve_failure(stage, outcome.error_code, outcome.category)
        return self._build_failure(
            context,
            stage,
            code,
            category,
            outcome.message or f"{stage.value} failed",
            started,
        )

    # --- Result construction ---

    def _telemetry_record(
        self,
        context: OrchestrationContext,
        governance: GovernanceDecision,
        started: float,
    ) -> TelemetryRecord:
        return TelemetryRecord(
            correlation_id=context.correlation_id,
            operation_type=context.operation_type,
            user_id=context.user_id,
            idempotency_key=context.idempotency_key,
            governed=governance.governed,
            rollout_bucket=governance.bucket,
            policy_version=governance.policy_version,
            stage_markers=context.stage_markers,
            policy_decisions=context.policy_decisions,
            elapsed_ms=_elapsed_ms(started),
            emitted_at=utc_now(),
        )

    def _build_success(
        self, context: OrchestrationContext, payload: Any, started: float
    ) -> OrchestrationResult[Any]:
        completed_at = utc_now()
        duration_ms = _elapsed_ms(started)
        logger.info(
            "Orchestration pipeline succeeded. OperationType=%s, CorrelationId=%s, "
            "DurationMs=%d",
            sanitize_log_input(context.operation_type),
            sanitize_log_input(context.correlation_id),
            duration_ms,
        )
        return OrchestrationResult(
            success=True,
            completed_at_stage=OrchestrationStage.COMPLETED,
            correlation_id=context.correlation_id,
            idempotency_key=context.idempotency_key,
            payload=payload,
            stage_markers=context.stage_markers,
            policy_decisions=context.policy_decisions,
            audit_summary=build_audit_summary(
                context, OrchestrationStage.COMPLETED, None, completed_at
            ),
            completed_at=completed_at,
            total_duration_ms=duration_ms,
        )

    def _build_failure(
        self,
        context: OrchestrationContext,
        failed_stage: OrchestrationStage,
        error_code: str,
        category: OrchestrationFailureCategory,
        message: str,
        started: float,
    ) -> OrchestrationResult[Any]:
        context.fail()
        completed_at = utc_now()
        duration_ms = _elapsed_ms(started)
        logger.warning(
            "Orchestration pipeline failed. Stage=%s, ErrorCode=%s, Category=%s, "
            "CorrelationId=%s, DurationMs=%d",
            failed_stage.value,
            sanitize_log_input(error_code),
            category.value,
            sanitize_log_input(context.correlation_id),
            duration_ms,
        )
        return OrchestrationResult(
            success=False,
            completed_at_stage=OrchestrationStage.FAILED,
            correlation_id=context.correlation_id,
            idempotency_key=context.idempotency_key,
            error_code=error_code,
            error_message=message,
            remediation_hint=remediation_hint(category),
            failure_category=category,
            stage_markers=context.stage_markers,
            policy_decisions=context.policy_decisions,
            audit_summary=build_audit_summary(
                context, failed_stage, error_code, completed_at
            ),
            completed_at=completed_at,
            total_duration_ms=duration_ms,
        )


def build_audit_summary(
    context: OrchestrationContext,
    ended_at_stage: OrchestrationStage,
    failure_code: str | None,
    completed_at: datetime,
) -> OrchestrationAuditSummary:
    """
    Snapshot the context as compliance evidence.

    ended_at_stage is Completed on success and the failing stage otherwise,
    so the evidence names where the pipeline stopped.
    """
    return OrchestrationAuditSummary(
        correlation_id=context.correlation_id,
        operation_type=context.operation_type,
        initiated_by=context.user_id,
        initiated_at=context.initiated_at,
        completed_at=completed_at,
        outcome="Failed" if failure_code else "Succeeded",
        completed_at_stage=ended_at_stage.value,
        failure_code=failure_code,
        stages_completed=sum(1 for m in context.stage_markers if m.success),
        policy_decision_count=len(context.policy_decisions),
        has_idempotency_key=context.idempotency_key is not None,
        was_idempotent_replay=bool(context.metadata.get("idempotent_replay", False)),
    )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)

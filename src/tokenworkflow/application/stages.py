"""
Stage executors.

Each function wraps one collaborator call and turns whatever happens,
including exceptions, into a StageOutcome. The engine folds outcomes into
the context; nothing here touches the context directly.
"""

import logging
from collections.abc import Sequence
from typing import Any

from tokenworkflow.application.log_sanitizer import sanitize_log_input
from tokenworkflow.domain.exceptions import StageFailure
from tokenworkflow.domain.failures import ErrorCode, classify_exception
from tokenworkflow.domain.interfaces import (
    ExecutorInterface,
    PostCommitVerifierInterface,
    PreconditionCheckInterface,
    TelemetrySinkInterface,
    ValidatorInterface,
)
from tokenworkflow.domain.models import (
    ContextView,
    PolicyDecision,
    PolicyOutcome,
    StageOutcome,
)
from tokenworkflow.domain.telemetry import TelemetryRecord

logger = logging.getLogger(__name__)


def _failed_from_exception(exc: Exception, prefix: str = "") -> StageOutcome:
    category = exc.category if isinstance(exc, StageFailure) else None
    message = str(exc) or type(exc).__name__
    return StageOutcome.failed(
        f"{prefix}{message}", error_code=classify_exception(exc), category=category
    )


def _checked_outcome(outcome: Any, collaborator: object) -> StageOutcome:
    """Reject anything a collaborator returns that is not a StageOutcome."""
    if isinstance(outcome, StageOutcome):
        return outcome
    name = type(collaborator).__name__
    logger.error(
        "%s returned %s instead of a StageOutcome", name, type(outcome).__name__
    )
    return StageOutcome.failed(
        f"{name} returned {type(outcome).__name__} instead of a StageOutcome",
        error_code=ErrorCode.INTERNAL_ERROR.value,
    )


def run_validate(
    validator: ValidatorInterface, request: Any, context: ContextView
) -> StageOutcome:
    try:
        outcome = validator.validate(request, context)
    except Exception as e:
        return _failed_from_exception(e, "Validation error: ")
    return _checked_outcome(outcome, validator)


def run_preconditions(
    checks: Sequence[PreconditionCheckInterface],
    request: Any,
    context: ContextView,
) -> StageOutcome:
    """
    Evaluate every precondition dimension and aggregate.

    All checks run so the decision trail is complete; the stage fails if any
    dimension returned FAIL. The first failing dimension decides the error
    code.
    """
    decisions: list[PolicyDecision] = []
    first_failure: StageOutcome | None = None

    for check in checks:
        name = getattr(check, "name", type(check).__name__)
        try:
            decision = check.check(request, context)
            if decision.outcome is PolicyOutcome.FAIL and first_failure is None:
                first_failure = StageOutcome.failed(
                    f"{decision.policy_name}: {decision.reason}"
                )
        except Exception as e:
            decision = PolicyDecision(
                policy_name=name,
                outcome=PolicyOutcome.FAIL,
                reason=str(e) or type(e).__name__,
            )
            if first_failure is None:
                first_failure = _failed_from_exception(e, f"{name}: ")
        decisions.append(decision)

    if first_failure is None:
        return StageOutcome.passed(
            f"{len(decisions)} precondition(s) satisfied",
            policy_decisions=tuple(decisions),
        )
    return StageOutcome.failed(
        first_failure.message or "Precondition failed",
        error_code=first_failure.error_code,
        category=first_failure.category,
        policy_decisions=tuple(decisions),
    )


def run_execute(
    executor: ExecutorInterface, request: Any, context: ContextView
) -> StageOutcome:
    try:
        payload = executor.execute(request, context)
    except StageFailure as e:
        return _failed_from_exception(e, "Execution failed: ")
    except Exception as e:
        logger.exception(
            "Execute stage raised. OperationType=%s, CorrelationId=%s",
            sanitize_log_input(context.operation_type),
            sanitize_log_input(context.correlation_id),
        )
        return _failed_from_exception(e, "Execution failed: ")

    if payload is None:
        return StageOutcome.failed(
            "Executor returned no payload",
            error_code=ErrorCode.EXECUTOR_RETURNED_NO_PAYLOAD.value,
        )
    return StageOutcome.passed(payload=payload)


def run_post_commit(
    verifier: PostCommitVerifierInterface | None,
    payload: Any,
    context: ContextView,
) -> StageOutcome:
    if verifier is None:
        return StageOutcome.passed("No post-commit verifier configured")
    try:
        outcome = verifier.verify(payload, context)
    except Exception as e:
        return _failed_from_exception(e, "Post-commit verification error: ")
    return _checked_outcome(outcome, verifier)


def run_emit_telemetry(
    sinks: Sequence[TelemetrySinkInterface], record: TelemetryRecord
) -> StageOutcome:
    """Forward the record to every sink; a failing sink never fails the run."""
    failures: list[str] = []
    for sink in sinks:
        try:
            sink.emit(record)
        except Exception as e:
            logger.warning(
                "Telemetry sink %s failed. CorrelationId=%s: %s",
                type(sink).__name__,
                sanitize_log_input(record.correlation_id),
                sanitize_log_input(e),
            )
            failures.append(f"{type(sink).__name__}: {e}")

    if failures:
        return StageOutcome.failed("Telemetry sink failed: " + "; ".join(failures))
    return StageOutcome.passed(f"Telemetry emitted to {len(sinks)} sink(s)")

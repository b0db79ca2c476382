"""
Pipeline stage lifecycle.

The stage state machine is expressed as an explicit transition table rather
than by comparing enum ordinals. Every move the engine makes goes through
require_transition(), so an illegal move fails loudly at the point it is
attempted.
"""

from enum import Enum

from tokenworkflow.domain.exceptions import IllegalStageTransition


class OrchestrationStage(Enum):
    """Stage of a single pipeline execution."""

    NOT_STARTED = "NotStarted"
    VALIDATE = "Validate"
    CHECK_PRECONDITIONS = "CheckPreconditions"
    EXECUTE = "Execute"
    VERIFY_POST_COMMIT = "VerifyPostCommit"
    EMIT_TELEMETRY = "EmitTelemetry"
    COMPLETED = "Completed"
    FAILED = "Failed"  # Absorbing, reachable from any non-terminal stage


# The five executable stages, in execution order
PIPELINE_STAGES: tuple[OrchestrationStage, ...] = (
    OrchestrationStage.VALIDATE,
    OrchestrationStage.CHECK_PRECONDITIONS,
    OrchestrationStage.EXECUTE,
    OrchestrationStage.VERIFY_POST_COMMIT,
    OrchestrationStage.EMIT_TELEMETRY,
)

TERMINAL_STAGES: frozenset[OrchestrationStage] = frozenset(
    {OrchestrationStage.COMPLETED, OrchestrationStage.FAILED}
)

TRANSITIONS: dict[OrchestrationStage, frozenset[OrchestrationStage]] = {
    OrchestrationStage.NOT_STARTED: frozenset(
        {OrchestrationStage.VALIDATE, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.VALIDATE: frozenset(
        {OrchestrationStage.CHECK_PRECONDITIONS, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.CHECK_PRECONDITIONS: frozenset(
        {OrchestrationStage.EXECUTE, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.EXECUTE: frozenset(
        {OrchestrationStage.VERIFY_POST_COMMIT, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.VERIFY_POST_COMMIT: frozenset(
        {OrchestrationStage.EMIT_TELEMETRY, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.EMIT_TELEMETRY: frozenset(
        {OrchestrationStage.COMPLETED, OrchestrationStage.FAILED}
    ),
    OrchestrationStage.COMPLETED: frozenset(),
    OrchestrationStage.FAILED: frozenset(),
}


def is_terminal(stage: OrchestrationStage) -> bool:
    return stage in TERMINAL_STAGES


def can_transition(current: OrchestrationStage, target: OrchestrationStage) -> bool:
    """Whether the transition table allows moving from current to target."""
    return target in TRANSITIONS[current]


def require_transition(
    current: OrchestrationStage, target: OrchestrationStage
) -> OrchestrationStage:
    """
    Validate a stage transition.

    Args:
        current: Stage the execution is in
        target: Stage the execution wants to enter

    Returns:
        The target stage

    Raises:
        IllegalStageTransition: If the table does not allow the move
    """
    if not can_transition(current, target):
        raise IllegalStageTransition(current.value, target.value)
    return target

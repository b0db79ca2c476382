"""
Domain exceptions for the orchestration pipeline.

StageFailure and OperationCancelled are raised by collaborators and caught by
the engine, which turns them into failed results. IllegalStageTransition and
GovernanceConfigError signal programming or configuration errors and do
propagate.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tokenworkflow.domain.models import OrchestrationFailureCategory


class IllegalStageTransition(Exception):
    """
    Raised when a stage move is not in the transition table.

    This includes any attempt to record further stage markers once the
    execution reached Completed or Failed.
    """

    def __init__(self, current: str, target: str):
        """
        Args:
            current: Name of the stage the execution is in
            target: Name of the stage that was requested
        """
        super().__init__(f"Illegal stage transition: {current} -> {target}")
        self.current = current
        self.target = target


class StageFailure(Exception):
    """
    Raised by a collaborator to fail its stage with an explicit error code.

    The engine maps the code to a failure category unless one is given.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: "OrchestrationFailureCategory | None" = None,
    ):
        """
        Args:
            message: Human-readable reason, surfaced as the error message
            error_code: Code from the failure catalogue (e.g. "KYC_REQUIRED")
            category: Optional category overriding the code's default mapping
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category


class OperationCancelled(Exception):
    """Raised when the caller cancelled the execution between stages."""


class GovernanceConfigError(ValueError):
    """Raised when a governance configuration is invalid."""

"""
Domain interfaces (Ports) for the orchestration pipeline.

These abstract base classes are the capability interfaces callers inject:
one per stage collaborator, plus the telemetry sink and the idempotency
store. They have no external dependencies.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tokenworkflow.domain.idempotency import Reservation
    from tokenworkflow.domain.models import (
        ContextView,
        OrchestrationResult,
        PolicyDecision,
        StageOutcome,
    )
    from tokenworkflow.domain.telemetry import TelemetryRecord


class ValidatorInterface(ABC):
    """
    Port for the Validate stage.

    Validation is a deterministic schema/invariant check: the same request
    always yields the same outcome, and implementations perform no I/O.
    """

    @abstractmethod
    def validate(self, request: Any, context: "ContextView") -> "StageOutcome":
        """
        Validate a request.

        Args:
            request: Operation-specific request payload
            context: Read-only view of the execution context

        Returns:
            StageOutcome; failed outcomes may carry an error code
        """
        pass


class PreconditionCheckInterface(ABC):
    """
    Port for one dimension of the CheckPreconditions stage.

    Checks consult entitlement, KYC or compliance collaborators read-only and
    return one decision for their dimension. Any FAIL fails the stage;
    WARNING does not.
    """

    name: str = "Precondition"

    @abstractmethod
    def check(self, request: Any, context: "ContextView") -> "PolicyDecision":
        """
        Evaluate the precondition.

        Args:
            request: Operation-specific request payload
            context: Read-only view of the execution context

        Returns:
            PolicyDecision for this dimension

        Raises:
            StageFailure: To fail with an explicit error code (e.g. KYC_REQUIRED)
            TimeoutError: If the backing service did not answer in time
        """
        pass


class ExecutorInterface(ABC):
    """
    Port for the Execute stage.

    The only stage allowed side effects on external systems (token
    deployment, mutation). At-most-once per idempotency key is guaranteed by
    the pipeline through the idempotency store, not by the executor.
    """

    @abstractmethod
    def execute(self, request: Any, context: "ContextView") -> Any:
        """
        Perform the operation.

        Args:
            request: Operation-specific request payload
            context: Read-only view of the execution context

        Returns:
            The produced payload (must not be None)
        """
        pass


class PostCommitVerifierInterface(ABC):
    """
    Port for the VerifyPostCommit stage.

    Re-reads external state to confirm the Execute side effect landed. A
    failure here does not imply the side effect was rolled back.
    """

    @abstractmethod
    def verify(self, payload: Any, context: "ContextView") -> "StageOutcome":
        pass


class TelemetrySinkInterface(ABC):
    """Port for forwarding lifecycle telemetry to an observability backend."""

    @abstractmethod
    def emit(self, record: "TelemetryRecord") -> None:
        pass


class IdempotencyStoreInterface(ABC):
    """
    Port for idempotency persistence.

    Keys are scoped per (operation_type, idempotency_key). Implementations
    must support concurrent use, last-write-wins put(), and read-after-write
    consistency within one process.
    """

    @abstractmethod
    def get(
        self, operation_type: str, idempotency_key: str
    ) -> "OrchestrationResult[Any] | None":
        """
        Return the stored terminal result, or None.

        An in-flight reservation is never returned.
        """
        pass

    @abstractmethod
    def put(
        self,
        operation_type: str,
        idempotency_key: str,
        result: "OrchestrationResult[Any]",
    ) -> None:
        """Store a terminal result, replacing any reservation, and wake waiters."""
        pass

    @abstractmethod
    def reserve(self, operation_type: str, idempotency_key: str) -> "Reservation":
        """
        Atomically claim the key if absent.

        Returns:
            Reservation with status CLAIMED (caller now owns the key),
            IN_FLIGHT (another execution owns it) or COMPLETED (with result)
        """
        pass

    @abstractmethod
    def release(self, operation_type: str, idempotency_key: str) -> None:
        """Drop an in-flight reservation without storing a result."""
        pass

    @abstractmethod
    def wait_for(
        self, operation_type: str, idempotency_key: str, timeout: float
    ) -> "OrchestrationResult[Any] | None":
        """
        Block until a terminal result is stored or the reservation released.

        Args:
            operation_type: Operation scope
            idempotency_key: Caller key
            timeout: Maximum seconds to wait

        Returns:
            The stored result, or None on timeout or release
        """
        pass

"""Idempotency reservation models."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from tokenworkflow.domain.models import OrchestrationResult


class ReservationStatus(Enum):
    """Outcome of trying to claim an idempotency key."""

    CLAIMED = "claimed"  # Caller owns the key and must put() or release()
    IN_FLIGHT = "in_flight"  # Another execution owns the key
    COMPLETED = "completed"  # A terminal result is stored


@dataclass(frozen=True)
class Reservation:
    status: ReservationStatus
    result: OrchestrationResult[Any] | None = None  # Set when COMPLETED


def scoped_key(operation_type: str, idempotency_key: str) -> tuple[str, str]:
    """Keys are unique per (operation type, key) pair."""
    return (operation_type, idempotency_key)

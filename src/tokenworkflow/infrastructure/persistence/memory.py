"""
In-memory implementation of the idempotency store.

Useful for testing and single-process deployments.
"""

import threading
import time
from collections.abc import Callable
from typing import Any

from tokenworkflow.domain.idempotency import Reservation, ReservationStatus, scoped_key
from tokenworkflow.domain.interfaces import IdempotencyStoreInterface
from tokenworkflow.domain.models import OrchestrationResult

DEFAULT_TTL_SECONDS = 24 * 60 * 60

# Marks a key claimed by an execution that has not finished yet
_IN_FLIGHT = object()


class InMemoryIdempotencyStore(IdempotencyStoreInterface):
    """
    Thread-safe idempotency store guarded by a single Condition.

    Terminal results expire ttl_seconds after they were stored and are then
    treated as absent. In-flight reservations never expire; their owner must
    put() or release() them.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._clock = clock
        self._cond = threading.Condition()
        # scoped key -> (result or _IN_FLIGHT, stored_at)
        self._entries: dict[tuple[str, str], tuple[Any, float]] = {}

    def __len__(self) -> int:
        with self._cond:
            return sum(
                1
                for key in list(self._entries)
                if self._lookup(key) is not None
            )

    def _lookup(self, key: tuple[str, str]) -> Any:
        """Entry value for key, purging it if expired. Caller holds the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if value is not _IN_FLIGHT and self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def get(
        self, operation_type: str, idempotency_key: str
    ) -> OrchestrationResult[Any] | None:
        with self._cond:
            value = self._lookup(scoped_key(operation_type, idempotency_key))
            return None if value is _IN_FLIGHT else value

    def put(
        self,
        operation_type: str,
        idempotency_key: str,
        result: OrchestrationResult[Any],
    ) -> None:
        with self._cond:
            self._entries[scoped_key(operation_type, idempotency_key)] = (
                result,
                self._clock(),
            )
            self._cond.notify_all()

    def reserve(self, operation_type: str, idempotency_key: str) -> Reservation:
        key = scoped_key(operation_type, idempotency_key)
        with self._cond:
            value = self._lookup(key)
            if value is _IN_FLIGHT:
                return Reservation(ReservationStatus.IN_FLIGHT)
            if value is not None:
                return Reservation(ReservationStatus.COMPLETED, value)
            self._entries[key] = (_IN_FLIGHT, self._clock())
            return Reservation(ReservationStatus.CLAIMED)

    def release(self, operation_type: str, idempotency_key: str) -> None:
        key = scoped_key(operation_type, idempotency_key)
        with self._cond:
            entry = self._entries.get(key)
            if entry is not None and entry[0] is _IN_FLIGHT:
                del self._entries[key]
            self._cond.notify_all()

    def wait_for(
        self, operation_type: str, idempotency_key: str, timeout: float
    ) -> OrchestrationResult[Any] | None:
        key = scoped_key(operation_type, idempotency_key)
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                value = self._lookup(key)
                if value is None:
                    return None  # Released or never claimed
                if value is not _IN_FLIGHT:
                    return value
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)

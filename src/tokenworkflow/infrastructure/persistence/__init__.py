"""
Persistence adapters for the idempotency store.
"""

from tokenworkflow.infrastructure.persistence.memory import InMemoryIdempotencyStore

__all__ = ["InMemoryIdempotencyStore"]

"""
Infrastructure layer: adapters for the domain ports.
"""

from tokenworkflow.infrastructure.config import (
    governance_config_from_mapping,
    load_governance_config,
)
from tokenworkflow.infrastructure.persistence import InMemoryIdempotencyStore
from tokenworkflow.infrastructure.telemetry import (
    InMemoryTelemetrySink,
    JsonlTelemetrySink,
    LoggingTelemetrySink,
)

__all__ = [
    "InMemoryIdempotencyStore",
    "InMemoryTelemetrySink",
    "JsonlTelemetrySink",
    "LoggingTelemetrySink",
    "governance_config_from_mapping",
    "load_governance_config",
]

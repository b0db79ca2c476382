"""Telemetry record emitted by the EmitTelemetry stage."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tokenworkflow.domain.models import PolicyDecision, StageMarker


@dataclass(frozen=True)
class TelemetryRecord:
    """Lifecycle record of one execution, as seen at the EmitTelemetry stage.

    Carries the correlation id, the stage markers and policy decisions
    recorded so far, and the governance routing of the execution.
    """

    correlation_id: str
    operation_type: str
    user_id: str | None
    idempotency_key: str | None
    governed: bool
    rollout_bucket: int
    policy_version: str
    stage_markers: tuple[StageMarker, ...]
    policy_decisions: tuple[PolicyDecision, ...]
    elapsed_ms: int
    emitted_at: datetime

    @property
    def stages_completed(self) -> int:
        return sum(1 for m in self.stage_markers if m.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "operation_type": self.operation_type,
            "user_id": self.user_id,
            "idempotency_key": self.idempotency_key,
            "governed": self.governed,
            "rollout_bucket": self.rollout_bucket,
            "policy_version": self.policy_version,
            "stage_markers": [m.to_dict() for m in self.stage_markers],
            "policy_decisions": [d.to_dict() for d in self.policy_decisions],
            "elapsed_ms": self.elapsed_ms,
            "emitted_at": self.emitted_at.isoformat(),
        }

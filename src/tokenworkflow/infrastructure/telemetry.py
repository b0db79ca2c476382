"""Telemetry sink implementations."""

import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

from tokenworkflow.domain.interfaces import TelemetrySinkInterface
from tokenworkflow.domain.telemetry import TelemetryRecord

logger = logging.getLogger(__name__)


class InMemoryTelemetrySink(TelemetrySinkInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self.records: list[TelemetryRecord] = []

    def emit(self, record: TelemetryRecord) -> None:
        self.records.append(record)

    def for_correlation(self, correlation_id: str) -> list[TelemetryRecord]:
        return [r for r in self.records if r.correlation_id == correlation_id]


class JsonlTelemetrySink(TelemetrySinkInterface):
    """Filesystem implementation appending one JSON line per record."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)
        self.telemetry_dir = self.base_path / "telemetry"
        self.telemetry_dir.mkdir(parents=True, exist_ok=True)

    def _get_operation_file(self, operation_type: str) -> Path:
        # Percent-encoded, so each operation type maps to its own file
        return self.telemetry_dir / f"{quote(operation_type, safe='')}.jsonl"

    def emit(self, record: TelemetryRecord) -> None:
        path = self._get_operation_file(record.operation_type)
        with open(path, "a") as f:
            f.write(json.dumps(record.to_dict(), sort_keys=True) + "\n")

    def read_records(
        self, operation_type: str, correlation_id: str | None = None
    ) -> list[dict[str, Any]]:
        """
        Read records back for an operation type, oldest first.

        Args:
            operation_type: Operation whose file to read
            correlation_id: Optional filter

        Returns:
            Records as dictionaries, in write order
        """
        path = self._get_operation_file(operation_type)
        if not path.exists():
            return []
        records: list[dict[str, Any]] = []
        with open(path) as f:
            for line in f:
                if not line.strip():
                    continue
                data: dict[str, Any] = json.loads(line)
                if correlation_id and data.get("correlation_id") != correlation_id:
                    continue
                records.append(data)
        return records


class LoggingTelemetrySink(TelemetrySinkInterface):
    """Writes one structured INFO line per record."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger

    def emit(self, record: TelemetryRecord) -> None:
        stages = ",".join(
            f"{m.stage.value}:{'ok' if m.success else 'fail'}"
            for m in record.stage_markers
        )
        self._logger.info(
            "Workflow telemetry. OperationType=%s, CorrelationId=%s, Governed=%s, "
            "Bucket=%d, PolicyVersion=%s, Stages=[%s], Decisions=%d, ElapsedMs=%d",
            record.operation_type,
            record.correlation_id,
            record.governed,
            record.rollout_bucket,
            record.policy_version,
            stages,
            len(record.policy_decisions),
            record.elapsed_ms,
        )

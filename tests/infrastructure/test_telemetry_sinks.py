"""Tests for telemetry sink implementations."""

import dataclasses
import logging
from datetime import datetime, timezone

import pytest

from tokenworkflow.domain.lifecycle import OrchestrationStage
from tokenworkflow.domain.models import PolicyDecision, PolicyOutcome, StageMarker
from tokenworkflow.domain.telemetry import TelemetryRecord
from tokenworkflow.infrastructure.telemetry import (
    InMemoryTelemetrySink,
    JsonlTelemetrySink,
    LoggingTelemetrySink,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def record() -> TelemetryRecord:
    return TelemetryRecord(
        correlation_id="corr-001",
        operation_type="ERC20_MINTABLE_CREATE",
        user_id="user-1",
        idempotency_key="key-1",
        governed=True,
        rollout_bucket=17,
        policy_version="1.0.0",
        stage_markers=(
            StageMarker(OrchestrationStage.VALIDATE, T0, True, "ok", 2),
            StageMarker(OrchestrationStage.CHECK_PRECONDITIONS, T0, True, None, 1),
        ),
        policy_decisions=(
            PolicyDecision("Kyc", PolicyOutcome.PASS, "approved", decided_at=T0),
        ),
        elapsed_ms=9,
        emitted_at=T0,
    )


class TestInMemoryTelemetrySink:
    def test_collects_records(self, record):
        """Records are kept in emission order."""
        sink = InMemoryTelemetrySink()
        sink.emit(record)
        assert sink.records == [record]
        assert sink.for_correlation("corr-001") == [record]
        assert sink.for_correlation("other") == []


class TestJsonlTelemetrySink:
    def test_writes_one_line_per_record(self, tmp_path, record):
        """Each emit appends one JSON line to the operation file."""
        sink = JsonlTelemetrySink(tmp_path)
        sink.emit(record)
        sink.emit(record)

        path = tmp_path / "telemetry" / "ERC20_MINTABLE_CREATE.jsonl"
        assert len(path.read_text().splitlines()) == 2

    def test_read_records_back(self, tmp_path, record):
        """Written records read back with their stage markers and decisions."""
        sink = JsonlTelemetrySink(tmp_path)
        sink.emit(record)

        (data,) = sink.read_records("ERC20_MINTABLE_CREATE")
        assert data == record.to_dict()
        assert data["stage_markers"][0]["stage"] == "Validate"
        assert data["policy_decisions"][0]["outcome"] == "Pass"

    def test_filter_by_correlation(self, tmp_path, record):
        """read_records can filter on correlation id."""
        sink = JsonlTelemetrySink(tmp_path)
        sink.emit(record)
        assert sink.read_records("ERC20_MINTABLE_CREATE", "other") == []

    def test_unknown_operation_is_empty(self, tmp_path):
        """Reading an operation with no file yields no records."""
        assert JsonlTelemetrySink(tmp_path).read_records("NOTHING") == []

    def test_operation_name_is_made_file_safe(self, tmp_path, record):
        """Path separators in operation types do not escape the directory."""
        sink = JsonlTelemetrySink(tmp_path)
        unsafe = dataclasses.replace(record, operation_type="../evil")
        sink.emit(unsafe)
        assert [p.name for p in (tmp_path / "telemetry").iterdir()] == ["..%2Fevil.jsonl"]

    def test_similar_operation_names_use_separate_files(self, tmp_path, record):
        """Operation types differing only in punctuation are kept apart."""
        sink = JsonlTelemetrySink(tmp_path)
        sink.emit(dataclasses.replace(record, operation_type="ERC20.CREATE"))
        sink.emit(dataclasses.replace(record, operation_type="ERC20_CREATE"))
        sink.emit(dataclasses.replace(record, operation_type="ERC20_CREATE"))

        assert len(sink.read_records("ERC20.CREATE")) == 1
        assert len(sink.read_records("ERC20_CREATE")) == 2


class TestLoggingTelemetrySink:
    def test_logs_structured_line(self, record, caplog):
        """One INFO line summarises the record."""
        sink = LoggingTelemetrySink()
        with caplog.at_level(logging.INFO, logger="tokenworkflow.infrastructure.telemetry"):
            sink.emit(record)

        assert len(caplog.records) == 1
        message = caplog.records[0].getMessage()
        assert "CorrelationId=corr-001" in message
        assert "Validate:ok" in message

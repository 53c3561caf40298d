"""Tests for refinery/audit.py."""

import json
import logging
from pathlib import Path

from refinery.audit import (
    AuditRecord,
    JsonlAuditWriter,
    emit,
    failed_verdict_record,
    final_score_record,
    verdict_record,
)
from refinery.models import EvaluatorRole
from tests.conftest import make_clarity, make_verdict, scores


def test_emit_without_sink_is_noop():
    emit(None, AuditRecord(kind="x", started_at="t", duration_sec=0.0, status="completed"))


def test_emit_swallows_sink_errors(caplog):
    def broken(record):
        raise OSError("disk full")

    with caplog.at_level(logging.WARNING):
        emit(broken, AuditRecord(kind="tiebreaker", started_at="t", duration_sec=0.0, status="completed"))
    assert "disk full" in caplog.text


def test_verdict_record_payload():
    verdict = make_verdict(EvaluatorRole.ADVOCATE, scores(8.0, objectivity=6.0))
    record = verdict_record(verdict, "2026-01-01T00:00:00+00:00", 1.23456, retry_count=1)
    data = record.to_dict()
    assert data["kind"] == "evaluator_verdict"
    assert data["status"] == "completed"
    assert data["duration_sec"] == 1.235
    assert data["payload"]["role"] == "advocate"


def test_failed_verdict_record():
    record = failed_verdict_record("skeptic", "t", 0.5, 2, "[skeptic] timeout")
    assert record.status == "failed"
    assert record.error == "[skeptic] timeout"
    assert record.payload["role"] == "skeptic"


def test_final_score_record_payload():
    record = final_score_record(make_clarity(scores(8.0, accessibility=5.5)), "t", 3.0)
    assert record.payload["dimension_breakdown"]["accessibility"] == 5.5
    assert record.payload["consensus_method"] == "median"


def test_jsonl_writer_appends_lines(tmp_path: Path):
    path = tmp_path / "logs" / "audit.jsonl"
    writer = JsonlAuditWriter(path)
    writer(AuditRecord(kind="a", started_at="t", duration_sec=0.0, status="completed", payload={"n": 1}))
    writer(AuditRecord(kind="b", started_at="t", duration_sec=0.0, status="failed", error="boom"))

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["kind"] for line in lines] == ["a", "b"]
    assert lines[0]["payload"] == {"n": 1}
    assert lines[1]["error"] == "boom"

"""Structured execution records for an external audit-log sink.

The engine only emits records through an optional callback; storing them is
the caller's business. JsonlAuditWriter is the sink the CLI uses.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from refinery.models import (
    ClarityScore,
    DisagreementResult,
    DiscussionOutcome,
    EvaluatorVerdict,
    OrchestratorResult,
    ReconciliationResult,
    RefinementAttempt,
    RefinementResult,
    TiebreakerOutcome,
)

logger = logging.getLogger(__name__)

RecordCallback = Callable[["AuditRecord"], None]


@dataclass(frozen=True)
class AuditRecord:
    kind: str              # "evaluator_verdict", "disagreement_detection", ...
    started_at: str
    duration_sec: float
    status: str            # "completed" or "failed"
    payload: dict = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "started_at": self.started_at,
            "duration_sec": round(self.duration_sec, 3),
            "status": self.status,
            "error": self.error,
            "payload": self.payload,
        }


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def emit(on_record: RecordCallback | None, record: AuditRecord) -> None:
    """Hand a record to the sink. A failing sink never breaks scoring."""
    logger.debug("audit %s (%s) %.3fs", record.kind, record.status, record.duration_sec)
    if on_record is None:
        return
    try:
        on_record(record)
    except Exception as exc:
        logger.warning("Audit sink rejected %s record: %s", record.kind, exc)


def _dimension_map(scores) -> dict[str, float]:
    return {ds.dimension.value: ds.score for ds in scores}


def verdict_record(verdict: EvaluatorVerdict, started_at: str, duration_sec: float, retry_count: int) -> AuditRecord:
    return AuditRecord(
        kind="evaluator_verdict",
        started_at=started_at,
        duration_sec=duration_sec,
        status="completed",
        payload={
            "role": verdict.role.value,
            "overall_score": verdict.overall_score,
            "confidence": verdict.confidence,
            "dimension_scores": _dimension_map(verdict.dimension_scores),
            "issues": [
                {"dimension": i.dimension.value, "severity": i.severity.value, "description": i.description}
                for i in verdict.issues
            ],
            "critique": verdict.critique,
            "retry_count": retry_count,
        },
    )


def failed_verdict_record(role: str, started_at: str, duration_sec: float, retry_count: int, error: str) -> AuditRecord:
    return AuditRecord(
        kind="evaluator_verdict",
        started_at=started_at,
        duration_sec=duration_sec,
        status="failed",
        payload={"role": role, "retry_count": retry_count},
        error=error,
    )


def disagreement_record(result: DisagreementResult, stage: str) -> AuditRecord:
    return AuditRecord(
        kind="disagreement_detection",
        started_at=now_iso(),
        duration_sec=0.0,
        status="completed",
        payload={
            "stage": stage,
            "has_disagreement": result.has_disagreement,
            "disagreeing_dimensions": [d.value for d in result.disagreeing_dimensions],
            "max_spread": result.max_spread,
            "evaluator_positions": [
                {
                    "evaluator": p.evaluator.value,
                    "overall_score": p.overall_score,
                    "divergent_dimensions": {d.value: s for d, s in p.divergent_dimensions},
                }
                for p in result.evaluator_positions
            ],
        },
    )


def discussion_record(outcome: DiscussionOutcome, started_at: str, resolved: bool) -> AuditRecord:
    return AuditRecord(
        kind="discussion_round",
        started_at=started_at,
        duration_sec=outcome.duration_sec,
        status="completed",
        payload={
            "changes_count": outcome.changes_count,
            "summary": outcome.discussion_summary,
            "resolved_disagreement": resolved,
            "revised_verdicts": {
                v.role.value: _dimension_map(v.dimension_scores) for v in outcome.revised_verdicts
            },
        },
    )


def tiebreaker_record(outcome: TiebreakerOutcome, started_at: str, disputed: list[str]) -> AuditRecord:
    return AuditRecord(
        kind="tiebreaker",
        started_at=started_at,
        duration_sec=outcome.duration_sec,
        status="completed",
        payload={
            "arbiter_score": outcome.verdict.overall_score,
            "disputed_dimensions_resolved": disputed,
            "dimension_scores": _dimension_map(outcome.verdict.dimension_scores),
            "resolution_summary": outcome.resolution_summary,
        },
    )


def final_score_record(score: ClarityScore, started_at: str, duration_sec: float) -> AuditRecord:
    return AuditRecord(
        kind="final_consensus_score",
        started_at=started_at,
        duration_sec=duration_sec,
        status="completed",
        payload={
            "overall_score": score.overall_score,
            "consensus_method": score.consensus_method.value,
            "confidence": score.confidence,
            "dimension_breakdown": _dimension_map(score.dimension_breakdown),
            "has_disagreement": score.has_disagreement,
            "needs_human_review": score.needs_human_review,
            "review_reason": score.review_reason,
            "evaluators": [v.role.value for v in score.evaluator_verdicts],
            "issue_count": sum(len(v.issues) for v in score.evaluator_verdicts),
        },
    )


def orchestration_record(result: OrchestratorResult, started_at: str, dimension_scores: dict[str, float]) -> AuditRecord:
    return AuditRecord(
        kind="fixer_orchestration",
        started_at=started_at,
        duration_sec=result.total_processing_time_sec,
        status="completed",
        payload={
            "fixers_deployed": [d.value for d in result.fixers_deployed],
            "fixers_failed": [r.dimension.value for r in result.fixer_results if r.error],
            "total_edits_collected": len(result.all_suggested_edits),
            "dimension_scores": dimension_scores,
        },
    )


def reconciliation_record(result: ReconciliationResult, started_at: str, duration_sec: float) -> AuditRecord:
    return AuditRecord(
        kind="edit_reconciliation",
        started_at=started_at,
        duration_sec=duration_sec,
        status="completed",
        payload={
            "edits_applied": len(result.edits_applied),
            "edits_skipped": [
                {"section": s.edit.section, "original_text": s.edit.original_text, "reason": s.reason}
                for s in result.edits_skipped
            ],
        },
    )


def attempt_record(attempt: RefinementAttempt, started_at: str) -> AuditRecord:
    return AuditRecord(
        kind="refinement_attempt",
        started_at=started_at,
        duration_sec=attempt.processing_time_sec,
        status="completed",
        payload={
            "attempt_number": attempt.attempt_number,
            "fixers_deployed": [d.value for d in attempt.fixers_deployed],
            "edits_applied": len(attempt.edits_applied),
            "edits_skipped": len(attempt.edits_skipped),
            "score_before": attempt.score_before,
            "score_after": attempt.score_after,
            "dimension_changes": {
                d.value: {"before": c.before, "after": c.after} for d, c in attempt.dimension_changes.items()
            },
        },
    )


def summary_record(result: RefinementResult, started_at: str, initial_score: float) -> AuditRecord:
    return AuditRecord(
        kind="refinement_summary",
        started_at=started_at,
        duration_sec=result.total_processing_time_sec,
        status="completed",
        payload={
            "initial_score": initial_score,
            "final_score": result.final_score,
            "success": result.success,
            "attempts": len(result.attempts),
            "quality_warning": result.quality_warning,
            "warning_reason": result.warning_reason,
        },
    )


def failed_tiebreaker_record(started_at: str, duration_sec: float, disputed: list[str], error: str) -> AuditRecord:
    return AuditRecord(
        kind="tiebreaker",
        started_at=started_at,
        duration_sec=duration_sec,
        status="failed",
        payload={"disputed_dimensions": disputed},
        error=error,
    )


class JsonlAuditWriter:
    """Append audit records to a JSON-lines file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, record: AuditRecord) -> None:
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")

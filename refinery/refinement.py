"""Refinement loop: repair, reconcile and re-score until the quality gate passes."""

import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable

from config.config_loader import RefinementConfig
from refinery.audit import (
    RecordCallback,
    attempt_record,
    emit,
    now_iso,
    orchestration_record,
    reconciliation_record,
    summary_record,
)
from refinery.capabilities import Fixer
from refinery.errors import InvalidInputError, ScoringError
from refinery.fixers import orchestrate_fixes
from refinery.models import (
    ClarityScore,
    Dimension,
    DimensionChange,
    RefinementAttempt,
    RefinementResult,
    Source,
)
from refinery.reconcile import reconcile

logger = logging.getLogger(__name__)

ScoreFn = Callable[[str], Awaitable[ClarityScore]]


def validate_brief(brief: str) -> None:
    if not isinstance(brief, str) or not brief.strip():
        raise InvalidInputError("Brief is empty")


def validate_clarity(clarity: ClarityScore) -> None:
    """Reject a consensus result that is missing, repeats, or mis-ranges a dimension."""
    if not isinstance(clarity, ClarityScore):
        raise InvalidInputError(f"Expected a ClarityScore, got {type(clarity).__name__}")
    if not 0.0 <= clarity.overall_score <= 10.0:
        raise InvalidInputError(f"Overall score {clarity.overall_score} is outside 0-10")
    counts = Counter(ds.dimension for ds in clarity.dimension_breakdown)
    missing = [d.value for d in Dimension if counts[d] == 0]
    if missing:
        raise InvalidInputError(f"Consensus result is missing dimension(s): {', '.join(missing)}")
    duplicated = [d.value for d, n in counts.items() if n > 1]
    if duplicated:
        raise InvalidInputError(f"Consensus result repeats dimension(s): {', '.join(duplicated)}")
    for ds in clarity.dimension_breakdown:
        if not 0.0 <= ds.score <= 10.0:
            raise InvalidInputError(f"Score {ds.score} for {ds.dimension.value} is outside 0-10")


def warning_reason(final_score: float, attempts: list[RefinementAttempt], clarity: ClarityScore,
                   repair_threshold: float, stop_reason: str | None = None) -> str:
    """Explain a gate failure. Always carries the final score with one decimal."""
    if attempts:
        reason = f"Brief scored {final_score:.1f}/10 after {len(attempts)} refinement attempt(s)."
    else:
        reason = f"Brief scored {final_score:.1f}/10, no refinement attempts could be completed."
    if stop_reason:
        reason += f" {stop_reason}"
    lowest = sorted(
        (ds for ds in clarity.dimension_breakdown if ds.score < repair_threshold),
        key=lambda ds: ds.score,
    )[:3]
    if lowest:
        reason += " Lowest dimensions: " + ", ".join(f"{ds.dimension.value} ({ds.score:.1f})" for ds in lowest) + "."
    return reason


async def run_refinement_loop(
    initial_brief: str,
    initial_clarity: ClarityScore,
    score_fn: ScoreFn,
    fixers: dict[Dimension, Fixer],
    config: RefinementConfig,
    sources: list[Source] | tuple[Source, ...] | None = None,
    max_attempts: int | None = None,
    on_record: RecordCallback | None = None,
) -> RefinementResult:
    """Repair a brief until it clears config.quality_gate or the budget runs out.

    Each attempt repairs the weak dimensions of the current score, merges the
    edits, and re-scores the merged text. The merged text always becomes the
    current brief, even when the score dropped. A brief that already clears
    the gate is returned untouched with zero attempts.

    Raises:
        InvalidInputError: Empty brief, malformed consensus result, or max_attempts < 1.
    """
    budget = config.max_attempts if max_attempts is None else max_attempts
    validate_brief(initial_brief)
    validate_clarity(initial_clarity)
    if budget < 1:
        raise InvalidInputError(f"max_attempts must be at least 1, got {budget}")

    started_at = now_iso()
    start = time.monotonic()
    gate = config.quality_gate

    brief = initial_brief
    clarity = initial_clarity
    attempts: list[RefinementAttempt] = []

    def finish(success: bool, stop_reason: str | None = None) -> RefinementResult:
        result = RefinementResult(
            final_brief=brief,
            final_score=clarity.overall_score,
            success=success,
            attempts=tuple(attempts),
            total_processing_time_sec=time.monotonic() - start,
            quality_warning=not success,
            warning_reason=None if success else warning_reason(
                clarity.overall_score, attempts, clarity, config.repair_threshold, stop_reason
            ),
            final_clarity=clarity,
        )
        emit(on_record, summary_record(result, started_at, initial_clarity.overall_score))
        return result

    if clarity.overall_score >= gate:
        logger.info("Brief already at %.1f (gate %.1f), no refinement needed", clarity.overall_score, gate)
        return finish(True)

    logger.info("Starting refinement: score %.1f, gate %.1f, up to %d attempt(s)", clarity.overall_score, gate, budget)

    for attempt_number in range(1, budget + 1):
        attempt_started = now_iso()
        attempt_start = time.monotonic()

        orchestration = await orchestrate_fixes(
            brief, clarity, fixers, sources,
            repair_threshold=config.repair_threshold, retries=config.fixer_retries,
        )
        emit(
            on_record,
            orchestration_record(
                orchestration, attempt_started,
                {d.value: clarity.score_for(d) for d in orchestration.fixers_deployed},
            ),
        )
        if not orchestration.fixers_deployed:
            logger.warning("Attempt %d: no dimension below %.1f, ending refinement", attempt_number, config.repair_threshold)
            return finish(False, f"No dimension scored below {config.repair_threshold:.1f} to repair.")

        reconcile_start = time.monotonic()
        reconciliation = reconcile(brief, orchestration.all_suggested_edits)
        emit(on_record, reconciliation_record(reconciliation, attempt_started, time.monotonic() - reconcile_start))
        if not reconciliation.edits_applied:
            logger.warning("Attempt %d: no edits applied, ending refinement", attempt_number)
            return finish(False, f"Attempt {attempt_number} produced no applicable edits.")
        if not reconciliation.revised_brief.strip():
            logger.warning("Attempt %d: edits left the brief empty, keeping the previous version", attempt_number)
            return finish(False, f"Attempt {attempt_number} produced an empty brief.")

        try:
            rescored = await score_fn(reconciliation.revised_brief)
        except ScoringError as exc:
            logger.error("Attempt %d: re-scoring failed: %s", attempt_number, exc)
            return finish(False, f"Re-scoring failed on attempt {attempt_number}: {exc}")

        attempt = RefinementAttempt(
            attempt_number=attempt_number,
            fixers_deployed=orchestration.fixers_deployed,
            edits_applied=reconciliation.edits_applied,
            edits_skipped=reconciliation.edits_skipped,
            score_before=clarity.overall_score,
            score_after=rescored.overall_score,
            dimension_changes={
                d: DimensionChange(before=clarity.score_for(d), after=rescored.score_for(d)) for d in Dimension
            },
            processing_time_sec=time.monotonic() - attempt_start,
        )
        attempts.append(attempt)
        emit(on_record, attempt_record(attempt, attempt_started))
        logger.info(
            "Attempt %d: %.1f -> %.1f (%d applied, %d skipped)",
            attempt_number, attempt.score_before, attempt.score_after,
            len(attempt.edits_applied), len(attempt.edits_skipped),
        )

        brief = reconciliation.revised_brief
        clarity = rescored

        if clarity.overall_score >= gate:
            logger.info("Quality gate reached on attempt %d: %.1f", attempt_number, clarity.overall_score)
            return finish(True)

    logger.warning("Max attempts (%d) exhausted. Final score: %.1f/10", budget, clarity.overall_score)
    return finish(False)

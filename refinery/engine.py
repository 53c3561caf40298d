"""ConsensusEngine: the two public entry points, scoring and refinement."""

import logging
import time

from config.config_loader import RefinementConfig, ScoringConfig
from refinery.aggregation import aggregate_final
from refinery.audit import (
    RecordCallback,
    disagreement_record,
    discussion_record,
    emit,
    failed_tiebreaker_record,
    final_score_record,
    now_iso,
    tiebreaker_record,
)
from refinery.capabilities import CapabilityError, Evaluator, Fixer, check_fixer_table
from refinery.disagreement import detect_disagreement
from refinery.discussion import run_discussion_round
from refinery.models import (
    PANEL_ROLES,
    ClarityScore,
    Dimension,
    DisagreementResult,
    EvaluatorVerdict,
    RefinementResult,
    Source,
)
from refinery.panel import score_panel
from refinery.refinement import run_refinement_loop, validate_brief
from refinery.tiebreaker import run_tiebreaker

logger = logging.getLogger(__name__)


class ConsensusEngine:
    """Scores briefs with a 3-member panel and repairs them until they pass.

    Args:
        evaluator: Capability that produces verdicts for every role.
        fixers: One fixer per dimension.
        scoring: Panel, disagreement and review settings.
        refinement: Repair threshold, quality gate and attempt budget.
        on_record: Optional sink for structured audit records.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        fixers: dict[Dimension, Fixer],
        scoring: ScoringConfig | None = None,
        refinement: RefinementConfig | None = None,
        on_record: RecordCallback | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._fixers = check_fixer_table(fixers)
        self._scoring = scoring or ScoringConfig()
        self._refinement = refinement or RefinementConfig()
        self._on_record = on_record

    @property
    def quality_gate(self) -> float:
        return self._refinement.quality_gate

    async def score_with_consensus_panel(self, brief: str) -> ClarityScore:
        """Score a brief: panel, disagreement check, discussion, tiebreaker, aggregate.

        Raises:
            InvalidInputError: If the brief is empty.
            ScoringError: If too few evaluators responded to form a panel.
        """
        validate_brief(brief)
        started_at = now_iso()
        start = time.monotonic()
        tolerance = self._scoring.disagreement_tolerance

        verdicts, failures = await score_panel(brief, self._evaluator, self._scoring, self._on_record)
        degraded: list[str] = []
        if failures:
            degraded.append(
                f"Panel degraded to {len(verdicts)}/{len(PANEL_ROLES)} evaluators "
                f"({', '.join(failures)} failed)."
            )

        disagreement = detect_disagreement(verdicts, tolerance)
        emit(self._on_record, disagreement_record(disagreement, stage="initial"))

        discussion_occurred = False
        arbiter: EvaluatorVerdict | None = None

        if disagreement.has_disagreement:
            discussion_started = now_iso()
            outcome = await run_discussion_round(brief, verdicts, disagreement, self._evaluator)
            verdicts = list(outcome.revised_verdicts)
            discussion_occurred = True

            disagreement = detect_disagreement(verdicts, tolerance)
            emit(self._on_record, discussion_record(outcome, discussion_started, not disagreement.has_disagreement))
            emit(self._on_record, disagreement_record(disagreement, stage="post_discussion"))

            if disagreement.has_disagreement:
                arbiter = await self._arbitrate(brief, verdicts, disagreement, outcome.discussion_summary, degraded)

        score = aggregate_final(
            verdicts,
            disagreement,
            self._scoring,
            arbiter_verdict=arbiter,
            discussion_occurred=discussion_occurred,
            degraded_reason=" ".join(degraded) or None,
        )
        emit(self._on_record, final_score_record(score, started_at, time.monotonic() - start))
        return score

    async def _arbitrate(
        self,
        brief: str,
        verdicts: list[EvaluatorVerdict],
        disagreement: DisagreementResult,
        discussion_summary: str,
        degraded: list[str],
    ) -> EvaluatorVerdict | None:
        """Run the tiebreaker. On failure, note it in degraded and return None."""
        disputed = [d.value for d in disagreement.disagreeing_dimensions]
        started_at = now_iso()
        start = time.monotonic()
        try:
            outcome = await run_tiebreaker(brief, verdicts, disagreement, self._evaluator, discussion_summary)
        except CapabilityError as exc:
            error = str(exc)
        except Exception as exc:
            error = f"Unexpected error: {exc}"
        else:
            emit(self._on_record, tiebreaker_record(outcome, started_at, disputed))
            return outcome.verdict

        logger.warning("Arbiter failed, proceeding without tiebreaker: %s", error)
        emit(self._on_record, failed_tiebreaker_record(started_at, time.monotonic() - start, disputed, error))
        degraded.append(f"Arbiter unavailable; disagreement unresolved on {', '.join(disputed)}.")
        return None

    async def refine_until_passing(
        self,
        initial_brief: str,
        initial_consensus: ClarityScore,
        sources: list[Source] | tuple[Source, ...] | None = None,
        max_attempts: int | None = None,
    ) -> RefinementResult:
        """Repair a scored brief until it clears the quality gate or the budget runs out.

        max_attempts defaults to the configured budget (3).
        """
        return await run_refinement_loop(
            initial_brief,
            initial_consensus,
            self.score_with_consensus_panel,
            self._fixers,
            self._refinement,
            sources=sources,
            max_attempts=max_attempts,
            on_record=self._on_record,
        )

    async def run_quality_gate(
        self,
        brief: str,
        sources: list[Source] | tuple[Source, ...] | None = None,
        max_attempts: int | None = None,
    ) -> RefinementResult:
        """Score a brief and refine it only when the first score misses the gate."""
        start = time.monotonic()
        clarity = await self.score_with_consensus_panel(brief)
        if clarity.overall_score >= self.quality_gate:
            logger.info("Passed quality gate on first score: %.1f", clarity.overall_score)
            return RefinementResult(
                final_brief=brief,
                final_score=clarity.overall_score,
                success=True,
                attempts=(),
                total_processing_time_sec=time.monotonic() - start,
                final_clarity=clarity,
            )
        return await self.refine_until_passing(brief, clarity, sources, max_attempts)

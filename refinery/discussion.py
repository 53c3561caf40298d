"""Discussion round: evaluators revisit their verdicts after seeing each other's."""

import asyncio
import logging
import time

from refinery.capabilities import CapabilityError, Evaluator
from refinery.models import DisagreementResult, DiscussionOutcome, EvaluatorVerdict
from refinery.panel import validate_verdict

logger = logging.getLogger(__name__)


async def _discuss_one(
    evaluator: Evaluator,
    brief: str,
    own: EvaluatorVerdict,
    verdicts: list[EvaluatorVerdict],
    disagreement: DisagreementResult,
) -> EvaluatorVerdict:
    """Return the revised verdict, or the prior one if the call fails."""
    try:
        revised = await evaluator.discuss(brief, own.role, own, verdicts, disagreement)
        validate_verdict(revised, own.role)
    except CapabilityError as exc:
        logger.warning("Discussion failed for %s, keeping prior verdict: %s", own.role.value, exc)
        return own
    except Exception as exc:
        logger.warning("Discussion failed for %s, keeping prior verdict: Unexpected error: %s", own.role.value, exc)
        return own
    return revised


def _revision_lines(before: EvaluatorVerdict, after: EvaluatorVerdict) -> list[str]:
    lines: list[str] = []
    for ds in before.dimension_scores:
        new = after.score_for(ds.dimension)
        if new != ds.score:
            arrow = "↑" if new > ds.score else "↓"
            lines.append(f"{before.role.value} revised {ds.dimension.value}: {ds.score:.1f} {arrow} {new:.1f}")
    return lines


async def run_discussion_round(
    brief: str,
    verdicts: list[EvaluatorVerdict],
    disagreement: DisagreementResult,
    evaluator: Evaluator,
) -> DiscussionOutcome:
    """Give every panel member the full set of verdicts and let them revise.

    All members are re-invoked concurrently; results keep the input order.
    changes_count is the number of verdicts whose dimension scores moved.
    """
    logger.info(
        "Starting discussion round on %d disputed dimension(s)",
        len(disagreement.disagreeing_dimensions),
    )
    start = time.monotonic()

    revised = await asyncio.gather(
        *(_discuss_one(evaluator, brief, v, verdicts, disagreement) for v in verdicts)
    )

    changes_count = 0
    summary_lines: list[str] = []
    for before, after in zip(verdicts, revised):
        lines = _revision_lines(before, after)
        if lines:
            changes_count += 1
            summary_lines.extend(lines)

    if summary_lines:
        summary = "\n".join(summary_lines)
    else:
        summary = "All evaluators maintained their original positions."

    duration = time.monotonic() - start
    logger.info("Discussion round complete in %.2fs: %d verdict(s) changed", duration, changes_count)

    return DiscussionOutcome(
        revised_verdicts=tuple(revised),
        discussion_summary=summary,
        changes_count=changes_count,
        duration_sec=duration,
    )

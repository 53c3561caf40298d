"""Tiebreaker: one arbiter call that settles the dimensions discussion could not."""

import logging
import time

from refinery.capabilities import Evaluator
from refinery.models import DisagreementResult, EvaluatorRole, EvaluatorVerdict, TiebreakerOutcome
from refinery.panel import validate_verdict

logger = logging.getLogger(__name__)


async def run_tiebreaker(
    brief: str,
    verdicts: list[EvaluatorVerdict],
    disagreement: DisagreementResult,
    evaluator: Evaluator,
    discussion_summary: str,
) -> TiebreakerOutcome:
    """Invoke the arbiter once.

    Raises:
        CapabilityError: If the arbiter call fails or returns an unusable verdict.
            The caller decides how to proceed without it.
    """
    disputed = ", ".join(d.value for d in disagreement.disagreeing_dimensions)
    logger.info("Invoking arbiter on: %s", disputed)
    start = time.monotonic()

    verdict, resolution = await evaluator.arbitrate(brief, verdicts, disagreement, discussion_summary)
    validate_verdict(verdict, EvaluatorRole.ARBITER)

    duration = time.monotonic() - start
    logger.info("Arbiter scored %.1f in %.2fs", verdict.overall_score, duration)
    return TiebreakerOutcome(verdict=verdict, resolution_summary=resolution, duration_sec=duration)

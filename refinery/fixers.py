"""Fixer orchestration: one fixer per weak dimension, dispatched concurrently."""

import asyncio
import logging
import time

from refinery.capabilities import CapabilityError, Fixer
from refinery.models import (
    ClarityScore,
    Dimension,
    FixerRequest,
    FixerResult,
    OrchestratorResult,
    Source,
)

logger = logging.getLogger(__name__)

DEFAULT_REPAIR_THRESHOLD = 7.0


def weak_dimensions(clarity: ClarityScore, repair_threshold: float = DEFAULT_REPAIR_THRESHOLD) -> list[Dimension]:
    """Dimensions scoring strictly below the threshold, in enum order."""
    return [d for d in Dimension if clarity.score_for(d) < repair_threshold]


async def _call_fixer(fixer: Fixer, request: FixerRequest, retries: int) -> FixerResult:
    """Run one fixer, retrying on failure.

    Never raises. A fixer that keeps failing yields an empty FixerResult
    carrying the error.
    """
    start = time.monotonic()
    last_error = ""
    for attempt in range(retries + 1):
        try:
            result = await fixer.suggest_edits(request)
        except CapabilityError as exc:
            last_error = str(exc)
        except Exception as exc:
            last_error = f"Unexpected error: {exc}"
        else:
            logger.info(
                "Fixer %s suggested %d edit(s) in %.2fs",
                request.dimension.value, len(result.suggested_edits), result.processing_time_sec,
            )
            return result
        if attempt < retries:
            logger.warning(
                "Fixer %s failed (attempt %d/%d), retrying: %s",
                request.dimension.value, attempt + 1, retries + 1, last_error,
            )

    logger.warning("Fixer %s failed after %d attempt(s): %s", request.dimension.value, retries + 1, last_error)
    return FixerResult(
        dimension=request.dimension,
        suggested_edits=(),
        confidence=0.0,
        processing_time_sec=time.monotonic() - start,
        error=last_error,
    )


async def orchestrate_fixes(
    brief: str,
    clarity: ClarityScore,
    fixers: dict[Dimension, Fixer],
    sources: list[Source] | tuple[Source, ...] | None = None,
    repair_threshold: float = DEFAULT_REPAIR_THRESHOLD,
    retries: int = 2,
) -> OrchestratorResult:
    """Dispatch a fixer for every dimension below repair_threshold.

    A score exactly at the threshold is not repaired. With nothing to repair
    the result is empty and no fixer is called. Edits are concatenated in
    dispatch order, and the reported time covers the whole concurrent batch.
    """
    weak = weak_dimensions(clarity, repair_threshold)
    if not weak:
        logger.info("All dimensions at or above %.1f, no fixers needed", repair_threshold)
        return OrchestratorResult(
            fixers_deployed=(),
            fixer_results=(),
            all_suggested_edits=(),
            total_processing_time_sec=0.0,
        )

    logger.info(
        "Deploying %d fixer(s): %s",
        len(weak), ", ".join(f"{d.value} ({clarity.score_for(d):.1f})" for d in weak),
    )
    start = time.monotonic()
    source_tuple = tuple(sources or ())

    requests = [
        FixerRequest(
            brief=brief,
            dimension=dim,
            dimension_score=clarity.score_for(dim),
            critique=clarity.reasoning_for(dim),
            sources=source_tuple,
        )
        for dim in weak
    ]
    results = await asyncio.gather(*(_call_fixer(fixers[r.dimension], r, retries) for r in requests))

    all_edits = tuple(edit for result in results for edit in result.suggested_edits)
    total = time.monotonic() - start
    logger.info("Fixers complete in %.2fs: %d edit(s) collected", total, len(all_edits))

    return OrchestratorResult(
        fixers_deployed=tuple(weak),
        fixer_results=tuple(results),
        all_suggested_edits=all_edits,
        total_processing_time_sec=total,
    )

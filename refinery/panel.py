"""Consensus panel: concurrent evaluator dispatch with per-member retries."""

import asyncio
import logging
import random
import time
from collections import Counter

from config.config_loader import ScoringConfig
from refinery.audit import RecordCallback, emit, failed_verdict_record, now_iso, verdict_record
from refinery.capabilities import CapabilityError, Evaluator
from refinery.errors import ScoringError
from refinery.models import PANEL_ROLES, Dimension, EvaluatorRole, EvaluatorVerdict

logger = logging.getLogger(__name__)


def validate_verdict(verdict: EvaluatorVerdict, expected_role: EvaluatorRole | None = None) -> None:
    """Raise CapabilityError unless the verdict scores all 7 dimensions once, in range.

    When expected_role is given the verdict must also come back under that role.
    """
    if expected_role is not None and verdict.role != expected_role:
        raise CapabilityError(
            expected_role.value, f"Verdict returned for role {verdict.role.value}, expected {expected_role.value}"
        )
    counts = Counter(ds.dimension for ds in verdict.dimension_scores)
    missing = [d.value for d in Dimension if counts[d] == 0]
    duplicated = [d.value for d, n in counts.items() if n > 1]
    if missing or duplicated:
        raise CapabilityError(
            verdict.role.value,
            f"Verdict must score every dimension once (missing: {missing}, duplicated: {duplicated})",
        )
    out_of_range = [ds.dimension.value for ds in verdict.dimension_scores if not 0.0 <= ds.score <= 10.0]
    if out_of_range:
        raise CapabilityError(verdict.role.value, f"Scores outside 0-10 for: {', '.join(out_of_range)}")


def _retry_delay(attempt: int, config: ScoringConfig) -> float:
    delay = config.retry_base_delay_sec * (2 ** attempt) + random.uniform(0, 0.2) * config.retry_base_delay_sec
    return min(delay, config.retry_max_delay_sec)


async def _call_evaluator(
    evaluator: Evaluator,
    brief: str,
    role: EvaluatorRole,
    config: ScoringConfig,
    on_record: RecordCallback | None,
) -> EvaluatorVerdict | CapabilityError:
    """Evaluate with retries and exponential backoff.

    Never raises. Returns CapabilityError on permanent failure.
    """
    started_at = now_iso()
    start = time.monotonic()
    last_error = CapabilityError(role.value, "No attempts made")

    for attempt in range(config.evaluator_retries + 1):
        if attempt > 0:
            delay = _retry_delay(attempt - 1, config)
            logger.warning(
                "Retrying %s (attempt %d/%d) after %.2fs",
                role.value, attempt + 1, config.evaluator_retries + 1, delay,
            )
            await asyncio.sleep(delay)
        try:
            verdict = await evaluator.evaluate(brief, role)
            validate_verdict(verdict, role)
        except CapabilityError as exc:
            last_error = exc
        except Exception as exc:
            last_error = CapabilityError(role.value, f"Unexpected error: {exc}")
        else:
            duration = time.monotonic() - start
            logger.info(
                "%s scored %.1f (confidence %.2f) in %.2fs",
                role.value, verdict.overall_score, verdict.confidence, duration,
            )
            emit(on_record, verdict_record(verdict, started_at, duration, retry_count=attempt))
            return verdict
        logger.warning("Evaluator %s failed (attempt %d): %s", role.value, attempt + 1, last_error)

    emit(
        on_record,
        failed_verdict_record(
            role.value, started_at, time.monotonic() - start, config.evaluator_retries, str(last_error)
        ),
    )
    return last_error


async def score_panel(
    brief: str,
    evaluator: Evaluator,
    config: ScoringConfig,
    on_record: RecordCallback | None = None,
    roles: tuple[EvaluatorRole, ...] = PANEL_ROLES,
) -> tuple[list[EvaluatorVerdict], dict[str, str]]:
    """Run every panel role concurrently against the same brief.

    All members complete (or fail after their retries) before this returns.
    Verdicts come back in role order regardless of completion order.

    Returns:
        (verdicts, failures) where failures maps role name -> error message
        for members dropped from the panel.

    Raises:
        ScoringError: If fewer than config.min_panel_size members succeeded.
    """
    logger.info("Starting panel evaluation with %d evaluators", len(roles))
    start = time.monotonic()

    results = await asyncio.gather(
        *(_call_evaluator(evaluator, brief, role, config, on_record) for role in roles)
    )

    verdicts: list[EvaluatorVerdict] = []
    failures: dict[str, str] = {}
    for role, result in zip(roles, results):
        if isinstance(result, EvaluatorVerdict):
            verdicts.append(result)
        else:
            failures[role.value] = str(result)

    if len(verdicts) < config.min_panel_size:
        raise ScoringError(
            f"Only {len(verdicts)}/{len(roles)} evaluators responded; "
            f"need at least {config.min_panel_size} to score",
            failures,
        )

    if failures:
        logger.warning(
            "Panel degraded to %d/%d evaluators (failed: %s)",
            len(verdicts), len(roles), ", ".join(failures),
        )

    logger.info("Panel complete in %.2fs: %d/%d evaluators", time.monotonic() - start, len(verdicts), len(roles))
    return verdicts, failures

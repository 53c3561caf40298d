"""Per-dimension disagreement detection across panel verdicts."""

import logging

from refinery.models import (
    Dimension,
    DisagreementResult,
    EvaluatorPosition,
    EvaluatorVerdict,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 2.0


def detect_disagreement(
    verdicts: list[EvaluatorVerdict],
    tolerance: float = DEFAULT_TOLERANCE,
) -> DisagreementResult:
    """Flag dimensions whose score spread across evaluators exceeds tolerance.

    The spread of a dimension is max - min over the evaluators' scores, which
    is the maximum pairwise difference. A dimension disagrees when its spread
    is strictly greater than tolerance.
    """
    if len(verdicts) < 2:
        return DisagreementResult(
            has_disagreement=False,
            disagreeing_dimensions=(),
            max_spread=0.0,
            evaluator_positions=tuple(
                EvaluatorPosition(evaluator=v.role, overall_score=v.overall_score) for v in verdicts
            ),
        )

    disagreeing: list[Dimension] = []
    max_spread = 0.0

    for dimension in Dimension:
        scores = [v.score_for(dimension) for v in verdicts]
        spread = round(max(scores) - min(scores), 2)
        if spread > tolerance:
            disagreeing.append(dimension)
        max_spread = max(max_spread, spread)

    positions = tuple(
        EvaluatorPosition(
            evaluator=v.role,
            overall_score=v.overall_score,
            divergent_dimensions=tuple((d, v.score_for(d)) for d in disagreeing),
        )
        for v in verdicts
    )

    if disagreeing:
        logger.info(
            "Disagreement on %s (max spread %.1f, tolerance %.1f)",
            ", ".join(d.value for d in disagreeing),
            max_spread,
            tolerance,
        )

    return DisagreementResult(
        has_disagreement=bool(disagreeing),
        disagreeing_dimensions=tuple(disagreeing),
        max_spread=max_spread,
        evaluator_positions=positions,
    )


def describe_disagreement(result: DisagreementResult) -> str:
    """Render a disagreement result for an evaluator prompt."""
    if not result.has_disagreement:
        return "No dimension exceeds the disagreement tolerance."
    lines = [
        f"Disputed dimensions: {', '.join(d.value for d in result.disagreeing_dimensions)} "
        f"(max spread {result.max_spread:.1f})"
    ]
    for pos in result.evaluator_positions:
        scores = ", ".join(f"{d.value}={s:.1f}" for d, s in pos.divergent_dimensions)
        lines.append(f"- {pos.evaluator.value} (overall {pos.overall_score:.1f}): {scores}")
    return "\n".join(lines)

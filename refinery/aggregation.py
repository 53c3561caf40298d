"""Reduce panel verdicts into one ClarityScore, and prioritise their issues."""

import logging
import re
import statistics

from config.config_loader import ScoringConfig
from refinery.audit import now_iso
from refinery.dimensions import weight_of, weighted_overall
from refinery.models import (
    ClarityScore,
    ConsensusMethod,
    Dimension,
    DimensionScore,
    DisagreementResult,
    EditPriority,
    EvaluatorVerdict,
    Issue,
    PrioritizedIssue,
    Severity,
)

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.6
MAX_PRIORITIZED_ISSUES = 5

_SEVERITY_SCORE = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


# ── Dimension breakdown ───────────────────────────────────────────────────────

def _dimension_entry(
    dimension: Dimension,
    verdicts: list[EvaluatorVerdict],
    arbiter: EvaluatorVerdict | None,
    disputed: bool,
) -> DimensionScore:
    panel_scores = [v.score_for(dimension) for v in verdicts]
    reasonings: list[str] = []
    issues: list[str] = []
    contributors = list(verdicts) + ([arbiter] if arbiter is not None else [])
    for v in contributors:
        for ds in v.dimension_scores:
            if ds.dimension != dimension:
                continue
            tag = v.role.value
            if v is arbiter and disputed:
                tag += " - tiebreaker"
            reasonings.append(f"[{tag}] {ds.reasoning}")
            issues.extend(i for i in ds.issues if i not in issues)

    if disputed and arbiter is not None:
        score = arbiter.score_for(dimension)
    else:
        score = statistics.median(panel_scores)

    return DimensionScore(
        dimension=dimension,
        score=round(min(10.0, max(0.0, score)), 1),
        reasoning="\n\n".join(reasonings),
        issues=tuple(issues),
    )


def _consolidate_critiques(verdicts: list[EvaluatorVerdict], arbiter: EvaluatorVerdict | None) -> str:
    parts = [f"**{v.role.value}:** {v.critique}" for v in verdicts]
    if arbiter is not None:
        parts.append(f"**arbiter (tiebreaker):** {arbiter.critique}")
    return "\n\n---\n\n".join(parts)


def aggregate_final(
    verdicts: list[EvaluatorVerdict],
    disagreement: DisagreementResult,
    config: ScoringConfig,
    arbiter_verdict: EvaluatorVerdict | None = None,
    discussion_occurred: bool = False,
    degraded_reason: str | None = None,
) -> ClarityScore:
    """Combine panel verdicts into the canonical ClarityScore.

    Args:
        verdicts: Panel verdicts, post-discussion when a discussion ran.
        disagreement: The most recent disagreement check over those verdicts.
        arbiter_verdict: Binding scores for the disputed dimensions, if any.
        discussion_occurred: True when the panel went through a discussion round.
        degraded_reason: Set when the panel lost members or the arbiter failed.

    Each dimension takes the median of the panel scores, except disputed
    dimensions, which take the arbiter's score when one is available.
    """
    disputed = set(disagreement.disagreeing_dimensions) if arbiter_verdict is not None else set()
    breakdown = tuple(
        _dimension_entry(dim, verdicts, arbiter_verdict, dim in disputed) for dim in Dimension
    )
    overall = weighted_overall(breakdown)

    if arbiter_verdict is not None:
        method = ConsensusMethod.TIEBREAKER
    elif discussion_occurred:
        method = ConsensusMethod.POST_DISCUSSION
    else:
        method = ConsensusMethod.MEDIAN

    contributors = list(verdicts) + ([arbiter_verdict] if arbiter_verdict is not None else [])
    confidence = sum(v.confidence for v in contributors) / len(contributors)
    unresolved = discussion_occurred and disagreement.has_disagreement and arbiter_verdict is None
    if unresolved:
        confidence *= config.unresolved_confidence_discount
    confidence = round(confidence, 2)

    reasons: list[str] = []
    if arbiter_verdict is not None:
        reasons.append(
            f"Tiebreaker invoked due to {len(disagreement.disagreeing_dimensions)} disputed dimension(s): "
            f"{', '.join(d.value for d in disagreement.disagreeing_dimensions)}. "
            f"Max spread: {disagreement.max_spread:.1f}."
        )
    if degraded_reason:
        reasons.append(degraded_reason)
    if confidence < config.review_confidence:
        reasons.append(f"Low consensus confidence ({confidence:.2f}).")

    critique = _consolidate_critiques(verdicts, arbiter_verdict)
    prioritized, summary = aggregate_critiques(contributors)
    if prioritized:
        critique = f"{critique}\n\n---\n\n**Priorities:** {summary}"

    logger.info("Final score: %.1f (method: %s, confidence %.2f)", overall, method.value, confidence)

    return ClarityScore(
        overall_score=overall,
        dimension_breakdown=breakdown,
        critique=critique,
        confidence=confidence,
        evaluator_verdicts=tuple(contributors),
        consensus_method=method,
        has_disagreement=disagreement.has_disagreement or discussion_occurred,
        needs_human_review=bool(reasons),
        review_reason=" ".join(reasons) if reasons else None,
        prioritized_issues=tuple(prioritized),
        scored_at=now_iso(),
    )


# ── Critique aggregation ──────────────────────────────────────────────────────

def _normalize(text: str) -> str:
    return re.sub(r"[^\w\s]", "", text.lower()).strip()


def issues_similar(a: str, b: str) -> bool:
    """Word-level Jaccard similarity above SIMILARITY_THRESHOLD, or equal after normalising."""
    norm_a, norm_b = _normalize(a), _normalize(b)
    if norm_a == norm_b:
        return True
    words_a, words_b = set(norm_a.split()), set(norm_b.split())
    union = words_a | words_b
    if not union:
        return False
    return len(words_a & words_b) / len(union) > SIMILARITY_THRESHOLD


def _priority_from_score(score: float) -> EditPriority:
    if score >= 8:
        return EditPriority.CRITICAL
    if score >= 5:
        return EditPriority.HIGH
    if score >= 3:
        return EditPriority.MEDIUM
    return EditPriority.LOW


def _longest(values: list[str | None]) -> str | None:
    present = [v for v in values if v]
    return max(present, key=len) if present else None


class _IssueGroup:
    def __init__(self, issue: Issue) -> None:
        self.members = [issue]

    @property
    def lead(self) -> Issue:
        return self.members[0]

    @property
    def severity(self) -> Severity:
        return max((i.severity for i in self.members), key=_SEVERITY_SCORE.__getitem__)

    @property
    def impact(self) -> float:
        return max(_SEVERITY_SCORE[i.severity] * weight_of(i.dimension) for i in self.members)


def aggregate_critiques(verdicts: list[EvaluatorVerdict]) -> tuple[list[PrioritizedIssue], str]:
    """Merge every verdict's issues into at most 5 prioritised items plus a summary line.

    Similar issues within a dimension are merged and count as agreement.
    Priority weighs agreement, severity, whether a fix was suggested, and the
    dimension's weight.
    """
    if not verdicts:
        return [], "No evaluator verdicts available."
    all_issues = [i for v in verdicts for i in v.issues]
    if not all_issues:
        return [], "No issues flagged by evaluators."

    groups: list[_IssueGroup] = []
    for issue in all_issues:
        for group in groups:
            if group.lead.dimension == issue.dimension and issues_similar(group.lead.description, issue.description):
                group.members.append(issue)
                break
        else:
            groups.append(_IssueGroup(issue))

    scored: list[tuple[float, _IssueGroup]] = []
    for group in groups:
        agreement = len(group.members) / len(verdicts) * 4
        fix = _longest([i.suggested_fix for i in group.members])
        actionability = 2 if fix else 0
        scored.append((agreement + _SEVERITY_SCORE[group.severity] + actionability + group.impact * 5, group))

    scored.sort(key=lambda pair: pair[0], reverse=True)

    prioritized = [
        PrioritizedIssue(
            dimension=group.lead.dimension,
            issue=group.lead.description,
            suggested_fix=_longest([i.suggested_fix for i in group.members]) or "Review and address this concern",
            priority=_priority_from_score(score),
            quote=_longest([i.quote for i in group.members]),
            agreed_by_evaluators=len(group.members),
        )
        for score, group in scored[:MAX_PRIORITIZED_ISSUES]
    ]

    critical = sum(1 for p in prioritized if p.priority == EditPriority.CRITICAL)
    high = sum(1 for p in prioritized if p.priority == EditPriority.HIGH)
    medium = sum(1 for p in prioritized if p.priority == EditPriority.MEDIUM)
    if critical:
        summary = (
            f"{critical} critical issue(s) require immediate attention. "
            f"{high} high-priority and {medium} medium-priority issues also flagged."
        )
    elif high:
        summary = f"{high} high-priority issue(s) should be addressed. {medium} medium-priority issues also noted."
    else:
        summary = f"{len(prioritized)} issue(s) identified for refinement, mostly minor improvements."

    logger.debug("Aggregated %d issues into %d prioritized items", len(all_issues), len(prioritized))
    return prioritized, summary

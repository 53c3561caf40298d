"""Evaluator capability backed by LLM providers, one provider per role."""

import logging
import statistics

from config.config_loader import PromptsConfig
from refinery.audit import now_iso
from refinery.capabilities import CapabilityError, Evaluator
from refinery.dimensions import format_guidelines, weighted_overall
from refinery.disagreement import describe_disagreement
from refinery.models import (
    Dimension,
    DimensionScore,
    DisagreementResult,
    EvaluatorRole,
    EvaluatorVerdict,
)
from refinery.parsing import (
    clamp_confidence,
    clamp_score,
    extract_json,
    parse_dimension,
    parse_dimension_scores,
    parse_issues,
)
from refinery.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)

MAX_DISCUSSION_SHIFT = 2.0

ROLE_FOCUS: dict[EvaluatorRole, tuple[Dimension, ...]] = {
    EvaluatorRole.SKEPTIC: (
        Dimension.EVIDENCE_QUALITY,
        Dimension.FACTUAL_ACCURACY,
        Dimension.FIRST_PRINCIPLES_COHERENCE,
    ),
    EvaluatorRole.ADVOCATE: (
        Dimension.OBJECTIVITY,
        Dimension.BIAS_DETECTION,
        Dimension.INTERNAL_CONSISTENCY,
    ),
    EvaluatorRole.GENERALIST: (
        Dimension.ACCESSIBILITY,
        Dimension.INTERNAL_CONSISTENCY,
        Dimension.FIRST_PRINCIPLES_COHERENCE,
    ),
    EvaluatorRole.ARBITER: tuple(Dimension),
}


def _format_verdict(verdict: EvaluatorVerdict) -> str:
    lines = [f"Overall: {verdict.overall_score:.1f} (confidence {verdict.confidence:.2f})"]
    for ds in verdict.dimension_scores:
        lines.append(f"- {ds.dimension.value}: {ds.score:.1f}. {ds.reasoning}")
    if verdict.critique:
        lines.append(f"Critique: {verdict.critique}")
    return "\n".join(lines)


class LLMEvaluator(Evaluator):
    """Runs each role's prompt against the provider assigned to that role.

    Args:
        providers: Provider for every role that will be asked (panel roles and arbiter).
        prompts: Prompt templates and role personas from settings.yaml.
    """

    def __init__(self, providers: dict[EvaluatorRole, AIProvider], prompts: PromptsConfig) -> None:
        self._providers = providers
        self._prompts = prompts

    def _persona(self, role: EvaluatorRole) -> str:
        return self._prompts.personas.get(role.value, "").strip()

    async def _ask(self, role: EvaluatorRole, prompt: str, label: str) -> dict:
        provider = self._providers.get(role)
        if provider is None:
            raise CapabilityError(role.value, "No provider assigned to this role")
        try:
            response = await provider.generate(prompt, label, system=self._persona(role) or None, json_mode=True)
        except ProviderError as exc:
            raise CapabilityError(role.value, str(exc)) from exc
        return extract_json(response.content, role.value)

    async def evaluate(self, brief: str, role: EvaluatorRole) -> EvaluatorVerdict:
        prompt = self._prompts.evaluate.format(
            persona=self._persona(role),
            focus=", ".join(d.value for d in ROLE_FOCUS[role]),
            brief=brief,
            guidelines=format_guidelines(),
            dimension_names=", ".join(d.value for d in Dimension),
        )
        data = await self._ask(role, prompt, f"evaluate:{role.value}")

        scores = parse_dimension_scores(data.get("dimensions"), role.value)
        missing = [d.value for d in Dimension if d not in scores]
        if missing:
            raise CapabilityError(role.value, f"Reply did not score: {', '.join(missing)}")
        breakdown = tuple(scores[d] for d in Dimension)

        return EvaluatorVerdict(
            role=role,
            overall_score=weighted_overall(breakdown),
            confidence=clamp_confidence(data.get("confidence")),
            critique=str(data.get("overall_critique", "")),
            dimension_scores=breakdown,
            issues=parse_issues(data.get("issues")),
            evaluated_at=now_iso(),
        )

    async def discuss(
        self,
        brief: str,
        role: EvaluatorRole,
        own_verdict: EvaluatorVerdict,
        verdicts: list[EvaluatorVerdict],
        disagreement: DisagreementResult,
    ) -> EvaluatorVerdict:
        others = "\n\n".join(
            f"### {v.role.value}\n{_format_verdict(v)}" for v in verdicts if v.role != role
        )
        prompt = self._prompts.discuss.format(
            persona=self._persona(role),
            disagreement=describe_disagreement(disagreement),
            role=role.value,
            own_verdict=_format_verdict(own_verdict),
            other_verdicts=others,
            brief=brief,
        )
        data = await self._ask(role, prompt, f"discuss:{role.value}")

        revisions: dict[Dimension, tuple[float, str]] = {}
        for item in data.get("revised_dimensions") or []:
            if not isinstance(item, dict):
                continue
            dim = parse_dimension(item.get("dimension"))
            if dim is None or dim in revisions:
                continue
            revisions[dim] = (clamp_score(item.get("revised_score"), own_verdict.score_for(dim)),
                              str(item.get("reason_for_change", "")))

        updated: list[DimensionScore] = []
        for ds in own_verdict.dimension_scores:
            if ds.dimension not in revisions:
                updated.append(ds)
                continue
            new_score, reason = revisions[ds.dimension]
            new_score = min(ds.score + MAX_DISCUSSION_SHIFT, max(ds.score - MAX_DISCUSSION_SHIFT, new_score))
            updated.append(
                DimensionScore(
                    dimension=ds.dimension,
                    score=round(new_score, 1),
                    reasoning=f"{ds.reasoning}\n\n[revised] {reason}".strip(),
                    issues=ds.issues,
                )
            )

        reflection = str(data.get("overall_reflection", "")).strip()
        critique = f"{own_verdict.critique}\n\n[post-discussion] {reflection}" if reflection else own_verdict.critique
        breakdown = tuple(updated)

        return EvaluatorVerdict(
            role=role,
            overall_score=weighted_overall(breakdown),
            confidence=own_verdict.confidence,
            critique=critique,
            dimension_scores=breakdown,
            issues=own_verdict.issues,
            evaluated_at=now_iso(),
        )

    async def arbitrate(
        self,
        brief: str,
        verdicts: list[EvaluatorVerdict],
        disagreement: DisagreementResult,
        discussion_summary: str,
    ) -> tuple[EvaluatorVerdict, str]:
        role = EvaluatorRole.ARBITER
        disputed = list(disagreement.disagreeing_dimensions)
        prompt = self._prompts.arbitrate.format(
            persona=self._persona(role),
            disputed=", ".join(d.value for d in disputed),
            max_spread=f"{disagreement.max_spread:.1f}",
            brief=brief,
            positions="\n\n".join(f"### {v.role.value}\n{_format_verdict(v)}" for v in verdicts),
            discussion_summary=discussion_summary,
            guidelines=format_guidelines(disputed),
            dimension_names=", ".join(d.value for d in Dimension),
        )
        data = await self._ask(role, prompt, "arbitrate")

        scores: dict[Dimension, DimensionScore] = {}
        for item in data.get("disputed_dimension_evaluations") or []:
            if not isinstance(item, dict):
                continue
            dim = parse_dimension(item.get("dimension"))
            if dim is None or dim in scores:
                continue
            scores[dim] = DimensionScore(
                dimension=dim,
                score=clamp_score(item.get("definitive_score")),
                reasoning=f"{item.get('resolution', '')} Stronger argument: {item.get('stronger_argument', '')}".strip(),
            )
        for dim, ds in parse_dimension_scores(data.get("other_dimensions") or [], role.value).items():
            scores.setdefault(dim, ds)

        missing_disputed = [d.value for d in disputed if d not in scores]
        if missing_disputed:
            raise CapabilityError(role.value, f"Arbiter did not rule on: {', '.join(missing_disputed)}")

        for dim in Dimension:
            if dim not in scores:
                panel = [v.score_for(dim) for v in verdicts]
                scores[dim] = DimensionScore(
                    dimension=dim,
                    score=round(statistics.median(panel), 1) if panel else 5.0,
                    reasoning="Arbiter did not rescore; panel median kept.",
                )

        breakdown = tuple(scores[d] for d in Dimension)
        verdict = EvaluatorVerdict(
            role=role,
            overall_score=weighted_overall(breakdown),
            confidence=clamp_confidence(data.get("confidence")),
            critique=str(data.get("overall_critique", "")),
            dimension_scores=breakdown,
            evaluated_at=now_iso(),
        )
        return verdict, str(data.get("resolution_summary", ""))

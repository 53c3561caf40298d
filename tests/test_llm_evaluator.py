"""Tests for refinery/llm_evaluator.py, using MockProvider replies."""

import json

import pytest

from refinery.capabilities import CapabilityError
from refinery.disagreement import detect_disagreement
from refinery.llm_evaluator import LLMEvaluator
from refinery.models import Dimension, EvaluatorRole
from refinery.providers.base import ProviderError
from tests.conftest import MockProvider, make_verdict, scores


def _evaluation_reply(score=8.0, **overrides):
    return json.dumps({
        "dimensions": [
            {"dimension": d.value, "score": overrides.get(d.value, score), "reasoning": f"on {d.value}"}
            for d in Dimension
        ],
        "overall_critique": "Solid but dense.",
        "confidence": 0.85,
        "issues": [{"dimension": "accessibility", "severity": "high", "description": "Heavy jargon"}],
    })


@pytest.fixture
def split_panel():
    return [
        make_verdict(EvaluatorRole.SKEPTIC, scores(8.0, evidence_quality=4.0)),
        make_verdict(EvaluatorRole.ADVOCATE, scores(8.0)),
        make_verdict(EvaluatorRole.GENERALIST, scores(8.0)),
    ]


async def test_evaluate_builds_verdict(sample_prompts_config):
    provider = MockProvider("claude", f"```json\n{_evaluation_reply(accessibility=6.0)}\n```")
    evaluator = LLMEvaluator({EvaluatorRole.SKEPTIC: provider}, sample_prompts_config)

    verdict = await evaluator.evaluate("A brief.", EvaluatorRole.SKEPTIC)

    assert verdict.role == EvaluatorRole.SKEPTIC
    assert verdict.score_for(Dimension.ACCESSIBILITY) == 6.0
    assert verdict.overall_score == 7.7
    assert verdict.confidence == 0.85
    assert verdict.critique == "Solid but dense."
    assert verdict.issues[0].description == "Heavy jargon"

    call = provider.generate.await_args
    assert "A brief." in call.args[0]
    assert "evidence_quality, factual_accuracy" in call.args[0]
    assert call.args[1] == "evaluate:skeptic"
    assert call.kwargs["system"] == "You are The Skeptic."
    assert call.kwargs["json_mode"] is True


async def test_evaluate_missing_dimension_raises(sample_prompts_config):
    reply = json.loads(_evaluation_reply())
    reply["dimensions"] = reply["dimensions"][:-1]
    provider = MockProvider("claude", json.dumps(reply))
    evaluator = LLMEvaluator({EvaluatorRole.ADVOCATE: provider}, sample_prompts_config)
    with pytest.raises(CapabilityError, match="bias_detection"):
        await evaluator.evaluate("A brief.", EvaluatorRole.ADVOCATE)


async def test_provider_error_becomes_capability_error(sample_prompts_config):
    provider = MockProvider("openai")
    provider.generate.side_effect = ProviderError("openai", "rate limited")
    evaluator = LLMEvaluator({EvaluatorRole.ADVOCATE: provider}, sample_prompts_config)
    with pytest.raises(CapabilityError, match="rate limited"):
        await evaluator.evaluate("A brief.", EvaluatorRole.ADVOCATE)


async def test_unassigned_role_raises(sample_prompts_config):
    evaluator = LLMEvaluator({}, sample_prompts_config)
    with pytest.raises(CapabilityError, match="No provider"):
        await evaluator.evaluate("A brief.", EvaluatorRole.GENERALIST)


async def test_discuss_clamps_shift(sample_prompts_config, split_panel):
    reply = json.dumps({
        "revised_dimensions": [
            {"dimension": "evidence_quality", "revised_score": 9.0, "reason_for_change": "Advocate cited the audit"},
        ],
        "overall_reflection": "Persuaded in part.",
    })
    provider = MockProvider("claude", reply)
    evaluator = LLMEvaluator({EvaluatorRole.SKEPTIC: provider}, sample_prompts_config)

    revised = await evaluator.discuss(
        "A brief.", EvaluatorRole.SKEPTIC, split_panel[0], split_panel, detect_disagreement(split_panel)
    )

    assert revised.score_for(Dimension.EVIDENCE_QUALITY) == 6.0
    assert revised.score_for(Dimension.ACCESSIBILITY) == 8.0
    assert "[revised] Advocate cited the audit" in revised.dimension_scores[2].reasoning
    assert "[post-discussion] Persuaded in part." in revised.critique
    prompt = provider.generate.await_args.args[0]
    assert "### advocate" in prompt
    assert "### skeptic" not in prompt


async def test_discuss_without_revisions_keeps_scores(sample_prompts_config, split_panel):
    provider = MockProvider("claude", '{"revised_dimensions": []}')
    evaluator = LLMEvaluator({EvaluatorRole.SKEPTIC: provider}, sample_prompts_config)
    revised = await evaluator.discuss(
        "A brief.", EvaluatorRole.SKEPTIC, split_panel[0], split_panel, detect_disagreement(split_panel)
    )
    assert revised.dimension_scores == split_panel[0].dimension_scores


async def test_arbitrate_rules_on_disputed_and_keeps_median(sample_prompts_config, split_panel):
    reply = json.dumps({
        "disputed_dimension_evaluations": [
            {"dimension": "evidence_quality", "definitive_score": 6.5, "resolution": "Sources are partial.",
             "stronger_argument": "skeptic"},
        ],
        "other_dimensions": [{"dimension": "objectivity", "score": 7.0, "reasoning": "slightly slanted"}],
        "overall_critique": "Mostly sound.",
        "confidence": 0.9,
        "resolution_summary": "Sided with the skeptic on sourcing.",
    })
    provider = MockProvider("claude", reply)
    evaluator = LLMEvaluator({EvaluatorRole.ARBITER: provider}, sample_prompts_config)

    verdict, summary = await evaluator.arbitrate("A brief.", split_panel, detect_disagreement(split_panel), "")

    assert verdict.role == EvaluatorRole.ARBITER
    assert verdict.score_for(Dimension.EVIDENCE_QUALITY) == 6.5
    assert verdict.score_for(Dimension.OBJECTIVITY) == 7.0
    assert verdict.score_for(Dimension.ACCESSIBILITY) == 8.0
    assert summary == "Sided with the skeptic on sourcing."
    assert provider.generate.await_args.kwargs["system"] == "You are The Arbiter."


async def test_arbitrate_must_rule_on_every_disputed_dimension(sample_prompts_config, split_panel):
    provider = MockProvider("claude", '{"disputed_dimension_evaluations": []}')
    evaluator = LLMEvaluator({EvaluatorRole.ARBITER: provider}, sample_prompts_config)
    with pytest.raises(CapabilityError, match="did not rule on: evidence_quality"):
        await evaluator.arbitrate("A brief.", split_panel, detect_disagreement(split_panel), "")

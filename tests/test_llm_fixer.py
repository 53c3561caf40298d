"""Tests for refinery/llm_fixer.py."""

import json

import pytest

from refinery.capabilities import CapabilityError
from refinery.llm_fixer import MAX_EDITS_PER_FIXER, LLMFixer, build_fixers, format_sources
from refinery.models import Dimension, FixerRequest, Source
from refinery.providers.base import ProviderError
from tests.conftest import MockProvider


def _request(**kwargs):
    defaults = dict(brief="The brief.", dimension=Dimension.ACCESSIBILITY, dimension_score=5.5, critique="Too dense")
    defaults.update(kwargs)
    return FixerRequest(**defaults)


def _edit(n):
    return {"section": "body", "original_text": f"old {n}", "suggested_text": f"new {n}", "rationale": "simpler"}


async def test_suggest_edits_parses_reply(sample_prompts_config):
    provider = MockProvider("claude", json.dumps({"suggested_edits": [_edit(1)], "confidence": 0.75}))
    fixer = LLMFixer(Dimension.ACCESSIBILITY, provider, sample_prompts_config)

    result = await fixer.suggest_edits(_request())

    assert result.dimension == Dimension.ACCESSIBILITY
    assert result.suggested_edits[0].original_text == "old 1"
    assert result.confidence == 0.75
    assert result.error is None
    prompt, label = provider.generate.await_args.args
    assert label == "fix:accessibility"
    assert provider.generate.await_args.kwargs == {"json_mode": True}
    assert "improving readability" in prompt
    assert "5.5 accessibility" in prompt
    assert "Too dense" in prompt
    assert "No sources provided." in prompt


async def test_edits_capped(sample_prompts_config):
    provider = MockProvider("claude", json.dumps({"suggested_edits": [_edit(n) for n in range(8)]}))
    result = await LLMFixer(Dimension.OBJECTIVITY, provider, sample_prompts_config).suggest_edits(
        _request(dimension=Dimension.OBJECTIVITY)
    )
    assert len(result.suggested_edits) == MAX_EDITS_PER_FIXER


async def test_provider_failure_raises_capability_error(sample_prompts_config):
    provider = MockProvider("claude")
    provider.generate.side_effect = ProviderError("claude", "timeout")
    with pytest.raises(CapabilityError, match=r"\[fixer:accessibility\]"):
        await LLMFixer(Dimension.ACCESSIBILITY, provider, sample_prompts_config).suggest_edits(_request())


async def test_non_json_reply_raises(sample_prompts_config):
    provider = MockProvider("claude", "I would simplify the second paragraph.")
    with pytest.raises(CapabilityError, match="No JSON"):
        await LLMFixer(Dimension.ACCESSIBILITY, provider, sample_prompts_config).suggest_edits(_request())


def test_format_sources_numbers_and_truncates():
    text = format_sources((
        Source(url="https://a.example", title="A", content="x" * 5000),
        Source(url="https://b.example", title="B", content="short"),
    ))
    assert text.startswith("[1] A (https://a.example)")
    assert "[2] B (https://b.example)\nshort" in text
    assert "x" * 2001 not in text


def test_build_fixers_covers_every_dimension(mock_provider, sample_prompts_config):
    fixers = build_fixers(mock_provider, sample_prompts_config)
    assert set(fixers) == set(Dimension)
    assert all(f.dimension == d for d, f in fixers.items())

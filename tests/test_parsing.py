"""Tests for refinery/parsing.py."""

import pytest

from refinery.capabilities import CapabilityError
from refinery.models import Dimension, EditPriority, Severity
from refinery.parsing import (
    clamp_confidence,
    clamp_score,
    extract_json,
    parse_dimension_scores,
    parse_edits,
    parse_issues,
)


def test_extract_plain_json():
    assert extract_json('{"a": 1}', "evaluator") == {"a": 1}


def test_extract_fenced_json_with_prose():
    raw = 'Here is my verdict:\n```json\n{"overall": 7}\n```\nThanks.'
    assert extract_json(raw, "evaluator") == {"overall": 7}


def test_extract_bare_json_inside_prose():
    assert extract_json('Sure. {"x": {"y": 2}} Done.', "fixer") == {"x": {"y": 2}}


def test_extract_no_json_raises():
    with pytest.raises(CapabilityError, match=r"\[fixer\] No JSON object"):
        extract_json("I cannot help with that.", "fixer")


def test_extract_invalid_json_raises():
    with pytest.raises(CapabilityError, match="Invalid JSON"):
        extract_json("{not: valid}", "evaluator")


@pytest.mark.parametrize("value, expected", [(7, 7.0), ("6.56", 6.6), (12, 10.0), (-3, 0.0), (None, 5.0), ("n/a", 5.0)])
def test_clamp_score(value, expected):
    assert clamp_score(value) == expected


def test_clamp_confidence():
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence("0.3") == 0.3
    assert clamp_confidence(None) == 0.5


def test_parse_dimension_scores_first_entry_wins():
    items = [
        {"dimension": "Accessibility", "score": 6, "reasoning": "dense", "issues": ["jargon"]},
        {"dimension": "accessibility", "score": 9},
        {"dimension": "vibes", "score": 3},
        "not a dict",
    ]
    parsed = parse_dimension_scores(items, "evaluator")
    assert list(parsed) == [Dimension.ACCESSIBILITY]
    assert parsed[Dimension.ACCESSIBILITY].score == 6.0
    assert parsed[Dimension.ACCESSIBILITY].issues == ("jargon",)


def test_parse_dimension_scores_requires_list():
    with pytest.raises(CapabilityError):
        parse_dimension_scores({"accessibility": 6}, "evaluator")


def test_parse_issues_defaults_and_filters():
    issues = parse_issues([
        {"dimension": "objectivity", "severity": "HIGH", "description": "Loaded language", "quote": "disastrous"},
        {"dimension": "objectivity", "severity": "extreme", "description": "One-sided"},
        {"dimension": "objectivity", "description": ""},
        {"dimension": "unknown", "description": "ignored"},
    ])
    assert len(issues) == 2
    assert issues[0].severity == Severity.HIGH
    assert issues[0].quote == "disastrous"
    assert issues[1].severity == Severity.MEDIUM
    assert issues[1].suggested_fix is None
    assert parse_issues(None) == ()


def test_parse_edits_drops_incomplete_entries():
    edits = parse_edits([
        {"section": "intro", "original_text": "a", "suggested_text": "b", "rationale": "r", "priority": "high"},
        {"original_text": "a"},
        {"original_text": None, "suggested_text": "b"},
        {"original_text": "c", "suggested_text": "d", "priority": "urgent"},
    ])
    assert len(edits) == 2
    assert edits[0].priority == EditPriority.HIGH
    assert edits[0].section == "intro"
    assert edits[1].priority == EditPriority.MEDIUM
    assert parse_edits("nope") == ()

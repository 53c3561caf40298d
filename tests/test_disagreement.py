"""Tests for refinery/disagreement.py."""

from refinery.disagreement import describe_disagreement, detect_disagreement
from refinery.models import Dimension, EvaluatorRole
from tests.conftest import make_verdict, scores


def _panel(skeptic, advocate, generalist):
    return [
        make_verdict(EvaluatorRole.SKEPTIC, skeptic),
        make_verdict(EvaluatorRole.ADVOCATE, advocate),
        make_verdict(EvaluatorRole.GENERALIST, generalist),
    ]


def test_agreeing_panel_has_no_disagreement():
    result = detect_disagreement(_panel(scores(8.0), scores(7.5), scores(8.0)))
    assert result.has_disagreement is False
    assert result.disagreeing_dimensions == ()
    assert result.max_spread == 0.5


def test_spread_of_two_and_a_half_disagrees():
    result = detect_disagreement(
        _panel(scores(8.0, evidence_quality=5.5), scores(8.0), scores(8.0, evidence_quality=7.0))
    )
    assert result.has_disagreement is True
    assert result.disagreeing_dimensions == (Dimension.EVIDENCE_QUALITY,)
    assert result.max_spread == 2.5


def test_spread_equal_to_tolerance_does_not_disagree():
    result = detect_disagreement(_panel(scores(8.0, objectivity=6.0), scores(8.0), scores(8.0)))
    assert result.has_disagreement is False
    assert result.max_spread == 2.0


def test_tolerance_is_configurable():
    panel = _panel(scores(8.0, objectivity=6.5), scores(8.0), scores(8.0))
    assert detect_disagreement(panel, tolerance=1.0).has_disagreement is True
    assert detect_disagreement(panel, tolerance=2.0).has_disagreement is False


def test_multiple_dimensions_in_enum_order():
    result = detect_disagreement(
        _panel(scores(8.0, bias_detection=3.0, accessibility=4.0), scores(8.0), scores(8.0))
    )
    assert result.disagreeing_dimensions == (Dimension.ACCESSIBILITY, Dimension.BIAS_DETECTION)
    assert result.max_spread == 5.0


def test_positions_record_divergent_scores():
    result = detect_disagreement(_panel(scores(8.0, accessibility=4.0), scores(8.0), scores(8.0)))
    skeptic = result.evaluator_positions[0]
    assert skeptic.evaluator == EvaluatorRole.SKEPTIC
    assert skeptic.divergent_dimensions == ((Dimension.ACCESSIBILITY, 4.0),)


def test_single_verdict_never_disagrees():
    result = detect_disagreement([make_verdict(EvaluatorRole.SKEPTIC, scores(2.0))])
    assert result.has_disagreement is False
    assert result.max_spread == 0.0


def test_result_independent_of_verdict_order():
    panel = _panel(scores(8.0, accessibility=4.0), scores(6.0), scores(9.0, objectivity=5.0))
    forward = detect_disagreement(panel)
    backward = detect_disagreement(list(reversed(panel)))
    assert forward.disagreeing_dimensions == backward.disagreeing_dimensions
    assert forward.max_spread == backward.max_spread


def test_describe_disagreement_lists_positions():
    result = detect_disagreement(_panel(scores(8.0, accessibility=4.0), scores(8.0), scores(8.0)))
    text = describe_disagreement(result)
    assert "accessibility" in text
    assert "skeptic" in text
    assert "4.0" in text


def test_describe_no_disagreement():
    result = detect_disagreement(_panel(scores(), scores(), scores()))
    assert "No dimension" in describe_disagreement(result)

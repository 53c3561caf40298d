"""Tolerant parsing of model replies into engine dataclasses."""

import json
import logging
import re

from refinery.capabilities import CapabilityError
from refinery.models import (
    Dimension,
    DimensionScore,
    EditPriority,
    Issue,
    Severity,
    SuggestedEdit,
)

logger = logging.getLogger(__name__)

_FENCED = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```")
_BARE = re.compile(r"\{[\s\S]*\}")


def extract_json(raw: str, capability: str) -> dict:
    """Pull the JSON object out of a reply that may wrap it in prose or a code fence.

    Raises:
        CapabilityError: If no JSON object can be decoded.
    """
    text = raw.strip()
    match = _FENCED.search(text) or _BARE.search(text)
    if not match:
        raise CapabilityError(capability, "No JSON object found in reply")
    candidate = match.group(1) if match.re is _FENCED else match.group(0)
    try:
        obj = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise CapabilityError(capability, f"Invalid JSON in reply: {exc}") from exc
    if not isinstance(obj, dict):
        raise CapabilityError(capability, "Reply JSON is not an object")
    return obj


def clamp_score(value, default: float = 5.0) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    return round(min(10.0, max(0.0, score)), 1)


def clamp_confidence(value, default: float = 0.5) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    return min(1.0, max(0.0, confidence))


def parse_dimension(value) -> Dimension | None:
    try:
        return Dimension(str(value).strip().lower())
    except ValueError:
        return None


def parse_dimension_scores(items, capability: str) -> dict[Dimension, DimensionScore]:
    """Map each recognised dimension to its score. The first entry for a dimension wins."""
    if not isinstance(items, list):
        raise CapabilityError(capability, "Expected a list of dimension scores")
    scores: dict[Dimension, DimensionScore] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        dim = parse_dimension(item.get("dimension"))
        if dim is None:
            logger.debug("%s: ignoring unknown dimension %r", capability, item.get("dimension"))
            continue
        if dim in scores:
            continue
        raw_issues = item.get("issues") or []
        scores[dim] = DimensionScore(
            dimension=dim,
            score=clamp_score(item.get("score")),
            reasoning=str(item.get("reasoning", "")),
            issues=tuple(str(i) for i in raw_issues if i) if isinstance(raw_issues, list) else (),
        )
    return scores


def parse_issues(items) -> tuple[Issue, ...]:
    if not isinstance(items, list):
        return ()
    issues: list[Issue] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        dim = parse_dimension(item.get("dimension"))
        description = str(item.get("description", "")).strip()
        if dim is None or not description:
            continue
        try:
            severity = Severity(str(item.get("severity", "medium")).lower())
        except ValueError:
            severity = Severity.MEDIUM
        issues.append(
            Issue(
                dimension=dim,
                severity=severity,
                description=description,
                quote=item.get("quote") or None,
                suggested_fix=item.get("suggested_fix") or None,
            )
        )
    return tuple(issues)


def parse_edits(items) -> tuple[SuggestedEdit, ...]:
    """Edits missing original or suggested text are dropped here, before reconciliation."""
    if not isinstance(items, list):
        return ()
    edits: list[SuggestedEdit] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        original = item.get("original_text")
        suggested = item.get("suggested_text")
        if not isinstance(original, str) or not isinstance(suggested, str):
            continue
        try:
            priority = EditPriority(str(item.get("priority", "medium")).lower())
        except ValueError:
            priority = EditPriority.MEDIUM
        edits.append(
            SuggestedEdit(
                section=str(item.get("section", "")),
                original_text=original,
                suggested_text=suggested,
                rationale=str(item.get("rationale", "")),
                priority=priority,
            )
        )
    return tuple(edits)

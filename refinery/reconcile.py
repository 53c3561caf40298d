"""Merge fixer edits into one revised brief. Deterministic, no model calls."""

import logging

from refinery.models import ReconciliationResult, SkippedEdit, SuggestedEdit

logger = logging.getLogger(__name__)

SKIP_EMPTY = "original text was empty"
SKIP_NOT_FOUND = "original text not found in brief"
SKIP_DUPLICATE = "duplicate of an edit already applied"
SKIP_CONFLICT = "conflicted with another edit"


def reconcile(brief: str, edits: list[SuggestedEdit] | tuple[SuggestedEdit, ...]) -> ReconciliationResult:
    """Apply edits in the given order, skipping any that cannot be applied cleanly.

    Each edit targets the first occurrence of its original text in the input
    brief. An edit whose span overlaps one already accepted loses to it.
    Skipped edits are returned with a reason. The revised brief is the input
    with only the accepted spans replaced.
    """
    applied: list[SuggestedEdit] = []
    skipped: list[SkippedEdit] = []
    spans: list[tuple[int, int, str]] = []    # (start, end, replacement)

    for edit in edits:
        if not edit.original_text:
            skipped.append(SkippedEdit(edit, SKIP_EMPTY))
            continue

        start = brief.find(edit.original_text)
        if start == -1:
            skipped.append(SkippedEdit(edit, SKIP_NOT_FOUND))
            continue
        end = start + len(edit.original_text)

        if any(
            a.original_text == edit.original_text and a.suggested_text == edit.suggested_text for a in applied
        ):
            skipped.append(SkippedEdit(edit, SKIP_DUPLICATE))
            continue

        if any(start < s_end and s_start < end for s_start, s_end, _ in spans):
            skipped.append(SkippedEdit(edit, SKIP_CONFLICT))
            continue

        spans.append((start, end, edit.suggested_text))
        applied.append(edit)

    parts: list[str] = []
    cursor = 0
    for start, end, replacement in sorted(spans):
        parts.append(brief[cursor:start])
        parts.append(replacement)
        cursor = end
    parts.append(brief[cursor:])
    revised = "".join(parts)

    for s in skipped:
        logger.warning("Skipped edit in %r: %s", s.edit.section, s.reason)
    logger.info("Reconciled %d edit(s): %d applied, %d skipped", len(edits), len(applied), len(skipped))

    return ReconciliationResult(
        revised_brief=revised,
        edits_applied=tuple(applied),
        edits_skipped=tuple(skipped),
    )

"""Rich console output and markdown report save for scoring and refinement results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from refinery.dimensions import quality_tier, weight_of
from refinery.models import ClarityScore, QualityTier, RefinementResult

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_TIER_STYLE = {
    QualityTier.HIGH: "bold green",
    QualityTier.ACCEPTABLE: "bold yellow",
    QualityTier.FAILED: "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len] or "brief"


def _score_style(score: float, threshold: float = 7.0) -> str:
    return "green" if score >= threshold else "red"


def _dimension_table(clarity: ClarityScore) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Dimension")
    table.add_column("Weight", justify="right")
    table.add_column("Score", justify="right")
    for verdict in clarity.evaluator_verdicts:
        table.add_column(verdict.role.value, justify="right", style="dim")
    for ds in clarity.dimension_breakdown:
        row = [
            ds.dimension.value,
            f"{weight_of(ds.dimension) * 100:.0f}%",
            f"[{_score_style(ds.score)}]{ds.score:.1f}[/]",
        ]
        row += [f"{v.score_for(ds.dimension):.1f}" for v in clarity.evaluator_verdicts]
        table.add_row(*row)
    return table


def print_clarity(clarity: ClarityScore, gate: float = 8.0) -> None:
    """Print a ClarityScore: headline, per-dimension table, review flag, top issues."""
    tier = quality_tier(clarity.overall_score, gate)
    console.print(Rule("[bold cyan]Consensus Score[/bold cyan]"))
    console.print(
        Text(
            f"Overall: {clarity.overall_score:.1f}/10 ({tier.value}) | "
            f"Method: {clarity.consensus_method.value} | "
            f"Confidence: {clarity.confidence:.2f}",
            style=_TIER_STYLE[tier],
        )
    )
    console.print(_dimension_table(clarity))

    if clarity.needs_human_review:
        console.print(Panel(clarity.review_reason or "", title="[bold yellow]Needs human review[/bold yellow]",
                            border_style="yellow"))

    for issue in clarity.prioritized_issues:
        console.print(
            f"  [bold]{issue.priority.value.upper()}[/bold] [{issue.dimension.value}] {issue.issue}"
            f" [dim](flagged by {issue.agreed_by_evaluators})[/dim]"
        )


def print_refinement(result: RefinementResult, gate: float = 8.0) -> None:
    """Print the attempt history and final outcome of a refinement run."""
    console.print(Rule("[bold green]Refinement[/bold green]"))
    if not result.attempts:
        console.print(Text("No refinement attempts were made.", style="dim"))
    for attempt in result.attempts:
        fixed = ", ".join(d.value for d in attempt.fixers_deployed)
        console.print(
            Panel(
                f"Fixers: {fixed}\n"
                f"Edits: {len(attempt.edits_applied)} applied, {len(attempt.edits_skipped)} skipped\n"
                f"Score: {attempt.score_before:.1f} -> {attempt.score_after:.1f}",
                title=f"[bold]Attempt {attempt.attempt_number}[/bold]",
                subtitle=f"{attempt.processing_time_sec:.1f}s",
                border_style="dim",
            )
        )

    tier = quality_tier(result.final_score, gate)
    status = "PASSED" if result.success else "DID NOT PASS"
    console.print(
        Text(
            f"{status}: {result.final_score:.1f}/10 ({tier.value}) after {len(result.attempts)} attempt(s) | "
            f"Duration: {result.total_processing_time_sec:.1f}s",
            style=_TIER_STYLE[tier],
        )
    )
    if result.warning_reason:
        console.print(Panel(result.warning_reason, title="[bold yellow]Quality warning[/bold yellow]",
                            border_style="yellow"))


def print_brief(brief: str) -> None:
    console.print(Rule("[bold]Final brief[/bold]"))
    console.print(Markdown(brief))


def _clarity_lines(clarity: ClarityScore) -> list[str]:
    lines = [
        f"**Overall score:** {clarity.overall_score:.1f}/10",
        f"**Consensus method:** {clarity.consensus_method.value}",
        f"**Confidence:** {clarity.confidence:.2f}",
        f"**Evaluators:** {', '.join(v.role.value for v in clarity.evaluator_verdicts)}",
    ]
    if clarity.needs_human_review:
        lines.append(f"**Needs human review:** {clarity.review_reason}")
    lines += ["", "| Dimension | Weight | Score |", "|---|---|---|"]
    for ds in clarity.dimension_breakdown:
        lines.append(f"| {ds.dimension.value} | {weight_of(ds.dimension) * 100:.0f}% | {ds.score:.1f} |")
    if clarity.prioritized_issues:
        lines += ["", "### Priority issues", ""]
        for issue in clarity.prioritized_issues:
            lines.append(f"- **{issue.priority.value}** [{issue.dimension.value}] {issue.issue}")
            lines.append(f"  - Fix: {issue.suggested_fix}")
    lines += ["", "### Critique", "", clarity.critique, ""]
    return lines


def save_report(
    title: str,
    brief: str,
    clarity: ClarityScore,
    output_dir: Path,
    result: RefinementResult | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save a markdown report for one brief.

    Args:
        title: Report heading, usually the brief's first line or file name.
        brief: The final brief text.
        clarity: The final ClarityScore.
        output_dir: Directory to save the file in.
        result: The refinement result, when refinement ran.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the title. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(title)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Brief Quality Report: {title[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "---",
        "",
        "## Final score",
        "",
    ]
    lines += _clarity_lines(clarity)

    if result is not None:
        lines += [
            "## Refinement",
            "",
            f"**Success:** {'yes' if result.success else 'no'}",
            f"**Attempts:** {len(result.attempts)}",
            f"**Duration:** {result.total_processing_time_sec:.1f}s",
        ]
        if result.warning_reason:
            lines.append(f"**Warning:** {result.warning_reason}")
        lines.append("")
        for attempt in result.attempts:
            lines.append(f"### Attempt {attempt.attempt_number}")
            lines.append("")
            lines.append(f"- Fixers: {', '.join(d.value for d in attempt.fixers_deployed)}")
            lines.append(f"- Score: {attempt.score_before:.1f} -> {attempt.score_after:.1f}")
            for edit in attempt.edits_applied:
                lines.append(f"- Applied ({edit.priority.value}) in {edit.section}: {edit.rationale}")
            for skipped in attempt.edits_skipped:
                lines.append(f"- Skipped in {skipped.edit.section}: {skipped.reason}")
            lines.append("")

    lines += ["## Brief", "", brief, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Report saved to: %s", filepath)
    return filepath

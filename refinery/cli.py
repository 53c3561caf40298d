"""Click CLI: config loading, provider assignment, scoring, refinement, and reports."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from refinery.audit import AuditRecord, JsonlAuditWriter, RecordCallback
from refinery.engine import ConsensusEngine
from refinery.errors import InvalidInputError, ScoringError
from refinery.healthcheck import run_health_checks
from refinery.inbox import archive_file, ensure_dirs, load_sources_file, parse_brief_file, parse_sources, scan_inbox
from refinery.llm_evaluator import LLMEvaluator
from refinery.llm_fixer import build_fixers
from refinery.models import EvaluatorRole, Source
from refinery.output import print_brief, print_clarity, print_refinement, save_report
from refinery.providers.anthropic import AnthropicProvider
from refinery.providers.base import AIProvider
from refinery.providers.gemini import GeminiProvider
from refinery.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by configured name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _pick(preferred: str | None, providers: dict[str, AIProvider]) -> AIProvider:
    """Preferred provider when available, otherwise the first available one."""
    if preferred in providers:
        return providers[preferred]
    fallback = next(iter(providers.values()))
    if preferred:
        logger.warning("Provider '%s' unavailable, using '%s' instead", preferred, fallback.name())
    return fallback


def _assign_roles(config: AppConfig, providers: dict[str, AIProvider]) -> dict[EvaluatorRole, AIProvider]:
    """Map every evaluator role (panel and arbiter) to a provider."""
    return {
        role: _pick(config.defaults.evaluator_providers.get(role.value), providers)
        for role in EvaluatorRole
    }


def _build_engine(
    config: AppConfig,
    providers: dict[str, AIProvider],
    on_record: RecordCallback | None,
) -> ConsensusEngine:
    evaluator = LLMEvaluator(_assign_roles(config, providers), config.prompts)
    fixers = build_fixers(_pick(config.defaults.fixer_provider, providers), config.prompts)
    return ConsensusEngine(evaluator, fixers, config.scoring, config.refinement, on_record=on_record)


def _brief_title(brief: str, fallback: str) -> str:
    for line in brief.splitlines():
        stripped = line.strip().lstrip("#").strip()
        if stripped:
            return stripped
    return fallback


def _check_and_filter_providers(all_providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask user what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(all_providers))

    failed_names: list[str] = []
    for name in sorted(results):
        health = results[name]
        if health.ok:
            console.print(f"  [green]OK  [/green] {name} [dim]({health.latency_sec:.1f}s)[/dim]")
        else:
            short_err = health.error.splitlines()[0][:120] if health.error else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}")
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


async def _run_single(
    brief: str,
    title: str,
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    output_dir: Path,
    score_only: bool = False,
    max_attempts: int | None = None,
    sources: tuple[Source, ...] = (),
    audit_log: Path | None = None,
    slug_override: str | None = None,
) -> Path:
    """Score (and unless score_only, refine) one brief and return the saved report path.

    Raises:
        InvalidInputError: Empty brief or bad attempt budget.
        ScoringError: The panel could not be assembled.
    """
    writer = JsonlAuditWriter(audit_log) if audit_log else None
    gate = config.refinement.quality_gate

    console.print(f"\n[bold cyan]Brief Refinery[/bold cyan]: {title[:80]}")
    console.print(f"Evaluators: {', '.join(f'{r.value}={p.name()}' for r, p in _assign_roles(config, all_providers).items())}")
    if sources:
        console.print(f"Sources: {len(sources)}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:

        def on_record(record: AuditRecord) -> None:
            if writer is not None:
                writer(record)
            if record.kind == "final_consensus_score":
                progress.print(
                    f"[green]OK[/green] Scored {record.payload['overall_score']:.1f} "
                    f"({record.payload['consensus_method']})"
                )
            elif record.kind == "refinement_attempt":
                progress.print(
                    f"[green]OK[/green] Attempt {record.payload['attempt_number']}: "
                    f"{record.payload['score_before']:.1f} -> {record.payload['score_after']:.1f}"
                )

        engine = _build_engine(config, all_providers, on_record)
        task = progress.add_task("Scoring with consensus panel...", total=None)
        clarity = await engine.score_with_consensus_panel(brief)

        result = None
        if not score_only and clarity.overall_score < gate:
            progress.update(task, description="Refining brief...")
            result = await engine.refine_until_passing(brief, clarity, sources, max_attempts)

    print_clarity(clarity, gate)
    final_brief = brief
    final_clarity = clarity
    if result is not None:
        print_refinement(result, gate)
        final_brief = result.final_brief
        final_clarity = result.final_clarity or clarity
        if result.attempts:
            print_clarity(final_clarity, gate)
            print_brief(final_brief)

    saved_path = save_report(title, final_brief, final_clarity, output_dir, result=result, slug_override=slug_override)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


async def _run_inbox(
    config: AppConfig,
    all_providers: dict[str, AIProvider],
    inbox_dir: Path,
    archive_dir: Path,
    output_dir: Path,
    score_only_cli: bool,
    max_attempts_cli: int | None,
    sources_cli: tuple[Source, ...],
    audit_log: Path | None,
) -> None:
    """Process all .md briefs in the inbox folder.

    Precedence for per-file settings: CLI flag > front-matter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        brief, meta = parse_brief_file(file_path)

        effective_attempts = (
            max_attempts_cli if max_attempts_cli is not None
            else int(meta["max_attempts"]) if "max_attempts" in meta
            else None
        )
        effective_sources = sources_cli or parse_sources(meta.get("sources"))
        effective_score_only = score_only_cli or bool(meta.get("score_only", False))

        try:
            saved = await _run_single(
                brief=brief,
                title=str(meta.get("title") or _brief_title(brief, file_path.stem)),
                config=config,
                all_providers=all_providers,
                output_dir=output_dir,
                score_only=effective_score_only,
                max_attempts=effective_attempts,
                sources=effective_sources,
                audit_log=audit_log,
                slug_override=file_path.stem,
            )
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> {saved} (archived: {archived.name})")
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, failed=True)


@click.command()
@click.argument("brief_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--score-only", is_flag=True, default=False, help="Score the brief without refining it")
@click.option("--max-attempts", default=None, type=int, help="Refinement attempt budget (default: from config)")
@click.option("--sources", "sources_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="YAML/JSON file with a list of {url, title, content} sources for the fixers")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--audit-log", "audit_log", default=None, help="Append structured audit records to this JSONL file")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False, help="Process all .md briefs in the inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    brief_file: str | None,
    score_only: bool,
    max_attempts: int | None,
    sources_path: str | None,
    output_path: str | None,
    audit_log: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Brief Refinery -- consensus scoring and adaptive refinement of briefs.

    \b
    Examples:
      refinery brief.md
      refinery brief.md --score-only
      refinery brief.md --sources sources.yaml --max-attempts 2
      refinery --inbox --audit-log ./reports/audit.jsonl
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if max_attempts is not None and max_attempts < 1:
        console.print("[bold red]Error:[/bold red] --max-attempts must be at least 1.")
        sys.exit(1)

    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    audit_path = Path(audit_log) if audit_log else None
    sources = load_sources_file(Path(sources_path)) if sources_path else ()

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config=config,
                all_providers=all_providers,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                output_dir=effective_output,
                score_only_cli=score_only,
                max_attempts_cli=max_attempts,
                sources_cli=sources,
                audit_log=audit_path,
            )
        )
        return

    if not brief_file:
        console.print("[bold red]Error:[/bold red] Provide a BRIEF_FILE argument or --inbox.")
        sys.exit(1)

    brief, meta = parse_brief_file(Path(brief_file))
    try:
        asyncio.run(
            _run_single(
                brief=brief,
                title=str(meta.get("title") or _brief_title(brief, Path(brief_file).stem)),
                config=config,
                all_providers=all_providers,
                output_dir=effective_output,
                score_only=score_only or bool(meta.get("score_only", False)),
                max_attempts=(
                    max_attempts if max_attempts is not None
                    else int(meta["max_attempts"]) if "max_attempts" in meta
                    else None
                ),
                sources=sources or parse_sources(meta.get("sources")),
                audit_log=audit_path,
            )
        )
    except InvalidInputError as exc:
        console.print(f"[bold red]Invalid input:[/bold red] {exc}")
        sys.exit(1)
    except ScoringError as exc:
        console.print(f"[bold red]Could not score brief:[/bold red] {exc}")
        for role, error in exc.failures.items():
            console.print(f"  [red]{role}[/red]: {error}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Command-line interface for History Reviewer."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from history_reviewer import __version__
from history_reviewer.config import Config, load_config, validate_config
from history_reviewer.errors import ReviewerError
from history_reviewer.feedback.adapter import FeedbackAdapter
from history_reviewer.history.builder import HistoryContextBuilder, analyze_history
from history_reviewer.history.reader import GitLogReader, snapshot_line_counts
from history_reviewer.models.findings import Severity
from history_reviewer.models.review import ReviewResult
from history_reviewer.review import ReviewOptions, feedback_store_for, record_feedback, review

console = Console()

SEVERITY_STYLES = {
    Severity.BUG: "bold red",
    Severity.WARNING: "yellow",
    Severity.SUGGESTION: "cyan",
    Severity.INFO: "dim",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _load(config_path: str | None) -> Config:
    return load_config(Path(config_path) if config_path else None)


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """History Reviewer - LLM code review informed by git history."""
    setup_logging(verbose)


@cli.command("review")
@click.option("--diff", "diff_file", type=click.File("r"), default="-", help="Diff file (default: stdin)")
@click.option("--repo", "repo_path", type=click.Path(file_okay=False), default=".", help="Repository root")
@click.option(
    "--fail-on",
    type=click.Choice([s.value for s in Severity], case_sensitive=False),
    default=None,
    help="Exit 1 when a finding is at least this severe",
)
@click.option("--no-reflection", is_flag=True, help="Skip the self-reflection pass")
@click.option(
    "--min-confidence", type=click.FloatRange(0.0, 1.0), default=None, help="Drop less confident findings"
)
@click.option("--max-findings", type=click.IntRange(min=1), default=None, help="Keep at most this many findings")
@click.option("--min-confidence", type=click.FloatRange(0.0, 1.0), default=None, help="Drop less confident findings")
@click.option("--max-findings", type=click.IntRange(min=1), default=None, help="Keep at most this many findings")
@click.option("--output", type=click.Choice(["text", "json"]), default="text")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def review_cmd(
    diff_file,
    repo_path: str,
    fail_on: str | None,
    no_reflection: bool,
    min_confidence: float | None,
    max_findings: int | None,
    output: str,
    config_path: str | None,
) -> None:
    """Review a unified diff."""
    diff = diff_file.read()
    options = ReviewOptions(
        fail_on=fail_on,
        self_reflection=False if no_reflection else None,
        min_confidence=min_confidence,
        max_findings=max_findings,
    )

    try:
        config = _load(config_path)
        result = asyncio.run(review(diff, Path(repo_path), options, config=config))
    except ReviewerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)

    if result.threshold_met:
        sys.exit(1)


def _print_result(result: ReviewResult) -> None:
    if result.findings:
        table = Table(title="Findings")
        table.add_column("Severity")
        table.add_column("Location")
        table.add_column("Message")
        table.add_column("ID", style="dim")
        for f in result.findings:
            location = f"{f.file_path}:{f.line}" if f.line else f.file_path
            style = SEVERITY_STYLES[f.severity]
            table.add_row(f"[{style}]{f.severity.value}[/{style}]", location, f.message, f.id)
        console.print(table)

    stats = result.stats
    console.print(f"\n{result.summary}")
    console.print(
        f"[dim]Model: {stats.model_used} | generated {stats.generated}, "
        f"reflected out {stats.reflected_out}, deduplicated {stats.deduplicated}, "
        f"suppressed {stats.suppressed}, filtered {stats.filtered}, final {stats.final} | "
        f"provider calls {stats.provider_calls}, retries {stats.retries}[/dim]"
    )
    for warning in stats.warnings:
        console.print(f"[yellow]⚠️  {warning}[/yellow]")

    if result.has_blocking_finding:
        console.print("[red]Blocking: contains bug-level findings[/red]")


@cli.group("feedback")
def feedback_group() -> None:
    """Feedback commands."""
    pass


@feedback_group.command("record")
@click.argument("finding_id")
@click.argument("rating", type=click.Choice(["useful", "noise", "skip"], case_sensitive=False))
@click.option("--repo", "repo_path", type=click.Path(file_okay=False), default=".")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def feedback_record(finding_id: str, rating: str, repo_path: str, config_path: str | None) -> None:
    """Rate a finding from an earlier review."""
    try:
        entry = record_feedback(finding_id, rating, repo_path, config=_load(config_path))
    except ReviewerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    note = f" (pattern: {entry.pattern})" if entry.pattern else " (finding not in catalog)"
    console.print(f"[green]✓ Recorded {entry.rating.value} for {finding_id}[/green]{note}")


@feedback_group.command("stats")
@click.option("--repo", "repo_path", type=click.Path(file_okay=False), default=".")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def feedback_stats(repo_path: str, config_path: str | None) -> None:
    """Show feedback totals and noisy patterns."""
    config = _load(config_path)
    store = feedback_store_for(repo_path, config)
    try:
        entries = store.entries()
    except ReviewerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    counts = store.stats()
    console.print(
        f"[bold]Feedback:[/bold] {counts['total']} ratings "
        f"({counts['useful']} useful, {counts['noise']} noise, {counts['skip']} skipped)"
    )

    adapter = FeedbackAdapter.from_settings(config.feedback)
    bias = adapter.compute(entries, config.review.reflection_threshold)
    pattern_stats = adapter.pattern_stats(entries)
    if not pattern_stats:
        return

    table = Table(title="Message patterns")
    table.add_column("Pattern")
    table.add_column("Useful", justify="right")
    table.add_column("Noise", justify="right")
    table.add_column("Effect")
    for pattern, s in sorted(pattern_stats.items(), key=lambda item: (-item[1].noise_ratio, item[0])):
        if pattern in bias.suppressed:
            effect = "[red]suppressed[/red]"
        elif pattern in bias.thresholds:
            effect = f"[yellow]threshold {bias.thresholds[pattern]}[/yellow]"
        else:
            effect = ""
        table.add_row(pattern, str(s.useful), str(s.noise), effect)
    console.print(table)


@cli.command("history")
@click.option("--repo", "repo_path", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--since-days", type=int, default=None, help="Analysis window (default from config)")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def history_cmd(repo_path: str, since_days: int | None, config_path: str | None) -> None:
    """Show hotspots, temporal coupling and ownership risk."""
    config = _load(config_path)
    settings = config.history
    repo = Path(repo_path)
    reader = GitLogReader(max_files_per_commit=settings.max_files_per_commit)

    try:
        commits = reader.read(repo, since_days or settings.since_days)
    except ReviewerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    paths = sorted({p for c in commits for p in c.paths})
    analysis = asyncio.run(
        analyze_history(
            commits,
            snapshot_line_counts(repo, paths),
            min_coupling_ratio=settings.min_coupling_ratio,
            min_co_changes=settings.min_co_changes,
        )
    )
    context = HistoryContextBuilder(settings.top_hotspots, settings.top_couplings).build(analysis)

    console.print(f"\n[bold]{len(commits)} commits analyzed[/bold]\n")

    table = Table(title="Hotspots")
    table.add_column("File")
    table.add_column("Score", justify="right")
    table.add_column("Revisions", justify="right")
    table.add_column("Churn", justify="right")
    table.add_column("Lines", justify="right")
    for h in context.hotspots:
        table.add_row(h.path, f"{h.score:.2f}", str(h.revisions), str(h.churn), str(h.current_loc))
    console.print(table)

    table = Table(title="Temporal coupling")
    table.add_column("File A")
    table.add_column("File B")
    table.add_column("Ratio", justify="right")
    table.add_column("Co-changes", justify="right")
    for c in context.couplings:
        table.add_row(c.file_a, c.file_b, f"{c.ratio:.2f}", str(c.co_changes))
    console.print(table)

    table = Table(title=f"Knowledge silos (bus factor {context.bus_factor})")
    table.add_column("File")
    table.add_column("Owner")
    table.add_column("Share", justify="right")
    for s in context.silos:
        table.add_row(s.path, s.author, f"{s.ratio * 100:.0f}%")
    console.print(table)


@cli.group("config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command("validate")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_validate(config_path: str | None) -> None:
    """Validate configuration file."""
    try:
        config = _load(config_path)
    except ReviewerError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        console.print("[red]Configuration is invalid:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        sys.exit(1)
    console.print("[green]✓ Configuration is valid[/green]")


@config_group.command("show")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_show(config_path: str | None) -> None:
    """Show current configuration (API key masked)."""
    config = _load(config_path)

    console.print("\n[bold]Current Configuration[/bold]\n")
    for section, values in config.to_dict().items():
        table = Table(title=section)
        table.add_column("Setting")
        table.add_column("Value")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)


if __name__ == "__main__":
    cli()

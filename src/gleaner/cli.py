"""CLI interface for gleaner."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from gleaner.config import GleanerConfig, load_config, merge_cli_overrides
from gleaner.errors import ReduceFailure
from gleaner.fetch import UrllibFetcher
from gleaner.llm import Summarizer
from gleaner.models import (
    AnalysisMethod,
    AnalyzeRequest,
    CrawlOutcome,
    CrawlRequest,
    SynthesizedReport,
)
from gleaner.orchestrator import CrawlOrchestrator
from gleaner.ratelimit import RateLimiter
from gleaner.store import JsonFileStore
from gleaner.synthesis import (
    Synthesizer,
    filter_for_analysis,
    merge_insights,
    parse_chat_export,
    upload_chunks,
)

app = typer.Typer(
    name="gleaner",
    help="Crawl event and trend listings, and synthesize chat logs into insights.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from gleaner import __version__

        console.print(f"gleaner {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """Gleaner - listings in, merged items and chat insights out."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_path: Optional[Path], **overrides: object) -> GleanerConfig:
    config = load_config(config_path)
    return merge_cli_overrides(config, **overrides)


def _read_request(path: Path) -> CrawlRequest:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Could not read {path}: {exc}[/red]")
        raise typer.Exit(1) from exc
    if isinstance(data, list):
        data = {"sources": data}
    try:
        return CrawlRequest.model_validate(data)
    except ValidationError as exc:
        console.print(f"[red]Invalid source list in {path}:[/red]\n{exc}")
        raise typer.Exit(1) from exc


def _print_outcome(outcome: CrawlOutcome) -> None:
    table = Table(title=f"{len(outcome.items)} items")
    table.add_column("When", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category", style="magenta")
    table.add_column("Location")
    table.add_column("Cost", style="green")

    for item in outcome.items:
        table.add_row(
            item.primary_timestamp[:16].replace("T", " "),
            item.title,
            item.category.value,
            item.location or "",
            item.cost_label,
        )
    console.print(table)

    console.print(
        f"Sources processed: {outcome.sources_processed}, "
        f"filtered out: {outcome.filtered_out}, errors: {len(outcome.errors)}"
    )
    for error in outcome.errors:
        console.print(f"  [red]{error.source_id}[/red]: {error.message}")


def _print_report(report: SynthesizedReport) -> None:
    meta = report.meta
    console.print(
        f"[bold]{report.overall_period or 'Report'}[/bold] "
        f"({report.message_count} messages, {meta.analysis_method.value}"
        + (
            f", {meta.chunks_analyzed}/{meta.total_chunks} chunks"
            if meta.analysis_method == AnalysisMethod.CHUNKED
            else ""
        )
        + ")"
    )
    if meta.failed_chunks:
        console.print(f"[yellow]{meta.failed_chunks} chunk(s) failed and were skipped[/yellow]")

    if report.top_topics:
        console.print("Topics: " + ", ".join(report.top_topics))
    if report.recent_detail:
        console.print(f"\n[bold]Recent[/bold]\n{report.recent_detail}")
    if report.historical_brief:
        console.print(f"\n[bold]Earlier[/bold]\n{report.historical_brief}")

    if report.insights:
        table = Table(title="Insights")
        table.add_column("Category", style="magenta")
        table.add_column("Title", style="bold")
        table.add_column("Content")
        for insight in report.insights:
            table.add_row(insight.category.value, insight.title, insight.content)
        console.print(table)

    for suggestion in report.action_suggestions:
        console.print(f"- [cyan]{suggestion.type.value}[/cyan] {suggestion.title}")
    for resource in report.shared_resources:
        console.print(f"- {resource.url} {resource.title}".rstrip())


@app.command()
def crawl(
    sources: Annotated[
        Path,
        typer.Argument(help="JSON file with a list of sources.", exists=True, dir_okay=False),
    ],
    scope: Annotated[
        str,
        typer.Option("--scope", "-s", help="Store key for the merged items."),
    ] = "events",
    include_past: Annotated[
        bool,
        typer.Option("--include-past", help="Keep items that started before today."),
    ] = False,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", help="Directory for stored items."),
    ] = None,
    source_offset: Annotated[
        Optional[str],
        typer.Option("--offset", help="UTC offset of source dates, e.g. +09:00."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .gleaner.toml file."),
    ] = None,
) -> None:
    """Crawl sources, merge with stored items, and print the result."""
    config = _load(config_path, store_dir=store_dir, source_offset=source_offset)
    request = _read_request(sources)
    store = JsonFileStore(Path(config.store.directory))

    orchestrator = CrawlOrchestrator(
        config.crawl, UrllibFetcher.from_config(config.crawl), RateLimiter()
    )
    with console.status(f"Crawling {len(request.sources)} sources..."):
        outcome = orchestrator.run(
            request, existing=store.get_existing(scope), include_past=include_past
        )

    store.put_merged(scope, outcome.items)
    _print_outcome(outcome)


@app.command()
def analyze(
    chat_file: Annotated[
        Path,
        typer.Argument(help="Chat export (CSV/TSV or [date] user: text).", exists=True),
    ],
    scope: Annotated[
        str,
        typer.Option("--scope", "-s", help="Room or corpus name insights are stored under."),
    ],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the report as JSON."),
    ] = False,
    keep_all: Annotated[
        bool,
        typer.Option("--keep-all", help="Do not drop low-value messages."),
    ] = False,
    model: Annotated[
        Optional[str],
        typer.Option("--model", help="Model override (sonnet, haiku, opus or a model id)."),
    ] = None,
    max_chunks: Annotated[
        Optional[int],
        typer.Option("--max-chunks", help="Summarize at most this many evenly sampled chunks."),
    ] = None,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", help="Directory for the insight store."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .gleaner.toml file."),
    ] = None,
) -> None:
    """Synthesize a chat export and accumulate its insights."""
    config = _load(config_path, model=model, max_chunks=max_chunks, store_dir=store_dir)
    messages = parse_chat_export(chat_file.read_text(encoding="utf-8"))
    if not keep_all:
        messages = filter_for_analysis(messages)
    if not messages:
        console.print("[red]No analyzable messages found.[/red]")
        raise typer.Exit(1)

    synthesizer = Synthesizer(
        config.synthesis,
        Summarizer(model=config.llm.model, timeout=config.llm.timeout),
        RateLimiter(),
    )
    try:
        with console.status(f"Analyzing {len(messages)} messages..."):
            report = synthesizer.analyze(AnalyzeRequest(messages=messages, scope_label=scope))
    except ReduceFailure as exc:
        console.print(f"[red]Analysis failed: {exc}[/red]")
        raise typer.Exit(1) from exc

    store = JsonFileStore(Path(config.store.directory))
    store.save_insights(merge_insights(store.load_insights(), report, scope))

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        _print_report(report)


@app.command()
def plan(
    chat_file: Annotated[
        Path,
        typer.Argument(help="Chat export to plan for.", exists=True),
    ],
    threshold: Annotated[
        Optional[int],
        typer.Option("--threshold", help="Largest corpus summarized in a single pass."),
    ] = None,
    chunk_chars: Annotated[
        Optional[int],
        typer.Option("--chunk-chars", help="Approximate characters per chunk."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .gleaner.toml file."),
    ] = None,
) -> None:
    """Show how a chat export would be chunked, without calling the model."""
    config = _load(config_path, threshold=threshold, chunk_chars=chunk_chars)
    messages = filter_for_analysis(parse_chat_export(chat_file.read_text(encoding="utf-8")))

    synthesizer = Synthesizer(config.synthesis, Summarizer(), RateLimiter())
    analysis_plan = synthesizer.planner.plan(messages)
    batches = upload_chunks(messages, config.synthesis.max_messages_per_request)

    console.print(f"Messages: {analysis_plan.total_messages}")
    console.print(f"Upload batches: {len(batches)}")
    console.print(f"Method: [bold]{analysis_plan.method.value}[/bold]")
    if analysis_plan.method == AnalysisMethod.SINGLE:
        console.print(
            f"Historical: {len(analysis_plan.historical)}, recent: {len(analysis_plan.recent)}"
        )
        return

    table = Table(title=f"{len(analysis_plan.chunks)} chunks")
    table.add_column("#", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Mapped")
    selected = set(analysis_plan.selected)
    for index, chunk in enumerate(analysis_plan.chunks):
        table.add_row(
            str(index + 1),
            str(len(chunk)),
            chunk[0].timestamp,
            chunk[-1].timestamp,
            "yes" if index in selected else "no",
        )
    console.print(table)
    console.print(f"Recent window: {len(analysis_plan.recent)} messages")


if __name__ == "__main__":
    app()

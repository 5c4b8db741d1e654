"""Command-line interface for diary-lens.

This module provides the CLI entry point for the diary-lens tool.
All commands are implemented using Click and output is formatted
using Rich. Every analysis command takes SOURCE, a JSON export or a
directory of .txt/.md diary files, and accepts ``--json`` for raw output.

Usage:
    diary-lens stats SOURCE             # Corpus overview
    diary-lens monthly SOURCE           # Monthly emotion metrics
    diary-lens shifts SOURCE            # Detected trend shifts
    diary-lens current SOURCE           # Where things stand now
    diary-lens narrate SOURCE tone      # Narrative via a local LLM
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .analyzer import NARRATIVE_TEMPLATES, DiaryAnalyzer, list_narrative_templates
from .constants import DEFAULT_MAX_GENERATION_TOKENS, DEFAULT_MODEL_ID, VALID_GRANULARITIES
from .exceptions import DiaryLensError
from .model import ModelManager, list_available_models
from .reader import EntryReader

# Rich console for formatted output
console = Console()

SEVERITY_STYLES: dict[str, str] = {"watch": "cyan", "caution": "yellow", "warning": "red"}
RISK_STYLES: dict[str, str] = {"low": "green", "moderate": "yellow", "elevated": "red"}


# =============================================================================
# Helper Functions
# =============================================================================


def _create_analyzer(source: str) -> DiaryAnalyzer:
    """Read entries from SOURCE and wrap them in an analyzer.

    Exits:
        With code 1 if the source can't be read or holds no entries.
    """
    try:
        entries = EntryReader(source).read_entries()
    except DiaryLensError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not entries:
        console.print(f"[yellow]No diary entries found in {source}.[/yellow]")
        sys.exit(1)

    return DiaryAnalyzer(entries)


def _to_data(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: _to_data(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_data(v) for v in value]
    return value


def _print_json(value: Any) -> None:
    click.echo(json.dumps(_to_data(value), ensure_ascii=False, indent=2, default=str))


def _fmt(value: float | None, pattern: str = ".3f") -> str:
    return "-" if value is None else format(value, pattern)


def _source_command(func: Callable[..., None]) -> Callable[..., None]:
    """Add the SOURCE argument and --json flag shared by analysis commands."""
    func = click.option("--json", "as_json", is_flag=True, help="Print raw results as JSON.")(func)
    return click.argument("source", type=click.Path(exists=True))(func)


# =============================================================================
# CLI Group
# =============================================================================


@click.group()
@click.version_option(package_name="diary-lens")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """Measure emotional patterns in a diary archive.

    diary-lens scans diary text with fixed word lists and statistics
    (no machine-learning NLP) and reports emotion ratios, stability,
    trend shifts, seasonal patterns and early-warning signals.

    Quick start:

        diary-lens stats diary.json

        diary-lens shifts entries/
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# =============================================================================
# Corpus Commands
# =============================================================================


@main.command()
@_source_command
def stats(source: str, as_json: bool) -> None:
    """Show corpus statistics and the yearly breakdown."""
    analyzer = _create_analyzer(source)
    totals = analyzer.total_stats()
    yearly = analyzer.period_stats("year")

    if as_json:
        _print_json({**totals, "years": yearly})
        return

    console.print("\n[bold]Diary Statistics[/bold]")
    console.print(f"Total entries: {totals['total_entries']:,}")
    console.print(f"Undated entries: {totals['undated_entries']:,}")
    console.print(f"Total characters: {totals['total_chars']:,}")
    if totals["date_range"]:
        start, end = totals["date_range"]
        console.print(f"Date range: {start.isoformat()} to {end.isoformat()}")

    table = Table(title="\nBy Year")
    table.add_column("Year", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Characters", justify="right")
    table.add_column("Neg. Ratio", justify="right")
    for row in yearly:
        table.add_row(row.period, str(row.entry_count), f"{row.total_chars:,}", _fmt(row.negative_ratio))
    console.print(table)


@main.command()
@_source_command
def monthly(source: str, as_json: bool) -> None:
    """Show monthly negative ratio, moving averages and seasonal deviation."""
    rows = _create_analyzer(source).monthly_analysis()

    if as_json:
        _print_json(rows)
        return

    table = Table(title="Monthly Analysis")
    table.add_column("Month", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Neg. Ratio", justify="right")
    table.add_column("MA3", justify="right")
    table.add_column("MA6", justify="right")
    table.add_column("Seasonal Dev.", justify="right")
    table.add_column("Self-denial", justify="right")
    table.add_column("Symptoms", justify="right")
    for row in rows:
        table.add_row(
            row.month,
            str(row.entry_count),
            _fmt(row.negative_ratio),
            _fmt(row.negative_ratio_ma3),
            _fmt(row.negative_ratio_ma6),
            _fmt(row.seasonal_deviation, "+.3f"),
            str(row.self_denial_count),
            str(row.physical_symptom_count),
        )
    console.print(table)


@main.command()
@_source_command
@click.option("--every", default=1, show_default=True, type=click.IntRange(min=1),
              help="Keep every n-th writing day.")
def daily(source: str, as_json: bool, every: int) -> None:
    """Show the daily emotion series with top emotion words."""
    rows = _create_analyzer(source).emotions_daily(every=every)

    if as_json:
        _print_json(rows)
        return

    table = Table(title="Daily Emotions")
    table.add_column("Date", style="cyan")
    table.add_column("Neg. Ratio", justify="right")
    table.add_column("Self-denial", justify="right")
    table.add_column("Top Words")
    for row in rows:
        words = ", ".join(f"{word}({count})" for word, count in row.top_emotion_words[:5])
        table.add_row(row.date, _fmt(row.negative_ratio), str(row.self_denial_count), words)
    console.print(table)


# =============================================================================
# Index Commands
# =============================================================================


@main.command()
@_source_command
def stability(source: str, as_json: bool) -> None:
    """Show the yearly stability index (0-100)."""
    rows = _create_analyzer(source).stability()

    if as_json:
        _print_json(rows)
        return

    table = Table(title="Stability by Year")
    table.add_column("Year", style="cyan")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Positive Ratio", justify="right")
    table.add_column("Volatility", justify="right")
    table.add_column("Self-denial/Month", justify="right")
    for row in rows:
        table.add_row(
            row.year, str(row.score), _fmt(row.positive_ratio), _fmt(row.volatility), _fmt(row.self_denial_avg, ".1f")
        )
    console.print(table)


@main.command()
@_source_command
@click.option("--granularity", "-g", type=click.Choice(VALID_GRANULARITIES), default="month", show_default=True)
def elevation(source: str, as_json: bool, granularity: str) -> None:
    """Show the cumulative elevation index."""
    points = _create_analyzer(source).elevation(granularity)

    if as_json:
        _print_json(points)
        return

    table = Table(title=f"Elevation ({granularity})")
    table.add_column("Period", style="cyan")
    table.add_column("Climb (m)", justify="right")
    table.add_column("Elevation (m)", justify="right", style="bold")
    for point in points:
        table.add_row(point.period, f"{point.climb:.0f}", f"{point.elevation:,.0f}")
    console.print(table)


@main.command()
@_source_command
def current(source: str, as_json: bool) -> None:
    """Compare the last three months against the rest of the diary."""
    state = _create_analyzer(source).current_state()

    if as_json:
        _print_json(state)
        return

    if state is None:
        console.print("[yellow]Not enough data: at least 6 months are needed.[/yellow]")
        return

    risk_style = RISK_STYLES[state.risk_level]
    console.print("\n[bold]Current State[/bold]")
    console.print(f"Overall stability: [bold]{state.overall_stability}/100[/bold]")
    console.print(f"Risk level: [{risk_style}]{state.risk_level}[/{risk_style}]")
    console.print(f"Trend: {state.neg_ratio_trend}")

    table = Table()
    table.add_column("Metric", style="cyan")
    table.add_column("Last 3 Months", justify="right")
    table.add_column("History", justify="right")
    table.add_row("Negative ratio", _fmt(state.recent_neg_ratio), _fmt(state.historical_neg_ratio))
    table.add_row("Self-denial rate", _fmt(state.recent_self_denial_rate, ".2f"),
                  _fmt(state.historical_self_denial_rate, ".2f"))
    table.add_row("First-person rate", _fmt(state.recent_first_person_rate, ".2f"),
                  _fmt(state.historical_first_person_rate, ".2f"))
    table.add_row("Symptoms/month", _fmt(state.recent_physical_symptoms, ".1f"),
                  _fmt(state.historical_physical_symptoms, ".1f"))
    table.add_row("Avg. sentence length", _fmt(state.recent_avg_sentence_length, ".1f"),
                  _fmt(state.historical_avg_sentence_length, ".1f"))
    console.print(table)


# =============================================================================
# Pattern Commands
# =============================================================================


@main.command()
@_source_command
def shifts(source: str, as_json: bool) -> None:
    """Show sustained trend shifts in the monthly series."""
    found = _create_analyzer(source).trend_shifts()

    if as_json:
        _print_json(found)
        return

    if not found:
        console.print("[yellow]No trend shifts detected.[/yellow]")
        return

    table = Table(title="Trend Shifts")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Type")
    table.add_column("Magnitude", justify="right")
    table.add_column("Description")
    for shift in found:
        table.add_row(shift.start_month, shift.end_month, shift.type, f"{shift.magnitude:.2f}", shift.description)
    console.print(table)


@main.command()
@_source_command
def seasons(source: str, as_json: bool) -> None:
    """Show per-season averages with a chi-square significance test."""
    rows = _create_analyzer(source).seasonal_stats()

    if as_json:
        _print_json(rows)
        return

    table = Table(title="Seasonal Cross Statistics")
    table.add_column("Season", style="cyan")
    table.add_column("Months", justify="right")
    table.add_column("Neg. Ratio", justify="right")
    table.add_column("Work Rate", justify="right")
    table.add_column("Symptoms", justify="right")
    table.add_column("p-value", justify="right")
    for row in rows:
        p_value = f"[bold]{row.p_value:.3f}[/bold]" if row.significant else f"{row.p_value:.3f}"
        table.add_row(
            row.label,
            str(row.month_count),
            _fmt(row.avg_negative_ratio),
            _fmt(row.avg_work_word_rate, ".2f"),
            _fmt(row.avg_physical_symptoms, ".1f"),
            p_value,
        )
    console.print(table)


@main.command()
@_source_command
def depth(source: str, as_json: bool) -> None:
    """Compare negative-vocabulary depth between the early and late halves."""
    result = _create_analyzer(source).vocabulary_depth()

    if as_json:
        _print_json(result)
        return

    if result is None:
        console.print("[yellow]Not enough data: at least two dated entries are needed.[/yellow]")
        return

    table = Table(title="Vocabulary Depth")
    table.add_column("Metric", style="cyan")
    table.add_column(f"Early ({result.early.period})", justify="right")
    table.add_column(f"Late ({result.late.period})", justify="right")
    table.add_row("Light negative", str(result.early.light_neg_count), str(result.late.light_neg_count))
    table.add_row("Deep negative", str(result.early.deep_neg_count), str(result.late.deep_neg_count))
    table.add_row("Depth ratio", _fmt(result.early.depth_ratio), _fmt(result.late.depth_ratio))
    table.add_row("Negative rate", _fmt(result.early.negative_rate, ".2f"), _fmt(result.late.negative_rate, ".2f"))
    table.add_row("Other-person share", _fmt(result.early.subject_ratio), _fmt(result.late.subject_ratio))
    console.print(table)
    console.print(f"Interpretation: [bold]{result.label}[/bold]")


@main.command("first-person")
@_source_command
def first_person(source: str, as_json: bool) -> None:
    """Interpret the change in self-reference between halves of the diary."""
    result = _create_analyzer(source).first_person_shift()

    if as_json:
        _print_json(result)
        return

    console.print(f"\n[bold]First-person shift:[/bold] [cyan]{result.label}[/cyan]")
    for line in result.evidence:
        console.print(f"  {line}")


@main.command()
@_source_command
def predict(source: str, as_json: bool) -> None:
    """Show precursor words, active signals and lagged symptom correlations."""
    result = _create_analyzer(source).predictive_indicators()

    if as_json:
        _print_json(result)
        return

    console.print(f"\n[bold]Negative spikes found:[/bold] {result.spike_count}")

    if result.active_signals:
        console.print("\n[bold]Active Signals[/bold]")
        for sig in result.active_signals:
            style = SEVERITY_STYLES[sig.severity]
            console.print(f"  [{style}]{sig.severity}[/{style}] {sig.signal}: {sig.evidence}")

    if result.precursor_words:
        table = Table(title="\nPrecursor Words")
        table.add_column("Word", style="cyan")
        table.add_column("Correlation", justify="right")
        table.add_column("Lead Days", justify="right")
        for p in result.precursor_words:
            table.add_row(p.word, f"{p.correlation:.0%}", f"{p.lead_days:.1f}")
        console.print(table)

    if result.symptom_correlations:
        table = Table(title="\nSymptom -> Negativity Correlation")
        table.add_column("Lag (days)", justify="right", style="cyan")
        table.add_column("r", justify="right")
        table.add_column("p-value", justify="right")
        table.add_column("n", justify="right")
        for corr in result.symptom_correlations:
            table.add_row(str(corr.lag_days), f"{corr.strength:.2f}", f"{corr.p_value:.3f}", str(corr.sample_count))
        console.print(table)


# =============================================================================
# Narrative Commands
# =============================================================================


@main.command()
@click.argument("source", type=click.Path(exists=True))
def digest(source: str) -> None:
    """Print the measured-data digest that narratives are built from."""
    click.echo(_create_analyzer(source).digest())


@main.command()
@_source_command
@click.argument("kind", type=click.Choice(list(NARRATIVE_TEMPLATES)))
@click.option("--model", "-m", default=DEFAULT_MODEL_ID, show_default=True, help="Model to use (ID or alias).")
@click.option("--max-tokens", default=DEFAULT_MAX_GENERATION_TOKENS, show_default=True,
              help="Max tokens to generate.")
@click.option("--anonymize", is_flag=True, help="Mask name-like words in the excerpts sent to the model.")
def narrate(source: str, as_json: bool, kind: str, model: str, max_tokens: int, anonymize: bool) -> None:
    """Generate a narrative summary with a local model.

    KIND is one of: period_summary, emotion_tags, tone, deep_insight.

    Example:

        diary-lens narrate diary.json tone -m qwen-7b
    """
    analyzer = _create_analyzer(source)
    # The system prompt is already part of the narrative prompt
    generator = ModelManager(model, system_prompt="", max_tokens=max_tokens)
    result = analyzer.narrate(kind, generator, mask_names=anonymize)

    if as_json:
        _print_json(result)
        return

    if not result.available:
        console.print(f"[yellow]Narrative unavailable:[/yellow] {result.error}")
        if result.text:
            console.print("[dim]Showing the previous (stale) result.[/dim]\n")
            console.print(result.text)
        sys.exit(1)

    console.print(f"\n[bold green]{kind}:[/bold green]\n")
    console.print(result.text)


# =============================================================================
# Info Commands
# =============================================================================


@main.command()
def models() -> None:
    """List available model presets."""
    console.print("\n[bold]Available Model Presets[/bold]\n")

    table = Table()
    table.add_column("Alias", style="cyan")
    table.add_column("Model ID")

    for alias, model_id in list_available_models().items():
        table.add_row(alias, model_id)

    console.print(table)
    console.print("\nYou can also use any mlx-community model ID directly with --model")


@main.command()
def templates() -> None:
    """List available narrative templates."""
    console.print("\n[bold]Available Narrative Templates[/bold]\n")

    for name, desc in list_narrative_templates().items():
        console.print(f"[cyan]{name}[/cyan]")
        console.print(f"  {desc}\n")


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    main()

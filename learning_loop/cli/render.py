"""
Text rendering for the command-line interface.

Human views go through a rich Console; the inject view is plain markdown
meant to be appended to an agent's context file.
"""

from typing import List, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..schemas.results import (
    AnalysisResult,
    InsightView,
    PatternView,
    QueryResult,
    Report,
)
from ..schemas.run import StoredRun

IMPACT_STYLES = {"high": "bold red", "medium": "yellow", "low": "dim"}

OUTCOME_SYMBOLS = {
    "success": ("✓", "green"),
    "failure": ("✗", "red"),
    "partial": ("◐", "yellow"),
    "error": ("!", "red"),
}


def rate_style(rate: float) -> str:
    if rate < 0.5:
        return "red"
    if rate < 0.75:
        return "yellow"
    return "green"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def render_query(console: Console, result: QueryResult) -> None:
    console.print()
    if result.matched_runs == 0 and not result.insights:
        console.print(f"  No relevant learnings found for: {escape(repr(result.query))}", style="dim")
        console.print("  Ingest more runs with: loop ingest <file>", style="dim")
        console.print()
        return

    header = f"[bold cyan] LEARNINGS [/] [bold]From {result.matched_runs}[/]"
    if result.matched_runs != result.total_runs:
        header += f"[dim]/{result.total_runs}[/]"
    header += "[bold] runs[/]"
    if result.matched_runs:
        style = rate_style(result.success_rate)
        header += f" ([{style}]{result.success_rate * 100:.0f}% success[/])"
    console.print(header)
    console.print()

    for index, insight in enumerate(result.insights, start=1):
        console.print(f"  [dim]{index}.[/] {escape(insight.text)}")
    if result.insights:
        console.print()

    if result.top_patterns:
        console.print("[bold cyan] WATCH OUT [/] [bold]Patterns that caused failures[/]")
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Pattern", style="red")
        table.add_column("Count", justify="right")
        table.add_column("Impact")
        for pattern in result.top_patterns:
            style = IMPACT_STYLES.get(pattern.impact, "dim")
            table.add_row(
                f"● {pattern.name}",
                f"{pattern.count} occurrences",
                f"[{style}]{pattern.impact.upper()}[/] impact",
            )
        console.print(table)
        console.print()

    if result.success_signals:
        console.print("[bold cyan] SUCCESS SIGNALS [/] [bold]What winning runs looked like[/]")
        for signal in result.success_signals:
            console.print(f"  [green]✓[/] {signal}")
        console.print()


def render_query_inject(result: QueryResult) -> str:
    """Markdown block for injecting learnings into an agent prompt."""
    lines = [f'## Learnings for: "{result.query}"', ""]

    if result.matched_runs == 0 and not result.insights:
        lines.append("No relevant learnings found yet.")
        return "\n".join(lines) + "\n"

    if result.matched_runs:
        lines.append(
            f"**From {result.matched_runs} similar runs "
            f"({result.success_rate * 100:.0f}% success rate):**"
        )
        lines.append("")

    for index, insight in enumerate(result.insights, start=1):
        lines.append(f"{index}. {insight.text}")
        lines.append("")

    if result.top_patterns:
        lines.append("**Common failure patterns in similar tasks:**")
        for pattern in result.top_patterns:
            lines.append(
                f"- {pattern.name} ({pattern.count} occurrences, {pattern.impact} impact)"
            )
        lines.append("")

    if result.success_signals:
        lines.append("**Success patterns:**")
        for signal in result.success_signals:
            lines.append(f"- {signal}")
        lines.append("")

    return "\n".join(lines) + "\n"


def render_analysis(console: Console, result: AnalysisResult) -> None:
    console.print()
    if result.runs_analyzed == 0:
        console.print("  No new runs to analyze.", style="dim")
    else:
        console.print(f"  [bold green]Analyzed[/] {result.runs_analyzed} new runs")

    if result.patterns_found:
        names = ", ".join(f"{p.name} ({p.count}x)" for p in result.patterns_found)
        console.print(f"  [bold cyan]Patterns:[/] {names}")

    if result.insights_created:
        console.print(f"  [bold cyan]Insights:[/] {len(result.insights_created)} new")

    stats = result.stats
    if stats.total_runs:
        style = rate_style(stats.success_rate)
        console.print(
            f"  [bold cyan]Overall:[/]  [{style}]{stats.success_rate * 100:.0f}%[/]"
            f" success across {stats.total_runs} runs"
        )
    console.print()


def render_report(console: Console, report: Report) -> None:
    console.print()
    console.print("  [bold]Learning Loop Report[/]")
    console.print("  ─────────────────────", style="dim")
    console.print()

    runs_line = f"  [bold cyan]Runs:[/] {report.total_runs} total"
    if report.total_runs:
        other = report.total_runs - report.success_runs - report.failure_runs
        runs_line += (
            f" ([green]{report.success_runs} success[/], "
            f"[red]{report.failure_runs} failure[/], {other} other)"
        )
    console.print(runs_line)
    style = rate_style(report.success_rate)
    console.print(
        f"  [bold cyan]Rate:[/] [{style}]{report.success_rate * 100:.0f}%[/] success"
    )
    console.print()

    active = [p for p in report.patterns if p.frequency > 0]
    if active:
        console.print("  [bold cyan]Patterns Detected[/]")
        render_pattern_rows(console, active, with_description=False)
        console.print()

    if report.insights:
        console.print("  [bold cyan]Active Insights[/]")
        for index, insight in enumerate(report.insights, start=1):
            console.print(
                f"    [dim]{index}.[/] {escape(insight.text)}"
                f" [dim]({insight.confidence * 100:.0f}% confidence)[/]"
            )
        console.print()

    if report.total_runs == 0:
        console.print("  No data yet. Start with: loop ingest <file>", style="dim")
        console.print()


def render_pattern_rows(
    console: Console, patterns: Sequence[PatternView], with_description: bool = True
) -> None:
    table = Table(show_header=with_description, header_style="bold cyan", box=None)
    table.add_column("Pattern")
    table.add_column("Seen", justify="right")
    table.add_column("Impact")
    if with_description:
        table.add_column("Description", style="dim")

    for pattern in patterns:
        style = IMPACT_STYLES.get(pattern.impact, "dim")
        row = [
            f"[{style}]●[/] {pattern.name}",
            f"{pattern.frequency}x",
            f"[{style}]{pattern.impact.upper()}[/]",
        ]
        if with_description:
            row.append(escape(pattern.description))
        table.add_row(*row)
    console.print(table)


def render_insights(console: Console, insights: List[InsightView]) -> None:
    console.print()
    if not insights:
        console.print("  No insights yet. Run: loop analyze", style="dim")
        console.print()
        return

    console.print("  [bold]Active Insights[/]")
    console.print("  ───────────────", style="dim")
    console.print()
    for index, insight in enumerate(insights, start=1):
        console.print(
            f"  [dim]{index}.[/] {escape(insight.text)} [dim]({insight.confidence * 100:.0f}%)[/]"
        )
    console.print()


def render_runs(console: Console, runs: List[StoredRun]) -> None:
    console.print()
    if not runs:
        console.print("  No runs yet. Start with: loop ingest <file>", style="dim")
        console.print()
        return

    table = Table(title="Recent Runs", show_header=True, header_style="bold cyan")
    table.add_column("")
    table.add_column("ID", style="yellow")
    table.add_column("Outcome")
    table.add_column("Duration", justify="right", style="dim")
    table.add_column("Task")

    for run in runs:
        symbol, style = OUTCOME_SYMBOLS.get(run.outcome, ("○", "dim"))
        duration = f"{run.duration_seconds}s" if run.duration_seconds is not None else "---"
        table.add_row(
            f"[{style}]{symbol}[/]",
            run.id,
            f"[{style}]{run.outcome}[/]",
            duration,
            escape(truncate(run.task or "", 50)),
        )
    console.print(table)
    console.print()

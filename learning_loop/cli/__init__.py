"""
Command Line Interface for Learning Loop.
"""

import json
import sys
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..analyze import Analyzer
from ..config import get_settings
from ..db import open_database
from ..db.services import InsightService, PatternService, RunService
from ..errors import LearningLoopError, RunValidationError
from ..ingest import Ingester
from ..logging_config import configure_logging
from ..query import QueryEngine
from ..report import Reporter
from ..schemas.enums import OUTCOME_VALUES
from .render import (
    render_analysis,
    render_insights,
    render_pattern_rows,
    render_query,
    render_query_inject,
    render_report,
    render_runs,
)

app = typer.Typer(help="Learning Loop - learn from coding agent runs")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None, "--db", help="Database URL or SQLite file path (default: $LOOP_DATABASE_URL)"
    ),
):
    """Capture agent runs, detect patterns, and surface learnings."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    ctx.obj = {"database_url": db or settings.database_url}


def fail(exc: Exception) -> None:
    """Report an error on stderr and exit with status 1."""
    if isinstance(exc, RunValidationError):
        err_console.print(f"❌ Invalid run ({exc.code}): {exc.message}", style="red")
    else:
        err_console.print(f"❌ {exc}", style="red")
    raise typer.Exit(1)


@contextmanager
def store(ctx: typer.Context) -> Iterator[Session]:
    """Open the configured store for the duration of one command."""
    try:
        database = open_database(ctx.obj["database_url"])
    except (SQLAlchemyError, OSError) as exc:
        fail(exc)
    try:
        with database.session() as db:
            yield db
    finally:
        database.close()


def dump(payload) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def init(ctx: typer.Context):
    """Create the run store if it does not exist."""
    with store(ctx) as db:
        total, _, _ = RunService(db).count()
        location = db.get_bind().url.render_as_string(hide_password=True)
    console.print(f"✅ Learning Loop store ready: {location}")
    if total:
        console.print(f"   {total} runs already recorded")
    else:
        console.print("   Next: loop ingest <run.json>")


@app.command()
def ingest(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Run record JSON file, or - for stdin"),
):
    """Ingest one run record."""
    with store(ctx) as db:
        ingester = Ingester(db)
        try:
            if source == "-":
                result = ingester.ingest_stream(sys.stdin)
            else:
                result = ingester.ingest_file(source)
        except (LearningLoopError, OSError) as exc:
            fail(exc)

        run = result.run
        console.print(f"✅ Ingested run [yellow]{run.id}[/] ({run.outcome})")
        if result.patterns:
            console.print(f"   Patterns: {', '.join(result.patterns)}")


@app.command()
def query(
    ctx: typer.Context,
    description: List[str] = typer.Argument(..., help="Task description"),
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
    inject: bool = typer.Option(False, "--inject", help="Output a markdown block for agent context"),
    max_runs: Optional[int] = typer.Option(None, "--max", help="Maximum relevant runs to consider"),
):
    """Get learnings relevant to a task."""
    settings = get_settings()
    text = " ".join(description)
    with store(ctx) as db:
        engine = QueryEngine(
            db,
            insight_limit=settings.insight_limit,
            top_pattern_limit=settings.top_pattern_limit,
        )
        try:
            result = engine.query(text, max_runs=max_runs or settings.default_max_runs)
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump(result.model_dump(mode="json"))
    elif inject:
        typer.echo(render_query_inject(result), nl=False)
    else:
        render_query(console, result)


@app.command()
def analyze(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Analyze new runs and generate insights."""
    with store(ctx) as db:
        try:
            result = Analyzer(db).analyze()
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump(result.model_dump(mode="json"))
    else:
        render_analysis(console, result)


def _report(ctx: typer.Context, as_json: bool) -> None:
    with store(ctx) as db:
        try:
            result = Reporter(db).generate()
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump(result.model_dump(mode="json"))
    else:
        render_report(console, result)


@app.command()
def status(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Show run counts, patterns and active insights."""
    _report(ctx, as_json)


@app.command()
def report(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """Show the full learning report."""
    _report(ctx, as_json)


@app.command()
def patterns(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """List detected patterns."""
    with store(ctx) as db:
        try:
            views = [p.to_view() for p in PatternService(db).list()]
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump([v.model_dump(mode="json") for v in views])
        return
    if not views:
        console.print("No patterns detected yet. Run: loop analyze")
        return
    render_pattern_rows(console, views)


@app.command()
def insights(
    ctx: typer.Context,
    tags: Optional[str] = typer.Option(None, "--tags", help="Comma-separated tags to filter by"),
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """List active insights."""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    with store(ctx) as db:
        try:
            views = [
                i.to_view()
                for i in InsightService(db).list(active_only=True, tags=tag_list)
            ]
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump([v.model_dump(mode="json") for v in views])
    else:
        render_insights(console, views)


@app.command()
def runs(
    ctx: typer.Context,
    last: Optional[int] = typer.Option(None, "--last", help="Number of runs to show"),
    outcome: Optional[str] = typer.Option(None, "--outcome", help="Filter by outcome"),
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """List recent runs."""
    if outcome and outcome not in OUTCOME_VALUES:
        err_console.print(
            f"❌ Invalid outcome. Use one of: {', '.join(OUTCOME_VALUES)}", style="red"
        )
        raise typer.Exit(1)

    limit = last if last is not None else get_settings().list_runs_default
    with store(ctx) as db:
        try:
            views = [r.to_view() for r in RunService(db).list(limit=limit, outcome=outcome)]
        except LearningLoopError as exc:
            fail(exc)

    if as_json:
        dump([v.model_dump(mode="json") for v in views])
    else:
        render_runs(console, views)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Learning Loop v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()

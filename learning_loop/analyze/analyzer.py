"""
Insight synthesis.

The analyzer processes runs that have not been analyzed yet. It computes
statistics over the whole history, turns frequent patterns and the overall
success rate into insights, and then marks the processed runs as analyzed.

Insight ids are derived from the pattern name (or "overall") and the total
run count, so a second pass over an unchanged history inserts nothing new.
Runs are only marked analyzed after every insight write has succeeded or was
a duplicate; any other failure aborts the pass with the runs left untouched.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List

import structlog
from sqlalchemy.orm import Session

from ..db.models import InsightModel, PatternModel, RunModel
from ..db.services import InsightService, PatternService, RunService
from ..errors import DuplicateEntityError
from ..schemas.enums import PatternCategory
from ..schemas.results import AnalysisResult, PatternSummary, Stats, TagCount

logger = structlog.get_logger()

MIN_PATTERN_FREQUENCY = 3
MIN_RUNS_FOR_OVERALL = 5
TOP_TAG_LIMIT = 10

STRONG_SUCCESS_RATE = 0.8
LOW_SUCCESS_RATE = 0.5
OVERALL_CONFIDENCE = 0.85
CADENCE = "analysis"


def confidence_for(frequency: int) -> float:
    """Confidence tier for a pattern seen `frequency` times."""
    if frequency >= 10:
        return 0.9
    if frequency >= 5:
        return 0.75
    return 0.5


def infer_tags(pattern: PatternModel) -> List[str]:
    if pattern.category == PatternCategory.PROCESS.value:
        return ["process", "workflow"]
    if pattern.category == PatternCategory.CODE.value:
        return ["code-quality", "testing"]
    if pattern.category == PatternCategory.SCOPE.value:
        return ["scope", "efficiency"]
    return [pattern.category]


def insight_text(pattern: PatternModel, stats: Stats) -> str:
    """Render the advice sentence for a pattern."""
    pct = 0.0
    if stats.total_runs > 0:
        pct = pattern.frequency / stats.total_runs * 100
    n = pattern.frequency

    templates = {
        "tests-skipped": f"Tests were skipped in {pct:.0f}% of runs ({n} times). "
        "Always run the test suite before declaring a task complete.",
        "tests-failed": f"Tests failed in {n} runs ({pct:.0f}% of all runs). "
        "Run tests early and often — don't wait until the end.",
        "lint-failed": f"Linter issues found in {n} runs. "
        "Run the linter before committing to catch style and correctness issues early.",
        "scope-creep": f"Scope creep detected in {n} runs ({pct:.0f}%). "
        "Stay focused on the specific task — resist refactoring unrelated code.",
        "quick-failure": f"Quick failures (under 60s) happened {n} times. "
        "When a task fails immediately, read the error carefully before retrying.",
        "long-running": f"Tasks ran over an hour {n} times. "
        "If a task is taking too long, step back and reconsider the approach.",
        "no-test-files": f"Source files were edited without touching tests in {n} runs. "
        "Always update or add tests when modifying source code.",
        "success-with-errors": f"Tasks were marked successful despite errors {n} times. "
        "Investigate error messages even on 'successful' runs.",
    }
    return templates.get(
        pattern.name,
        f"Pattern '{pattern.name}' detected {n} times ({pct:.0f}%): {pattern.description}",
    )


def overall_text(stats: Stats) -> str:
    """Overall success-rate advice; empty when the rate is unremarkable."""
    rate = stats.success_rate * 100
    if stats.success_rate >= STRONG_SUCCESS_RATE:
        return (
            f"Strong performance: {rate:.0f}% success rate across "
            f"{stats.total_runs} runs. Keep doing what works."
        )
    if stats.success_rate < LOW_SUCCESS_RATE:
        return (
            f"Low success rate: only {rate:.0f}% across {stats.total_runs} runs. "
            "Check the top failure patterns and address them systematically."
        )
    return ""


def compute_stats(
    runs: Iterable[RunModel], total: int, success: int, failure: int
) -> Stats:
    """Aggregate statistics over a run history."""
    stats = Stats(total_runs=total, success_runs=success, failure_runs=failure)
    if total > 0:
        stats.success_rate = success / total
        stats.failure_rate = failure / total

    durations: List[int] = []
    tag_counts: Counter = Counter()
    for run in runs:
        if run.duration_seconds is not None:
            durations.append(run.duration_seconds)
        tag_counts.update(run.tags or [])

    if durations:
        stats.avg_duration_seconds = sum(durations) / len(durations)

    ranked = sorted(tag_counts.items(), key=lambda item: (-item[1], item[0]))
    stats.top_tags = [TagCount(tag=tag, count=count) for tag, count in ranked[:TOP_TAG_LIMIT]]
    return stats


def generate_insights(patterns: Iterable[PatternModel], stats: Stats) -> List[InsightModel]:
    """Build (unsaved) insights from pattern frequencies and overall stats."""
    insights: List[InsightModel] = []

    for pattern in patterns:
        if pattern.frequency < MIN_PATTERN_FREQUENCY:
            continue
        insights.append(
            InsightModel(
                id=f"ins-{pattern.name}-{stats.total_runs}",
                text=insight_text(pattern, stats),
                confidence=confidence_for(pattern.frequency),
                based_on_runs=stats.total_runs,
                patterns=[pattern.name],
                tags=infer_tags(pattern),
                cadence=CADENCE,
                active=True,
            )
        )

    if stats.total_runs >= MIN_RUNS_FOR_OVERALL:
        text = overall_text(stats)
        if text:
            insights.append(
                InsightModel(
                    id=f"ins-overall-{stats.total_runs}",
                    text=text,
                    confidence=OVERALL_CONFIDENCE,
                    based_on_runs=stats.total_runs,
                    patterns=[],
                    tags=[],
                    cadence=CADENCE,
                    active=True,
                )
            )

    return insights


class Analyzer:
    """Turns accumulated runs and patterns into insights."""

    def __init__(self, db: Session):
        self.db = db
        self.runs = RunService(db)
        self.patterns = PatternService(db)
        self.insights = InsightService(db)

    def compute_stats(self) -> Stats:
        total, success, failure = self.runs.count()
        return compute_stats(self.runs.list(), total, success, failure)

    def analyze(self) -> AnalysisResult:
        """Run one synthesis pass over the unanalyzed runs."""
        pending = self.runs.get_unanalyzed()
        if not pending:
            logger.debug("analysis_skipped", reason="no_unanalyzed_runs")
            return AnalysisResult()

        stats = self.compute_stats()
        patterns = self.patterns.list()

        summaries = [
            PatternSummary(name=p.name, count=p.frequency, impact=p.impact)
            for p in patterns
            if p.frequency > 0
        ]

        created: List[InsightModel] = []
        for insight in generate_insights(patterns, stats):
            try:
                created.append(self.insights.insert(insight))
            except DuplicateEntityError:
                logger.debug("insight_duplicate_skipped", insight_id=insight.id)

        for run in pending:
            self.runs.mark_analyzed(run.id)

        logger.info(
            "analysis_complete",
            runs_analyzed=len(pending),
            insights_created=len(created),
            total_runs=stats.total_runs,
        )

        return AnalysisResult(
            runs_analyzed=len(pending),
            patterns_found=summaries,
            insights_created=[i.to_view() for i in created],
            stats=stats,
        )

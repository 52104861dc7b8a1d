"""
Relevance query engine.

Answers "what should I know before starting this task?" by ranking stored
runs against the task description and summarizing the best matches.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from ..db.models import InsightModel, RunModel
from ..db.services import InsightService, PatternService, RunService
from ..schemas.enums import Outcome
from ..schemas.results import PatternStat, QueryResult
from .scoring import extract_keywords, score_run

logger = structlog.get_logger()

DEFAULT_MAX_RUNS = 10
MIN_RELEVANCE = 0.5
TOP_PATTERN_LIMIT = 5
INSIGHT_LIMIT = 5

MIN_SIGNAL_SUPPORT = 3
MIN_SIGNAL_RATE = 70.0
SHORT_RUN_SECONDS = 600


@dataclass
class ScoredRun:
    run: RunModel
    score: float


def rank_runs(
    runs: Sequence[RunModel], keywords: Sequence[str], now: datetime, max_runs: int
) -> List[ScoredRun]:
    """Score every run, keep the relevant ones, best first."""
    scored = []
    for run in runs:
        score = score_run(
            task=run.task,
            outcome=run.outcome,
            tags=run.tags or [],
            files_touched=run.files_touched or [],
            timestamp=run.timestamp,
            keywords=keywords,
            now=now,
        )
        if score > MIN_RELEVANCE:
            scored.append(ScoredRun(run=run, score=score))

    scored.sort(key=lambda sr: (-sr.score, sr.run.id))
    return scored[:max_runs]


def _signal(runs: Sequence[RunModel], label: str) -> Optional[str]:
    if len(runs) < MIN_SIGNAL_SUPPORT:
        return None
    successes = sum(1 for r in runs if r.outcome == Outcome.SUCCESS.value)
    rate = successes / len(runs) * 100
    if rate > MIN_SIGNAL_RATE:
        return f"{label} → {rate:.0f}% success rate"
    return None


def derive_success_signals(runs: Sequence[RunModel]) -> List[str]:
    """Behaviors that went with success among the selected runs."""
    if not runs:
        return []

    with_tests = [
        r for r in runs if any("test" in f.lower() for f in (r.files_touched or []))
    ]
    short = [
        r
        for r in runs
        if r.duration_seconds is not None and r.duration_seconds < SHORT_RUN_SECONDS
    ]
    tests_passed = [r for r in runs if r.tests_passed is True]

    candidates = [
        _signal(with_tests, "Edited test files alongside source"),
        _signal(short, "Completed in under 10 minutes"),
        _signal(tests_passed, "Ran tests and they passed"),
    ]
    return [signal for signal in candidates if signal]


class QueryEngine:
    """Ranks historical runs for a task description and summarizes them."""

    def __init__(
        self,
        db: Session,
        insight_limit: int = INSIGHT_LIMIT,
        top_pattern_limit: int = TOP_PATTERN_LIMIT,
    ):
        self.db = db
        self.runs = RunService(db)
        self.patterns = PatternService(db)
        self.insights = InsightService(db)
        self.insight_limit = insight_limit
        self.top_pattern_limit = top_pattern_limit

    def _top_patterns(self, runs: Sequence[RunModel]) -> List[PatternStat]:
        counts: Counter = Counter()
        details: Dict[str, PatternStat] = {}
        for run in runs:
            for pattern in self.patterns.for_run(run.id):
                counts[pattern.name] += 1
                if pattern.name not in details:
                    details[pattern.name] = PatternStat(
                        name=pattern.name,
                        description=pattern.description,
                        count=0,
                        impact=pattern.impact,
                    )

        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        top = []
        for name, count in ranked[: self.top_pattern_limit]:
            top.append(details[name].model_copy(update={"count": count}))
        return top

    def _relevant_insights(self, keywords: Sequence[str]) -> List[InsightModel]:
        insights = self.insights.list(active_only=True, tags=keywords) if keywords else []
        if not insights:
            insights = self.insights.list(active_only=True)
        return insights[: self.insight_limit]

    def query(
        self,
        description: str,
        max_runs: int = DEFAULT_MAX_RUNS,
        now: Optional[datetime] = None,
    ) -> QueryResult:
        """Collect learnings relevant to a task description."""
        if max_runs <= 0:
            max_runs = DEFAULT_MAX_RUNS
        now = now or datetime.now(timezone.utc)

        keywords = extract_keywords(description)
        all_runs = self.runs.list()

        scored = rank_runs(all_runs, keywords, now, max_runs)
        selected = [sr.run for sr in scored]

        success_rate = 0.0
        if selected:
            successes = sum(1 for r in selected if r.outcome == Outcome.SUCCESS.value)
            success_rate = successes / len(selected)

        result = QueryResult(
            query=description,
            total_runs=len(all_runs),
            matched_runs=len(selected),
            success_rate=success_rate,
            insights=[i.to_view() for i in self._relevant_insights(keywords)],
            top_patterns=self._top_patterns(selected),
            success_signals=derive_success_signals(selected),
            relevant_runs=[r.to_view() for r in selected],
        )

        logger.info(
            "query_complete",
            keywords=keywords,
            total_runs=result.total_runs,
            matched_runs=result.matched_runs,
        )
        return result

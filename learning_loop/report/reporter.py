"""
Whole-history summary report.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..db.services import InsightService, PatternService, RunService
from ..schemas.results import Report


class Reporter:
    """Builds the status / report summary."""

    def __init__(self, db: Session):
        self.db = db
        self.runs = RunService(db)
        self.patterns = PatternService(db)
        self.insights = InsightService(db)

    def generate(self) -> Report:
        total, success, failure = self.runs.count()
        patterns = self.patterns.list()
        insights = self.insights.list(active_only=True)

        return Report(
            total_runs=total,
            success_runs=success,
            failure_runs=failure,
            success_rate=success / total if total else 0.0,
            patterns=[p.to_view() for p in patterns],
            insights=[i.to_view() for i in insights],
        )

"""
Database services for Learning Loop.

Each service wraps one entity family and commits every write before
returning. SQLAlchemy failures surface as StorageError carrying the operation
name; unique-key collisions surface as DuplicateEntityError.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import asc, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import (
    DuplicateEntityError,
    LearningLoopError,
    NotFoundError,
    RunValidationError,
    StorageError,
)
from ..schemas.enums import Outcome
from ..schemas.run import RunRecord
from .models import InsightModel, PatternMatchModel, PatternModel, RunModel


@contextmanager
def storage_operation(db: Session, operation: str) -> Iterator[None]:
    """Roll back and wrap any SQLAlchemy failure raised inside the block."""
    try:
        yield
    except LearningLoopError:
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(operation, exc) from exc


class RunService:
    """Service for managing runs in the database."""

    def __init__(self, db: Session):
        self.db = db

    def insert(self, run: RunRecord) -> RunModel:
        """Persist a validated run record."""
        for field_name in ("id", "task", "outcome", "timestamp"):
            if not getattr(run, field_name):
                raise RunValidationError(
                    "MISSING_FIELD", f"missing required field: {field_name}"
                )

        db_run = RunModel(
            id=run.id,
            task=run.task,
            outcome=run.outcome,
            duration_seconds=run.duration_seconds,
            timestamp=run.timestamp,
            tools_used=list(run.tools_used),
            files_touched=list(run.files_touched),
            tests_passed=run.tests_passed,
            lint_passed=run.lint_passed,
            error_message=run.error_message,
            tags=list(run.tags),
            agent=run.agent or "",
            model=run.model or "",
            meta=dict(run.metadata or {}),
            analyzed=False,
        )

        with storage_operation(self.db, "insert run"):
            if self.db.get(RunModel, run.id) is not None:
                raise DuplicateEntityError("run", run.id)
            self.db.add(db_run)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                if self.exists(run.id):
                    raise DuplicateEntityError("run", run.id) from exc
                raise
            self.db.refresh(db_run)
        return db_run

    def get(self, run_id: str) -> RunModel:
        """Get a run by ID."""
        with storage_operation(self.db, "get run"):
            run = self.db.get(RunModel, run_id)
        if run is None:
            raise NotFoundError("run", run_id)
        return run

    def exists(self, run_id: str) -> bool:
        with storage_operation(self.db, "check run exists"):
            return (
                self.db.query(RunModel.id).filter(RunModel.id == run_id).first()
                is not None
            )

    def list(self, limit: int = 0, outcome: Optional[str] = None) -> List[RunModel]:
        """List runs newest first; a limit of zero or less means no limit."""
        with storage_operation(self.db, "list runs"):
            query = self.db.query(RunModel)
            if outcome:
                query = query.filter(RunModel.outcome == outcome)
            query = query.order_by(desc(RunModel.timestamp), asc(RunModel.id))
            if limit > 0:
                query = query.limit(limit)
            return query.all()

    def count(self) -> Tuple[int, int, int]:
        """Return (total, success, failure) run counts."""
        with storage_operation(self.db, "count runs"):
            total = self.db.query(RunModel).count()
            success = (
                self.db.query(RunModel)
                .filter(RunModel.outcome == Outcome.SUCCESS.value)
                .count()
            )
            failure = (
                self.db.query(RunModel)
                .filter(RunModel.outcome == Outcome.FAILURE.value)
                .count()
            )
        return total, success, failure

    def get_unanalyzed(self) -> List[RunModel]:
        """Runs not yet processed by the analyzer, oldest first."""
        with storage_operation(self.db, "get unanalyzed runs"):
            return (
                self.db.query(RunModel)
                .filter(RunModel.analyzed.is_(False))
                .order_by(asc(RunModel.timestamp), asc(RunModel.id))
                .all()
            )

    def mark_analyzed(self, run_id: str) -> RunModel:
        """Flip the analyzed flag. The flag never goes back to false."""
        run = self.get(run_id)
        if run.analyzed:
            return run
        with storage_operation(self.db, "mark run analyzed"):
            run.analyzed = True
            self.db.commit()
            self.db.refresh(run)
        return run


class PatternService:
    """Service for managing patterns and pattern matches."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, pattern: PatternModel) -> PatternModel:
        """Insert a pattern, or merge it into the existing one of the same name.

        On merge the frequency accumulates and last_seen and description are
        overwritten; everything else keeps its first-seen value.
        """
        with storage_operation(self.db, f"upsert pattern {pattern.name}"):
            existing = (
                self.db.query(PatternModel)
                .filter(PatternModel.name == pattern.name)
                .first()
            )
            if existing is None:
                if pattern.frequency is None:
                    pattern.frequency = 0
                self.db.add(pattern)
                self.db.commit()
                self.db.refresh(pattern)
                return pattern

            existing.frequency = (existing.frequency or 0) + (pattern.frequency or 0)
            existing.last_seen = pattern.last_seen
            existing.description = pattern.description
            self.db.commit()
            self.db.refresh(existing)
            return existing

    def get_by_name(self, name: str) -> PatternModel:
        with storage_operation(self.db, "get pattern"):
            pattern = (
                self.db.query(PatternModel).filter(PatternModel.name == name).first()
            )
        if pattern is None:
            raise NotFoundError("pattern", name)
        return pattern

    def list(self) -> List[PatternModel]:
        """All patterns, most frequent first."""
        with storage_operation(self.db, "list patterns"):
            return (
                self.db.query(PatternModel)
                .order_by(desc(PatternModel.frequency), asc(PatternModel.name))
                .all()
            )

    def _match_exists(self, run_id: str, pattern_id: str) -> bool:
        return (
            self.db.query(PatternMatchModel.id)
            .filter(
                PatternMatchModel.run_id == run_id,
                PatternMatchModel.pattern_id == pattern_id,
            )
            .first()
            is not None
        )

    def add_match(self, run_id: str, pattern_id: str) -> None:
        """Record that a run matched a pattern. Repeats are a no-op."""
        with storage_operation(self.db, f"add pattern match {pattern_id}"):
            if self._match_exists(run_id, pattern_id):
                return
            self.db.add(PatternMatchModel(run_id=run_id, pattern_id=pattern_id))
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                if not self._match_exists(run_id, pattern_id):
                    raise

    def for_run(self, run_id: str) -> List[PatternModel]:
        """Patterns matched against one run."""
        with storage_operation(self.db, "get patterns for run"):
            return (
                self.db.query(PatternModel)
                .join(PatternMatchModel, PatternMatchModel.pattern_id == PatternModel.id)
                .filter(PatternMatchModel.run_id == run_id)
                .order_by(desc(PatternModel.frequency), asc(PatternModel.name))
                .all()
            )


def has_any_tag(haystack: Sequence[str], needles: Sequence[str]) -> bool:
    tags = set(haystack or [])
    return any(needle in tags for needle in needles)


class InsightService:
    """Service for managing insights in the database."""

    def __init__(self, db: Session):
        self.db = db

    def insert(self, insight: InsightModel) -> InsightModel:
        """Persist an insight; an existing id raises DuplicateEntityError."""
        if insight.active is None:
            insight.active = True
        with storage_operation(self.db, "insert insight"):
            if self.db.get(InsightModel, insight.id) is not None:
                raise DuplicateEntityError("insight", insight.id)
            self.db.add(insight)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                if self.db.get(InsightModel, insight.id) is not None:
                    raise DuplicateEntityError("insight", insight.id) from exc
                raise
            self.db.refresh(insight)
        return insight

    def get(self, insight_id: str) -> InsightModel:
        with storage_operation(self.db, "get insight"):
            insight = self.db.get(InsightModel, insight_id)
        if insight is None:
            raise NotFoundError("insight", insight_id)
        return insight

    def list(
        self, active_only: bool = True, tags: Optional[Sequence[str]] = None
    ) -> List[InsightModel]:
        """List insights by confidence, then recency.

        A non-empty tag filter keeps insights carrying any of the given tags.
        """
        with storage_operation(self.db, "list insights"):
            query = self.db.query(InsightModel)
            if active_only:
                query = query.filter(InsightModel.active.is_(True))
            insights = query.order_by(
                desc(InsightModel.confidence),
                desc(InsightModel.created_at),
                asc(InsightModel.id),
            ).all()

        if tags:
            insights = [i for i in insights if has_any_tag(i.tags, tags)]
        return insights

    def deactivate(self, insight_id: str) -> InsightModel:
        """Soft-delete an insight."""
        insight = self.get(insight_id)
        with storage_operation(self.db, "deactivate insight"):
            insight.active = False
            self.db.commit()
            self.db.refresh(insight)
        return insight

    def count(self) -> int:
        """Number of active insights."""
        with storage_operation(self.db, "count insights"):
            return (
                self.db.query(InsightModel)
                .filter(InsightModel.active.is_(True))
                .count()
            )

"""
SQLAlchemy models for Learning Loop.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from ..schemas.results import InsightView, PatternView
from ..schemas.run import StoredRun
from .base import Base


def _iso(value) -> Any:
    return value.isoformat() if value else None


class RunModel(Base):
    """One recorded agent task execution."""

    __tablename__ = "runs"

    id = Column(String(128), primary_key=True)
    task = Column(Text, nullable=False)
    outcome = Column(String(16), nullable=False)
    duration_seconds = Column(Integer, nullable=True)
    # Kept as the caller's string so unparseable values survive storage
    timestamp = Column(String(64), nullable=False)

    tools_used = Column(JSON, nullable=False, default=list)
    files_touched = Column(JSON, nullable=False, default=list)
    tests_passed = Column(Boolean, nullable=True)
    lint_passed = Column(Boolean, nullable=True)
    error_message = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    agent = Column(String(128), nullable=False, default="")
    model = Column(String(128), nullable=False, default="")
    meta = Column("metadata", JSON, nullable=False, default=dict)

    analyzed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_runs_outcome", "outcome"),
        Index("ix_runs_timestamp", "timestamp"),
        Index("ix_runs_analyzed", "analyzed"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "task": self.task,
            "outcome": self.outcome,
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp,
            "tools_used": list(self.tools_used or []),
            "files_touched": list(self.files_touched or []),
            "tests_passed": self.tests_passed,
            "lint_passed": self.lint_passed,
            "error_message": self.error_message,
            "tags": list(self.tags or []),
            "agent": self.agent,
            "model": self.model,
            "metadata": dict(self.meta or {}),
            "analyzed": bool(self.analyzed),
            "created_at": _iso(self.created_at),
        }

    def to_view(self) -> StoredRun:
        return StoredRun.model_validate(self.to_dict())


class PatternModel(Base):
    """A named behavioral signature with its accumulated frequency."""

    __tablename__ = "patterns"

    id = Column(String(128), primary_key=True)
    name = Column(String(128), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    category = Column(String(64), nullable=False)
    impact = Column(String(16), nullable=False)
    outcome_correlation = Column(String(16), nullable=False, default="")
    frequency = Column(Integer, nullable=False, default=0)
    first_seen = Column(String(64), nullable=True)
    last_seen = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (Index("ix_patterns_name", "name"),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "impact": self.impact,
            "outcome_correlation": self.outcome_correlation,
            "frequency": self.frequency,
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
            "created_at": _iso(self.created_at),
        }

    def to_view(self) -> PatternView:
        return PatternView.model_validate(self.to_dict())


class PatternMatchModel(Base):
    """Evidence linking a run to a pattern."""

    __tablename__ = "pattern_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(128), ForeignKey("runs.id"), nullable=False)
    pattern_id = Column(String(128), ForeignKey("patterns.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        UniqueConstraint("run_id", "pattern_id", name="uq_pattern_matches_run_pattern"),
        Index("ix_pattern_matches_run", "run_id"),
        Index("ix_pattern_matches_pattern", "pattern_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "run_id": self.run_id,
            "pattern_id": self.pattern_id,
            "created_at": _iso(self.created_at),
        }


class InsightModel(Base):
    """A synthesized statement with a confidence score."""

    __tablename__ = "insights"

    id = Column(String(128), primary_key=True)
    text = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False)
    based_on_runs = Column(Integer, nullable=False)
    patterns = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    cadence = Column(String(32), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_insights_active", "active"),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "confidence": self.confidence,
            "based_on_runs": self.based_on_runs,
            "patterns": list(self.patterns or []),
            "tags": list(self.tags or []),
            "cadence": self.cadence,
            "active": bool(self.active),
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
        }

    def to_view(self) -> InsightView:
        return InsightView.model_validate(self.to_dict())

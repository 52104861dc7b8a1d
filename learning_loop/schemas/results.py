"""
Result schemas returned by the analyzer, query engine and reporter.

None of these are persisted; they exist to be rendered or dumped as JSON.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .run import StoredRun


class PatternView(BaseModel):
    """A stored pattern."""

    id: str
    name: str
    description: str
    category: str
    impact: str
    outcome_correlation: str = ""
    frequency: int = 0
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None
    created_at: Optional[str] = None


class InsightView(BaseModel):
    """A stored insight."""

    id: str
    text: str
    confidence: float
    based_on_runs: int
    patterns: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    cadence: str
    active: bool = True
    created_at: Optional[str] = None
    expires_at: Optional[str] = None


class TagCount(BaseModel):
    tag: str
    count: int


class Stats(BaseModel):
    """Aggregate statistics over the whole run history."""

    total_runs: int = 0
    success_runs: int = 0
    failure_runs: int = 0
    success_rate: float = 0.0
    failure_rate: float = 0.0
    avg_duration_seconds: float = 0.0
    top_tags: List[TagCount] = Field(default_factory=list)


class PatternSummary(BaseModel):
    name: str
    count: int
    impact: str


class AnalysisResult(BaseModel):
    """Outcome of one analyzer pass."""

    runs_analyzed: int = 0
    patterns_found: List[PatternSummary] = Field(default_factory=list)
    insights_created: List[InsightView] = Field(default_factory=list)
    stats: Stats = Field(default_factory=Stats)


class PatternStat(BaseModel):
    """How often a pattern showed up among the runs relevant to a query."""

    name: str
    description: str
    count: int
    impact: str


class QueryResult(BaseModel):
    """Everything the loop knows that is relevant to one task description."""

    query: str
    total_runs: int = 0
    matched_runs: int = 0
    success_rate: float = 0.0
    insights: List[InsightView] = Field(default_factory=list)
    top_patterns: List[PatternStat] = Field(default_factory=list)
    success_signals: List[str] = Field(default_factory=list)
    relevant_runs: List[StoredRun] = Field(default_factory=list)


class Report(BaseModel):
    """Whole-history summary."""

    total_runs: int = 0
    success_runs: int = 0
    failure_runs: int = 0
    success_rate: float = 0.0
    patterns: List[PatternView] = Field(default_factory=list)
    insights: List[InsightView] = Field(default_factory=list)

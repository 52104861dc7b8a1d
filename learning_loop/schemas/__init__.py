"""
Pydantic schemas for Learning Loop.
"""

from .enums import OUTCOME_VALUES, Impact, Outcome, PatternCategory
from .results import (
    AnalysisResult,
    InsightView,
    PatternStat,
    PatternSummary,
    PatternView,
    QueryResult,
    Report,
    Stats,
    TagCount,
)
from .run import RunRecord, StoredRun

__all__ = [
    "OUTCOME_VALUES",
    "Impact",
    "Outcome",
    "PatternCategory",
    "AnalysisResult",
    "InsightView",
    "PatternStat",
    "PatternSummary",
    "PatternView",
    "QueryResult",
    "Report",
    "Stats",
    "TagCount",
    "RunRecord",
    "StoredRun",
]

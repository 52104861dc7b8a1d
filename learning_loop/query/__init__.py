"""
Relevance queries over the run history.
"""

from .engine import QueryEngine, ScoredRun, derive_success_signals, rank_runs
from .scoring import extract_keywords, parse_timestamp, recency_factor, score_run

__all__ = [
    "QueryEngine",
    "ScoredRun",
    "derive_success_signals",
    "extract_keywords",
    "parse_timestamp",
    "rank_runs",
    "recency_factor",
    "score_run",
]

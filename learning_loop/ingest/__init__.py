"""
Run ingestion and pattern detection.
"""

from .ingester import IngestResult, Ingester, parse_run, validate_run
from .patterns import BUILTIN_RULES, PatternRule, detect_and_store, evaluate_rules

__all__ = [
    "BUILTIN_RULES",
    "IngestResult",
    "Ingester",
    "PatternRule",
    "detect_and_store",
    "evaluate_rules",
    "parse_run",
    "validate_run",
]

"""
Canonical enums for Learning Loop.
"""

from enum import Enum


class Outcome(str, Enum):
    """Terminal status of a run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"
    ERROR = "error"


class Impact(str, Enum):
    """How much a pattern tends to hurt a run."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PatternCategory(str, Enum):
    """Families of detected patterns."""

    PROCESS = "process"
    CODE = "code"
    SCOPE = "scope"


OUTCOME_VALUES = tuple(o.value for o in Outcome)

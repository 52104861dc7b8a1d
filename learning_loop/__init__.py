"""
Learning Loop

Captures what coding agents do, learns which behaviors work,
and feeds that knowledge back into future runs.
"""

import importlib.metadata

__version__ = importlib.metadata.version("learning-loop")

from .analyze import Analyzer
from .ingest import Ingester
from .query import QueryEngine
from .report import Reporter

__all__ = [
    "Analyzer",
    "Ingester",
    "QueryEngine",
    "Reporter",
]

"""
Database package for Learning Loop.
"""

from .base import Base, Database, get_database_url, open_database
from .models import InsightModel, PatternMatchModel, PatternModel, RunModel
from .services import InsightService, PatternService, RunService

__all__ = [
    "Base",
    "Database",
    "get_database_url",
    "open_database",
    "RunModel",
    "PatternModel",
    "PatternMatchModel",
    "InsightModel",
    "RunService",
    "PatternService",
    "InsightService",
]

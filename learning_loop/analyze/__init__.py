"""
Insight synthesis from runs and patterns.
"""

from .analyzer import Analyzer, compute_stats, confidence_for, generate_insights

__all__ = ["Analyzer", "compute_stats", "confidence_for", "generate_insights"]

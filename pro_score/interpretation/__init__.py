"""Interpretation layer for classifying scores into severity bands."""

from pro_score.interpretation.severity import (
    DEFAULT_SEVERITY,
    meaning_of,
    severity_of,
    sort_bands,
)

__all__ = [
    "DEFAULT_SEVERITY",
    "meaning_of",
    "severity_of",
    "sort_bands",
]

"""Score resolution for questionnaire response items."""

from pro_score.scoring.constants import (
    DEFAULT_FALLBACK_SCORE_MAP,
    DEFAULT_VALUE_TO_LOINC_CODING,
    LOINC_SYSTEM,
)
from pro_score.scoring.resolver import ScoreResolver

__all__ = [
    "DEFAULT_FALLBACK_SCORE_MAP",
    "DEFAULT_VALUE_TO_LOINC_CODING",
    "LOINC_SYSTEM",
    "ScoreResolver",
]

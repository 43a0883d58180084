"""Matching of questionnaire references and item linkIds."""

from pro_score.matching.matcher import (
    fuzzy_match,
    link_id_equals,
    normalize_link_id,
    normalize_ref,
    normalize_str,
    questionnaire_ref_matches,
)

__all__ = [
    "fuzzy_match",
    "link_id_equals",
    "normalize_link_id",
    "normalize_ref",
    "normalize_str",
    "questionnaire_ref_matches",
]

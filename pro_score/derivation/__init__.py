"""Derivation of single-item responses from host questionnaires."""

from pro_score.derivation.builder import (
    default_normalize_answer_to_coding,
    derive_for_config,
    derive_single_link_responses,
    is_host_response,
)

__all__ = [
    "default_normalize_answer_to_coding",
    "derive_for_config",
    "derive_single_link_responses",
    "is_host_response",
]

"""Severity classification for numeric scores.

Maps a score onto the configured severity bands. Bands are evaluated
highest threshold first; the lowest band doubles as the catch-all for
scores below every threshold.
"""

from collections.abc import Iterable, Sequence
from typing import Any

from pro_score.items.answers import is_number
from pro_score.matching import link_id_equals
from pro_score.registry.models import ScoringConfig, SeverityBand

DEFAULT_SEVERITY = "low"


def sort_bands(bands: Iterable[SeverityBand] | None) -> list[SeverityBand]:
    """Return bands sorted descending by threshold."""
    return sorted(bands or [], key=lambda band: band.min, reverse=True)


def severity_of(score: Any, bands: Sequence[SeverityBand] | None) -> str:
    """Classify a score into a severity label.

    Args:
        score: The numeric score (anything else classifies as "low").
        bands: Severity bands, already sorted descending by ``min``.

    Returns:
        The label of the first band whose ``min`` is at or below the score,
        the last band's label if the score is below every threshold, or
        "low" when there are no bands or the score is not numeric.
    """
    if not bands or not is_number(score):
        return DEFAULT_SEVERITY
    for band in bands:
        if band.min <= score:
            return band.label
    return bands[-1].label


def meaning_of(
    severity: str | None,
    config: ScoringConfig,
    responses: Sequence[Any] | None = None,
) -> str | None:
    """Get the meaning text for a severity label.

    When the config names a ``meaning_question_id`` and the formatted
    responses contain an answer for it, that answer is the meaning.
    Otherwise the meaning of the band with the matching label is used.

    Args:
        severity: The severity label.
        config: The instrument config.
        responses: Formatted responses (objects with ``id``/``answer``).

    Returns:
        The meaning text, or None.
    """
    if config.meaning_question_id:
        for response in responses or []:
            if link_id_equals(
                getattr(response, "id", None),
                config.meaning_question_id,
                config.link_id_match_mode,
            ):
                answer = getattr(response, "answer", None)
                if answer is not None:
                    return str(answer).replace('"', "")
    band = config.band_for_label(severity)
    return band.meaning if band else None

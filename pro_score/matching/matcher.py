"""Reference matching for questionnaire identifiers and item linkIds.

Questionnaire references arrive in several shapes: canonical URLs,
``Questionnaire/<id>`` references, bare ids and display names. The
matcher normalizes both sides before comparing them under one of two
modes:

- ``strict``: exact equality after normalization.
- ``fuzzy``: either string contains the other. Fuzzy comparison also
  ignores separators, so ``PHQ-9`` and ``phq9`` match.
"""

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pro_score.registry.models import ScoringConfig

_REFERENCE_PREFIX = re.compile(r"^/?questionnaire/", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\s\-_.]+")


def normalize_str(value: Any) -> str:
    """Trim and lower-case any value; None becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_ref(value: Any) -> str:
    """Normalize a questionnaire reference for comparison.

    Strips a leading ``Questionnaire/`` (or ``/Questionnaire/``) prefix,
    trims whitespace and lower-cases.
    """
    text = str(value).strip() if value is not None else ""
    return _REFERENCE_PREFIX.sub("", text).strip().lower()


def normalize_link_id(value: Any) -> str:
    """Normalize an item linkId by trimming and removing leading slashes."""
    if value is None:
        return ""
    return str(value).strip().lstrip("/")


def fuzzy_match(a: Any, b: Any) -> bool:
    """Check whether either normalized string contains the other."""
    left = normalize_str(a)
    right = normalize_str(b)
    if not left or not right:
        return False
    if left in right or right in left:
        return True
    left = _SEPARATORS.sub("", left)
    right = _SEPARATORS.sub("", right)
    return bool(left and right) and (left in right or right in left)


def link_id_equals(a: Any, b: Any, mode: str = "strict") -> bool:
    """Compare two linkIds under the given match mode.

    Args:
        a: First linkId.
        b: Second linkId.
        mode: "strict" for equality, "fuzzy" for containment.

    Returns:
        True if the linkIds match. Empty linkIds never match.
    """
    left = normalize_link_id(a)
    right = normalize_link_id(b)
    if not left or not right:
        return False
    if mode == "strict":
        return left == right
    return left in right or right in left


def questionnaire_ref_matches(
    candidate_ref: Any,
    config: "ScoringConfig",
    match_mode: str | None = None,
) -> bool:
    """Check whether a questionnaire reference identifies a configured instrument.

    Identifiers are tried in priority order: url, id, name, then key.

    Args:
        candidate_ref: Reference string from a response or bundle.
        config: Instrument config carrying the identifiers to match.
        match_mode: Override for the config's match mode.

    Returns:
        True if any configured identifier matches the reference.
    """
    ref = normalize_ref(candidate_ref)
    if not ref:
        return False

    mode = match_mode or getattr(config, "match_mode", "fuzzy") or "fuzzy"
    identifiers = [
        normalize_ref(getattr(config, "questionnaire_url", "")),
        normalize_ref(getattr(config, "questionnaire_id", "")),
        normalize_ref(getattr(config, "questionnaire_name", "")),
        normalize_ref(getattr(config, "key", "")),
    ]

    for identifier in identifiers:
        if not identifier:
            continue
        if mode == "strict":
            if ref == identifier:
                return True
        elif fuzzy_match(ref, identifier):
            return True
    return False

"""Readers for FHIR ``answer`` entries.

An answer holds exactly one ``value[x]`` field. These helpers extract a
primitive value or a coding regardless of which variant was used.
"""

import json
from typing import Any

from pydantic import BaseModel

PRIMITIVE_FIELDS = (
    "valueBoolean",
    "valueInteger",
    "valueDecimal",
    "valueString",
    "valueDate",
    "valueDateTime",
    "valueTime",
    "valueUri",
)


class Coding(BaseModel):
    """The code/display pair of a ``valueCoding`` answer."""

    code: str | None = None
    display: str | None = None
    system: str | None = None


def primitive_of(answer: Any) -> Any:
    """Extract the primitive value of an answer entry.

    Checks typed fields in a fixed priority order and returns the first
    one present. Strings are returned as strings, never parsed.

    Args:
        answer: A FHIR answer dict (or an extension dict).

    Returns:
        The primitive value, or None.
    """
    if not isinstance(answer, dict):
        return None
    for field in PRIMITIVE_FIELDS:
        if field in answer:
            return answer[field]
    if "valueQuantity" in answer:
        quantity = answer["valueQuantity"]
        return quantity.get("value") if isinstance(quantity, dict) else None
    if "valueReference" in answer:
        reference = answer["valueReference"]
        return reference.get("reference") if isinstance(reference, dict) else None
    return None


def coding_of(answer: Any) -> Coding | None:
    """Extract the ``valueCoding`` of an answer entry, if any."""
    if not isinstance(answer, dict):
        return None
    coding = answer.get("valueCoding")
    if not isinstance(coding, dict):
        return None
    code = coding.get("code")
    return Coding(
        code=str(code) if code is not None else None,
        display=coding.get("display"),
        system=coding.get("system"),
    )


def codeable_concept_text(concept: Any) -> str | None:
    """Human readable text of a CodeableConcept: text, then display, then code."""
    if not isinstance(concept, dict):
        return None
    text = concept.get("text")
    if isinstance(text, str) and text.strip():
        return text
    codings = [c for c in concept.get("coding") or [] if isinstance(c, dict)]
    for coding in codings:
        if coding.get("display"):
            return coding["display"]
    for coding in codings:
        if coding.get("code"):
            return str(coding["code"])
    return None


def is_number(value: Any) -> bool:
    """True for int/float values, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _single_display_value(answer: Any, fallback_score_map: dict[str, int] | None) -> Any:
    if answer is None:
        return None
    if not isinstance(answer, dict):
        return answer

    coding = coding_of(answer)
    if coding is not None:
        if coding.display is not None:
            return coding.display
        if coding.code is not None and fallback_score_map:
            return fallback_score_map.get(coding.code.lower())
        return None

    primitive = primitive_of(answer)
    if primitive is not None:
        return primitive

    concept_text = codeable_concept_text(answer.get("valueCodeableConcept"))
    if concept_text is not None:
        return concept_text
    return json.dumps(answer, sort_keys=True)


def display_value(
    answers: Any,
    fallback_score_map: dict[str, int] | None = None,
    join_with: str = "\n",
) -> Any:
    """Render an answer (or list of answers) for display.

    Codings prefer their display text, then primitives are shown as-is,
    then CodeableConcept text. Multiple answers are joined into one string.

    Args:
        answers: A single answer entry, a list of entries, or a bare scalar.
        fallback_score_map: Used to render codings that lack a display.
        join_with: Separator for multiple answers.

    Returns:
        The display value, or None when there is nothing to show.
    """
    if isinstance(answers, list):
        values = [
            value
            for value in (_single_display_value(a, fallback_score_map) for a in answers)
            if value is not None and value != ""
        ]
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return join_with.join(str(v) for v in values)
    return _single_display_value(answers, fallback_score_map)

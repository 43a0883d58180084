"""Helpers for walking Questionnaire definition item trees."""

from collections.abc import Iterator
from typing import Any

from pro_score.matching import link_id_equals

ANSWER_TYPES = frozenset(
    {
        "boolean",
        "decimal",
        "coding",
        "integer",
        "date",
        "dateTime",
        "time",
        "string",
        "text",
        "choice",
        "open-choice",
        "quantity",
    }
)

CALCULATED_EXPRESSION_URLS = (
    "http://hl7.org/fhir/uv/sdc/StructureDefinition/sdc-questionnaire-calculatedExpression",
    "http://hl7.org/fhir/StructureDefinition/cqf-calculatedValue",
)


def iter_definition_items(definition: dict[str, Any] | None) -> Iterator[dict[str, Any]]:
    """Yield every item of a definition in document order."""

    def walk(nodes: Any) -> Iterator[dict[str, Any]]:
        if not isinstance(nodes, list):
            return
        for node in nodes:
            if not isinstance(node, dict):
                continue
            yield node
            yield from walk(node.get("item"))

    if isinstance(definition, dict):
        yield from walk(definition.get("item"))


def find_definition_item(
    definition: dict[str, Any] | None,
    link_id: str,
    mode: str = "strict",
) -> dict[str, Any] | None:
    """Find the first definition item matching a linkId."""
    for item in iter_definition_items(definition):
        if link_id_equals(item.get("linkId"), link_id, mode):
            return item
    return None


def _extensions(item: dict[str, Any]) -> list[dict[str, Any]]:
    return [ext for ext in item.get("extension") or [] if isinstance(ext, dict)]


def is_calculated_item(item: dict[str, Any] | None) -> bool:
    """True when an item's value is computed by an expression."""
    if not isinstance(item, dict):
        return False
    for ext in _extensions(item):
        url = str(ext.get("url") or "")
        if url in CALCULATED_EXPRESSION_URLS or url.endswith("calculatedExpression"):
            return True
        if "valueExpression" in ext:
            return True
    return False


def is_help_item(item: dict[str, Any] | None) -> bool:
    """True when an item is flagged as help text via an itemControl extension."""
    if not isinstance(item, dict):
        return False
    for ext in _extensions(item):
        concept = ext.get("valueCodeableConcept")
        if not isinstance(concept, dict):
            continue
        for coding in concept.get("coding") or []:
            if isinstance(coding, dict) and coding.get("code") == "help":
                return True
    return False

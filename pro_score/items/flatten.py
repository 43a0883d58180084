"""Flattening of nested QuestionnaireResponse item trees."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

MAX_DEPTH = 100


def flatten_items(items: list[dict[str, Any]] | None, max_depth: int = MAX_DEPTH) -> list[dict[str, Any]]:
    """Walk a response item tree into a flat, document-ordered list.

    Every item encountered is emitted, followed by its nested group items
    (``item.item``) and any sub-questions nested under its answers
    (``answer[].item``).

    Args:
        items: Top-level ``item`` list of a QuestionnaireResponse.
        max_depth: Nesting depth at which the walk stops.

    Returns:
        Flat list of item dicts. Empty when input is absent or malformed.
    """
    out: list[dict[str, Any]] = []

    def walk(nodes: Any, depth: int) -> None:
        if depth > max_depth:
            logger.warning("Item tree exceeds max depth %d; truncating", max_depth)
            return
        if not isinstance(nodes, list):
            return
        for node in nodes:
            if not isinstance(node, dict):
                continue
            out.append(node)
            walk(node.get("item"), depth + 1)
            answers = node.get("answer")
            if isinstance(answers, list):
                for answer in answers:
                    if isinstance(answer, dict):
                        walk(answer.get("item"), depth + 1)

    walk(items, 0)
    return out


def first_answer(item: dict[str, Any] | None) -> Any:
    """Return the first answer of an item.

    FHIR answers are lists of ``{value[x]: ...}`` entries; loosely shaped
    items may carry a bare scalar instead, which is returned unchanged.
    """
    if not isinstance(item, dict):
        return None
    answer = item.get("answer")
    if isinstance(answer, list):
        return answer[0] if answer else None
    return answer


def has_answer(item: dict[str, Any] | None) -> bool:
    """Check whether an item carries at least one answer."""
    answer = first_answer(item)
    return answer is not None and answer != ""

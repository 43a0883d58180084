"""Derived responses for instruments answered inside another questionnaire.

Some instruments have no responses of their own: their single question is
asked as part of a host questionnaire (e.g. the PHQ-9 suicide ideation
item feeds CIRG-SI). The derivation builder copies that one item out of
each host response into a new response for the target questionnaire.
"""

import copy
import logging
from collections.abc import Callable, Iterable
from typing import Any

from pro_score.bundle.grouper import QUESTIONNAIRE_RESPONSE
from pro_score.items import flatten_items
from pro_score.matching import link_id_equals, normalize_str, questionnaire_ref_matches
from pro_score.registry.models import ScoringConfig
from pro_score.scoring.constants import DEFAULT_VALUE_TO_LOINC_CODING

logger = logging.getLogger(__name__)

DERIVED_CODING_SYSTEM = "local/derived"

AnswerNormalizer = Callable[[Any], dict[str, Any]]


def default_normalize_answer_to_coding(answer: Any) -> dict[str, Any]:
    """Convert a bare scalar answer into a ``valueCoding`` answer entry.

    Known frequency phrases map to their LOINC answer codes; anything else
    becomes a local coding whose code is the lower-cased text.
    """
    display = "" if answer is None else str(answer)
    known = DEFAULT_VALUE_TO_LOINC_CODING.get(normalize_str(display))
    if known is not None:
        return {"valueCoding": dict(known)}
    return {
        "valueCoding": {
            "system": DERIVED_CODING_SYSTEM,
            "code": display.strip().lower(),
            "display": display,
        }
    }


def _unwrap(response: Any) -> dict[str, Any] | None:
    if isinstance(response, dict) and isinstance(response.get("resource"), dict):
        response = response["resource"]
    if isinstance(response, dict) and response.get("resourceType", QUESTIONNAIRE_RESPONSE) == QUESTIONNAIRE_RESPONSE:
        return response
    return None


def is_host_response(response: Any, host_ids: Iterable[str]) -> bool:
    """Check whether a response's questionnaire reference names a host.

    Args:
        response: A QuestionnaireResponse (or ``{"resource": ...}`` wrapper).
        host_ids: Host questionnaire ids.

    Returns:
        True if the literal reference fuzzily matches any host id.
    """
    resource = _unwrap(response)
    if resource is None:
        return False
    ref = resource.get("questionnaire") or ""
    return any(
        questionnaire_ref_matches(ref, ScoringConfig(key=host_id, questionnaire_id=host_id))
        for host_id in host_ids
    )


def _answers_of(item: dict[str, Any], normalize: AnswerNormalizer) -> list[dict[str, Any]]:
    answer = item.get("answer")
    if isinstance(answer, list) and answer and all(isinstance(a, dict) for a in answer):
        return copy.deepcopy(answer)
    if answer is None or answer == []:
        return []
    # Non-FHIR shape: a bare scalar (or a list of them)
    if isinstance(answer, list):
        return [normalize(a) for a in answer]
    return [normalize(answer)]


def derive_single_link_responses(
    host_responses: Iterable[Any] | None,
    link_id: str,
    target_questionnaire_id: str,
    normalize_answer_to_coding: AnswerNormalizer | None = None,
    link_id_match_mode: str = "strict",
) -> list[dict[str, Any]]:
    """Build single-item responses for a target questionnaire.

    Each host response with an ``authored`` date and an item matching
    ``link_id`` yields one new response holding only that item. The host
    responses are never modified.

    Args:
        host_responses: Host QuestionnaireResponses (wrappers are unwrapped).
        link_id: The item to copy out of each host response.
        target_questionnaire_id: Id of the derived questionnaire.
        normalize_answer_to_coding: Converts bare scalar answers into answer
            entries. Defaults to the built-in LOINC frequency table.
        link_id_match_mode: "strict" or "fuzzy" linkId comparison.

    Returns:
        Derived responses, in host order.
    """
    if not link_id or not target_questionnaire_id:
        return []
    normalize = normalize_answer_to_coding or default_normalize_answer_to_coding

    derived = []
    for response in host_responses or []:
        host = _unwrap(response)
        if host is None:
            continue
        if not host.get("authored"):
            logger.debug("Skipping host response %s without authored date", host.get("id"))
            continue
        item = next(
            (
                candidate
                for candidate in flatten_items(host.get("item"))
                if link_id_equals(candidate.get("linkId"), link_id, link_id_match_mode)
            ),
            None,
        )
        if item is None:
            continue

        derived.append(
            {
                "resourceType": QUESTIONNAIRE_RESPONSE,
                "id": f"{host.get('id')}_{target_questionnaire_id}",
                "identifier": copy.deepcopy(host.get("identifier")),
                "meta": copy.deepcopy(host.get("meta")),
                "questionnaire": f"Questionnaire/{target_questionnaire_id}",
                "status": "completed",
                "subject": copy.deepcopy(host.get("subject")),
                "authored": host.get("authored"),
                "author": copy.deepcopy(host.get("author")),
                "item": [
                    {
                        "linkId": link_id,
                        "text": item.get("text") or link_id,
                        "answer": _answers_of(item, normalize),
                    }
                ],
            }
        )
    return derived


def derive_for_config(
    host_responses: Iterable[Any] | None,
    config: ScoringConfig,
    target_questionnaire_id: str | None = None,
) -> list[dict[str, Any]]:
    """Derive responses for a config declaring ``derive_from``."""
    derive_from = config.derive_from
    if derive_from is None:
        return []
    target = (
        target_questionnaire_id
        or derive_from.target_questionnaire_id
        or config.questionnaire_id
        or config.key
        or "DERIVED"
    )
    return derive_single_link_responses(
        host_responses,
        derive_from.link_id,
        target,
        normalize_answer_to_coding=derive_from.normalize_answer_to_coding,
        link_id_match_mode=config.link_id_match_mode,
    )

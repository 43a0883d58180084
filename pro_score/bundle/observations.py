"""QuestionnaireResponses synthesized from Observations.

Some systems record questionnaire answers as one Observation per
question instead of a QuestionnaireResponse. Observations taken at the
same effective time are folded into a single completed response whose
items follow the config's ``question_link_ids``.
"""

import logging
import math
from typing import Any

from pro_score.bundle.grouper import QUESTIONNAIRE_RESPONSE, resources_of_type
from pro_score.items import codeable_concept_text, is_number
from pro_score.matching import link_id_equals
from pro_score.registry.models import ScoringConfig

logger = logging.getLogger(__name__)

OBSERVATION = "Observation"
UNKNOWN_TIME = "unknown"


def _codes(observation: dict[str, Any]) -> list[str]:
    concept = observation.get("code")
    codings = concept.get("coding") if isinstance(concept, dict) else None
    if not isinstance(codings, list):
        return []
    return [str(c["code"]) for c in codings if isinstance(c, dict) and c.get("code")]


def observation_link_id(observation: dict[str, Any], config: ScoringConfig) -> str | None:
    """The question an Observation answers.

    ``observation_code_map`` (observation code to linkId) wins; otherwise
    an Observation code equal to one of the ``question_link_ids`` is used.
    """
    codes = _codes(observation)
    for code in codes:
        if code in config.observation_code_map:
            return config.observation_code_map[code]
    for code in codes:
        for link_id in config.question_link_ids:
            if link_id_equals(code, link_id, config.link_id_match_mode):
                return link_id
    return None


def observation_value(observation: dict[str, Any]) -> Any:
    """The value of an Observation: a number, boolean, string or Coding."""
    quantity = observation.get("valueQuantity")
    if isinstance(quantity, dict) and quantity.get("value") is not None:
        return quantity["value"]
    for key in ("valueInteger", "valueDecimal", "valueBoolean", "valueString"):
        if observation.get(key) is not None:
            return observation[key]
    concept = observation.get("valueCodeableConcept")
    if isinstance(concept, dict):
        for coding in concept.get("coding") or []:
            if isinstance(coding, dict):
                return coding
        return codeable_concept_text(concept)
    return None


def _to_answer(value: Any) -> dict[str, Any] | None:
    if isinstance(value, bool):
        return {"valueBoolean": value}
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return {"valueString": text}
    if is_number(value) and math.isfinite(value):
        if float(value).is_integer():
            return {"valueInteger": int(value)}
        return {"valueDecimal": value}
    if isinstance(value, dict):
        return {"valueCoding": value}
    return None


def observations_to_response(
    group: list[dict[str, Any]],
    config: ScoringConfig,
) -> dict[str, Any] | None:
    """Fold Observations taken together into one QuestionnaireResponse.

    When several Observations answer the same question the last one wins.

    Args:
        group: Observations sharing an effective time.
        config: Config naming the questions and the target questionnaire.

    Returns:
        A completed QuestionnaireResponse, or None when no Observation
        answers one of the configured questions.
    """
    answers: dict[str, dict[str, Any]] = {}
    texts: dict[str, str | None] = {}
    for observation in group:
        link_id = observation_link_id(observation, config)
        if not link_id:
            continue
        answer = _to_answer(observation_value(observation))
        if answer is None:
            continue
        answers[link_id] = answer
        texts[link_id] = codeable_concept_text(observation.get("code"))
    if not answers:
        return None

    items = []
    for link_id in config.question_link_ids:
        item: dict[str, Any] = {"linkId": link_id}
        if link_id in answers:
            if texts.get(link_id):
                item["text"] = texts[link_id]
            item["answer"] = [answers[link_id]]
        items.append(item)

    first = group[0]
    target = config.questionnaire_id or config.key
    response: dict[str, Any] = {
        "resourceType": QUESTIONNAIRE_RESPONSE,
        "status": "completed",
        "questionnaire": f"Questionnaire/{target}",
        "authored": first.get("effectiveDateTime") or first.get("issued"),
        "item": items,
    }
    if first.get("id"):
        response["id"] = f"{first['id']}_{target}"
    if first.get("subject") is not None:
        response["subject"] = first["subject"]
    return response


def observations_to_responses(
    observations: list[dict[str, Any]] | None,
    config: ScoringConfig,
) -> list[dict[str, Any]]:
    """Synthesize one response per effective time, oldest first.

    Observations are grouped by ``effectiveDateTime``, then ``issued``;
    Observations with neither share one group.
    """
    groups: dict[str, list[dict[str, Any]]] = {}
    for observation in observations or []:
        if not isinstance(observation, dict):
            continue
        key = observation.get("effectiveDateTime") or observation.get("issued") or UNKNOWN_TIME
        groups.setdefault(str(key), []).append(observation)

    responses = [
        response
        for response in (observations_to_response(group, config) for group in groups.values())
        if response is not None
    ]
    if responses:
        logger.debug(
            "Synthesized %d responses from Observations for %s",
            len(responses),
            config.identifier,
            extra={"questionnaire": config.identifier},
        )
    return sorted(responses, key=lambda r: str(r.get("authored") or ""))


def responses_from_observations(bundle: Any, config: ScoringConfig) -> list[dict[str, Any]]:
    """Responses synthesized from the Observations of a bundle."""
    if not config.question_link_ids:
        return []
    return observations_to_responses(resources_of_type(bundle, OBSERVATION), config)

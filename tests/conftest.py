"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from typing import Any

import pytest

from pro_score.registry import ConfigRegistry, ScoringConfig

LOINC = "http://loinc.org"
ORDINAL_VALUE_URL = "http://hl7.org/fhir/StructureDefinition/ordinalValue"
CALCULATED_EXPRESSION_URL = (
    "http://hl7.org/fhir/uv/sdc/StructureDefinition/sdc-questionnaire-calculatedExpression"
)

FREQUENCY_CODES = [
    ("LA6568-5", "Not at all"),
    ("LA6569-3", "Several days"),
    ("LA6570-1", "More than half the days"),
    ("LA6571-9", "Nearly every day"),
]

PHQ9_QUESTIONS = [
    ("/44250-9", "Little interest or pleasure in doing things"),
    ("/44255-8", "Feeling down, depressed, or hopeless"),
    ("/44259-0", "Trouble falling or staying asleep, or sleeping too much"),
    ("/44254-1", "Feeling tired or having little energy"),
    ("/44251-7", "Poor appetite or overeating"),
    ("/44258-2", "Feeling bad about yourself"),
    ("/44252-5", "Trouble concentrating on things"),
    ("/44253-3", "Moving or speaking slowly, or being fidgety or restless"),
    ("/44260-8", "Thoughts that you would be better off dead"),
]
PHQ9_TOTAL_LINK_ID = "/44261-6"


def frequency_options() -> list[dict[str, Any]]:
    return [
        {
            "valueCoding": {"system": LOINC, "code": code, "display": display},
            "extension": [{"url": ORDINAL_VALUE_URL, "valueDecimal": score}],
        }
        for score, (code, display) in enumerate(FREQUENCY_CODES)
    ]


def frequency_answer(score: int) -> dict[str, Any]:
    code, display = FREQUENCY_CODES[score]
    return {"valueCoding": {"system": LOINC, "code": code, "display": display}}


@pytest.fixture
def registry() -> ConfigRegistry:
    """Registry holding only the built-in instruments."""
    return ConfigRegistry()


@pytest.fixture
def phq9_config(registry: ConfigRegistry) -> ScoringConfig:
    """The built-in PHQ-9 config."""
    return registry.get("CIRG-PHQ9")


@pytest.fixture
def si_config(registry: ConfigRegistry) -> ScoringConfig:
    """The built-in suicide ideation config, derived from PHQ-9."""
    return registry.get("CIRG-SI")


@pytest.fixture
def phq9_definition() -> dict[str, Any]:
    """PHQ-9 Questionnaire with ordinal values and a calculated total."""
    items: list[dict[str, Any]] = [
        {"linkId": link_id, "text": text, "type": "choice", "answerOption": frequency_options()}
        for link_id, text in PHQ9_QUESTIONS
    ]
    items.append(
        {
            "linkId": PHQ9_TOTAL_LINK_ID,
            "text": "Total score",
            "type": "integer",
            "readOnly": True,
            "extension": [
                {
                    "url": CALCULATED_EXPRESSION_URL,
                    "valueExpression": {"language": "text/fhirpath", "expression": "sum"},
                }
            ],
        }
    )
    return {
        "resourceType": "Questionnaire",
        "id": "CIRG-PHQ9",
        "name": "PHQ9",
        "title": "PHQ-9",
        "url": "http://www.cdc.gov/ncbddd/fasd/phq9",
        "status": "active",
        "item": items,
    }


@pytest.fixture
def make_phq9_response() -> Callable[..., dict[str, Any]]:
    """Factory for PHQ-9 QuestionnaireResponses.

    ``scores`` holds one frequency score (0-3) per question; None leaves
    the question out. ``total`` adds the total score item.
    """

    def make(
        response_id: str = "phq9-response-1",
        scores: tuple[int | None, ...] = (1,) * 9,
        authored: str | None = "2024-01-01T10:00:00Z",
        status: str = "completed",
        total: int | None = None,
        **fields: Any,
    ) -> dict[str, Any]:
        items = [
            {"linkId": link_id, "text": text, "answer": [frequency_answer(score)]}
            for (link_id, text), score in zip(PHQ9_QUESTIONS, scores)
            if score is not None
        ]
        if total is not None:
            items.append({"linkId": PHQ9_TOTAL_LINK_ID, "answer": [{"valueInteger": total}]})
        response: dict[str, Any] = {
            "resourceType": "QuestionnaireResponse",
            "id": response_id,
            "identifier": [{"system": "urn:oid:epic.questionnaire", "value": response_id}],
            "meta": {"lastUpdated": authored or "2023-06-01T00:00:00Z"},
            "questionnaire": "Questionnaire/CIRG-PHQ9",
            "status": status,
            "subject": {"reference": "Patient/123"},
            "author": {"reference": "Patient/123"},
            "item": items,
        }
        if authored is not None:
            response["authored"] = authored
        response.update(fields)
        return response

    return make


@pytest.fixture
def make_bundle() -> Callable[..., dict[str, Any]]:
    """Factory wrapping resources into a FHIR searchset Bundle."""

    def make(*resources: dict[str, Any]) -> dict[str, Any]:
        return {
            "resourceType": "Bundle",
            "type": "searchset",
            "entry": [{"resource": resource} for resource in resources],
        }

    return make


@pytest.fixture
def phq9_responses(make_phq9_response: Callable[..., dict[str, Any]]) -> list[dict[str, Any]]:
    """Three PHQ-9 responses, oldest first, scoring 9, 18 and 22."""
    return [
        make_phq9_response("phq9-response-1", (1,) * 9, "2024-01-01T10:00:00Z"),
        make_phq9_response("phq9-response-2", (2,) * 9, "2024-02-01T10:00:00Z"),
        make_phq9_response("phq9-response-3", (3, 3, 3, 3, 3, 3, 2, 1, 1), "2024-03-01T10:00:00Z"),
    ]


@pytest.fixture
def phq9_bundle(
    make_bundle: Callable[..., dict[str, Any]],
    phq9_definition: dict[str, Any],
    phq9_responses: list[dict[str, Any]],
) -> dict[str, Any]:
    """Bundle holding the PHQ-9 definition and three responses."""
    return make_bundle(phq9_definition, *phq9_responses)

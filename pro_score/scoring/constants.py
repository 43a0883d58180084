"""Built-in answer tables shared by scoring and derivation."""

LOINC_SYSTEM = "http://loinc.org"

ORDINAL_VALUE_URLS = (
    "http://hl7.org/fhir/StructureDefinition/ordinalValue",
    "http://hl7.org/fhir/StructureDefinition/itemWeight",
)

# LOINC frequency answers used by the PHQ/GAD family.
DEFAULT_FALLBACK_SCORE_MAP: dict[str, int] = {
    "la6568-5": 0,
    "la6569-3": 1,
    "la6570-1": 2,
    "la6571-9": 3,
    "not at all": 0,
    "several days": 1,
    "more than half the days": 2,
    "nearly every day": 3,
}

DEFAULT_VALUE_TO_LOINC_CODING: dict[str, dict[str, str]] = {
    "not at all": {"system": LOINC_SYSTEM, "code": "LA6568-5", "display": "Not at all"},
    "several days": {"system": LOINC_SYSTEM, "code": "LA6569-3", "display": "Several days"},
    "more than half the days": {
        "system": LOINC_SYSTEM,
        "code": "LA6570-1",
        "display": "More than half the days",
    },
    "nearly every day": {
        "system": LOINC_SYSTEM,
        "code": "LA6571-9",
        "display": "Nearly every day",
    },
}

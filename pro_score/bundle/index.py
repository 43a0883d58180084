"""In-bundle index of Questionnaire definitions and the default loader."""

import re
from collections.abc import Callable
from typing import Any

from pro_score.bundle.grouper import QUESTIONNAIRE, resources_of_type
from pro_score.matching import normalize_str
from pro_score.registry.configs import ConfigRegistry
from pro_score.registry.models import ScoringConfig
from pro_score.scoring.constants import (
    DEFAULT_FALLBACK_SCORE_MAP,
    DEFAULT_VALUE_TO_LOINC_CODING,
    ORDINAL_VALUE_URLS,
)

DefinitionLoader = Callable[[str], Any]

_REFERENCE_PREFIX = re.compile(r"^/?questionnaire/", re.IGNORECASE)


def _strip_version(url: str) -> str:
    return url.split("|", 1)[0]


def default_answer_options() -> list[dict[str, Any]]:
    """LOINC frequency answer options carrying ordinal values."""
    options = []
    for coding in DEFAULT_VALUE_TO_LOINC_CODING.values():
        options.append(
            {
                "valueCoding": dict(coding),
                "extension": [
                    {
                        "url": ORDINAL_VALUE_URLS[0],
                        "valueDecimal": DEFAULT_FALLBACK_SCORE_MAP[coding["code"].lower()],
                    }
                ],
            }
        )
    return options


def build_definition(config: ScoringConfig) -> dict[str, Any]:
    """Build a minimal Questionnaire definition from an instrument config.

    Each configured question becomes a choice item with the default answer
    options. The scoring question, when not already listed, is appended as
    a read-only integer item.

    Args:
        config: The instrument config.

    Returns:
        A Questionnaire resource dict.
    """
    link_ids = list(config.question_link_ids)
    if not link_ids and config.derive_from is not None:
        link_ids = [config.derive_from.link_id]

    items: list[dict[str, Any]] = [
        {
            "linkId": link_id,
            "type": "choice",
            "text": f"Question {index + 1}",
            "answerOption": default_answer_options(),
        }
        for index, link_id in enumerate(link_ids)
    ]
    if config.scoring_question_id and config.scoring_question_id not in link_ids:
        items.append(
            {
                "linkId": config.scoring_question_id,
                "type": "integer",
                "text": "Total score",
                "readOnly": True,
            }
        )

    questionnaire_id = config.questionnaire_id or config.key
    definition: dict[str, Any] = {
        "resourceType": QUESTIONNAIRE,
        "id": questionnaire_id,
        "name": (config.questionnaire_name or questionnaire_id).upper(),
        "title": config.title or config.questionnaire_name or "Questionnaire",
        "status": "active",
        "item": items,
    }
    if config.questionnaire_url:
        definition["url"] = config.questionnaire_url
    return definition


class QuestionnaireIndex:
    """Lookup table of the Questionnaire resources found in a bundle.

    Definitions are indexed by ``Questionnaire/<id>``, ``id``, normalized
    ``name``, ``url`` and the url without its ``|version`` suffix.
    """

    def __init__(self, bundle: Any = None) -> None:
        self._index: dict[str, dict[str, Any]] = {}
        for definition in resources_of_type(bundle, QUESTIONNAIRE):
            self.add(definition)

    def __len__(self) -> int:
        return len({id(definition) for definition in self._index.values()})

    def add(self, definition: dict[str, Any]) -> None:
        """Index a Questionnaire definition. Earlier entries win on key clashes."""
        keys = []
        if definition.get("id"):
            keys.extend([f"{QUESTIONNAIRE}/{definition['id']}", str(definition["id"])])
        if definition.get("name"):
            keys.append(normalize_str(definition["name"]))
        if definition.get("url"):
            url = str(definition["url"])
            keys.extend([url, _strip_version(url)])
        for key in keys:
            self._index.setdefault(key, definition)

    def get(self, ref: str | None) -> dict[str, Any] | None:
        """Resolve a questionnaire reference to an indexed definition.

        Args:
            ref: Canonical url (optionally versioned), ``Questionnaire/<id>``,
                bare id or name.

        Returns:
            The definition, or None.
        """
        if not ref:
            return None
        text = str(ref).strip()
        bare = _REFERENCE_PREFIX.sub("", text)
        for key in (text, bare, _strip_version(text), normalize_str(bare)):
            if key and key in self._index:
                return self._index[key]
        return None


def make_bundle_loader(
    bundle: Any,
    registry: ConfigRegistry | None = None,
) -> DefinitionLoader:
    """Create a synchronous definition loader over a bundle.

    Definitions present in the bundle win. When a reference is unknown to
    the bundle but known to the registry, a minimal definition is built
    from the registered config.

    Args:
        bundle: Bundle in any accepted shape.
        registry: Optional config registry used as a fallback.

    Returns:
        A callable mapping a reference to a definition or None.
    """
    index = QuestionnaireIndex(bundle)

    def load(ref: str) -> dict[str, Any] | None:
        definition = index.get(ref)
        if definition is not None or registry is None:
            return definition
        config = registry.find(ref)
        return build_definition(config) if config is not None else None

    return load

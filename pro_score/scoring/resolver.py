"""Score resolution for individual response items.

The resolver turns one answered item into a number using, in order:

1. A numeric primitive answer (valueInteger / valueDecimal / quantity).
2. The ordinal-value extension on the matching answerOption of the
   questionnaire definition.
3. The configured fallback score map, keyed by coding code.

Free-text answers are never parsed into numbers. Missing data at any
step yields None rather than an error.
"""

from typing import Any

from pro_score.items.answers import coding_of, is_number, primitive_of
from pro_score.items.definition import find_definition_item, iter_definition_items
from pro_score.items.flatten import first_answer
from pro_score.matching import link_id_equals
from pro_score.scoring.constants import DEFAULT_FALLBACK_SCORE_MAP, ORDINAL_VALUE_URLS


class ScoreResolver:
    """Resolves numeric scores for flattened response items.

    The resolver is stateless apart from its configuration and can be
    shared across responses.
    """

    def __init__(
        self,
        fallback_score_map: dict[str, int] | None = None,
        link_id_match_mode: str = "strict",
    ) -> None:
        """Initialize the resolver.

        Args:
            fallback_score_map: Code -> score table used when the definition
                carries no ordinal value. Keys are matched case-insensitively.
            link_id_match_mode: "strict" or "fuzzy" linkId comparison.
        """
        source = DEFAULT_FALLBACK_SCORE_MAP if fallback_score_map is None else fallback_score_map
        self.fallback_score_map = {str(k).strip().lower(): v for k, v in source.items()}
        self.link_id_match_mode = link_id_match_mode

    def find_item(
        self,
        flat_items: list[dict[str, Any]] | None,
        link_id: str | None,
    ) -> dict[str, Any] | None:
        """Find the first flattened item matching a linkId."""
        if not link_id:
            return None
        for item in flat_items or []:
            if link_id_equals(item.get("linkId"), link_id, self.link_id_match_mode):
                return item
        return None

    def score_of(
        self,
        definition: dict[str, Any] | None,
        flat_items: list[dict[str, Any]] | None,
        link_id: str | None,
    ) -> int | float | None:
        """Resolve the score of the item identified by ``link_id``.

        Args:
            definition: The Questionnaire definition (may be None).
            flat_items: Flattened response items.
            link_id: The item to score.

        Returns:
            The numeric score, or None if it cannot be resolved.
        """
        item = self.find_item(flat_items, link_id)
        if item is None:
            return None
        answer = first_answer(item)
        if answer is None:
            return None
        return self.score_answer(answer, definition, link_id)

    def score_answer(
        self,
        answer: Any,
        definition: dict[str, Any] | None = None,
        link_id: str | None = None,
    ) -> int | float | None:
        """Resolve the score of a single answer entry."""
        if answer is None:
            return None

        # Loosely shaped answers carry a bare scalar instead of value[x].
        if not isinstance(answer, dict):
            if is_number(answer):
                return answer
            if isinstance(answer, str):
                return self.fallback_score_map.get(answer.strip().lower())
            return None

        primitive = primitive_of(answer)
        if is_number(primitive):
            return primitive

        coding = coding_of(answer)
        if coding is None or coding.code is None:
            return None

        ordinal = self.ordinal_value(definition, coding.code, link_id)
        if ordinal is not None:
            return ordinal

        return self.fallback_score_map.get(coding.code.strip().lower())

    def ordinal_value(
        self,
        definition: dict[str, Any] | None,
        code: str,
        link_id: str | None = None,
    ) -> int | float | None:
        """Look up the ordinal value attached to an answer option code.

        The answer options of the item matching ``link_id`` are searched
        first. When that item is not part of the definition, every item's
        options are searched.

        Args:
            definition: The Questionnaire definition.
            code: The coding code of the answer.
            link_id: The item the answer belongs to.

        Returns:
            The numeric ordinal value, or None.
        """
        if not isinstance(definition, dict) or not code:
            return None

        if link_id:
            item = find_definition_item(definition, link_id, self.link_id_match_mode)
            if item is not None:
                return self._ordinal_from_options(item, code)

        for item in iter_definition_items(definition):
            value = self._ordinal_from_options(item, code)
            if value is not None:
                return value
        return None

    def _ordinal_from_options(self, item: dict[str, Any], code: str) -> int | float | None:
        for option in item.get("answerOption") or []:
            if not isinstance(option, dict):
                continue
            coding = coding_of(option)
            if coding is None or coding.code != code:
                continue
            for ext in option.get("extension") or []:
                if isinstance(ext, dict) and ext.get("url") in ORDINAL_VALUE_URLS:
                    value = primitive_of(ext)
                    if is_number(value):
                        return value
            # R5 places the weight on the coding itself
            for ext in (option.get("valueCoding") or {}).get("extension") or []:
                if isinstance(ext, dict) and ext.get("url") in ORDINAL_VALUE_URLS:
                    value = primitive_of(ext)
                    if is_number(value):
                        return value
        return None

"""Summary builder for questionnaire responses.

Turns a list of QuestionnaireResponses for one instrument into summary
rows: score, severity, meaning, answered/total counts and the flattened
question/answer list. Instruments with a reserved strategy are handed to
that strategy instead of the generic path.
"""

import logging
import re
from typing import Any

from pro_score.bundle.grouper import recency_key
from pro_score.interpretation import meaning_of, severity_of
from pro_score.items import (
    ANSWER_TYPES,
    display_value,
    flatten_items,
    has_answer,
    is_calculated_item,
    is_help_item,
    iter_definition_items,
)
from pro_score.matching import link_id_equals, normalize_link_id
from pro_score.registry.models import ScoringConfig
from pro_score.scoring import ScoreResolver
from pro_score.summary.models import FormattedResponse, ResponseSummaryRow, ScoringParams
from pro_score.summary.strategies import STRATEGIES, StrategyName, resolve_strategy

logger = logging.getLogger(__name__)

NON_QUESTION_LINK_IDS = frozenset({"introduction"})
NON_QUESTION_MARKERS = ("ignore", "score-label", "critical-flag")

_REFERENCE_PREFIX = re.compile(r"^/?questionnaire/", re.IGNORECASE)

EPIC = "epic"
CNICS = "cnics"


def get_data_source(resource: dict[str, Any] | None) -> str:
    """Detect which system a response came from.

    Looks for "epic" in extension urls and "epic"/"cnics" in identifier
    systems. Responses with no marker are assumed to come from Epic.

    Args:
        resource: A QuestionnaireResponse.

    Returns:
        "epic" or "cnics", or "" when there is no resource.
    """
    if not isinstance(resource, dict):
        return ""
    source = ""
    for ext in resource.get("extension") or []:
        if isinstance(ext, dict) and EPIC in str(ext.get("url")):
            source = EPIC
            break

    identifier = resource.get("identifier")
    if isinstance(identifier, list):
        systems = [str(i.get("system")) for i in identifier if isinstance(i, dict)]
        if any(EPIC in system for system in systems):
            source = EPIC
        if any(CNICS in system for system in systems):
            source = CNICS
    elif isinstance(identifier, dict) and identifier.get("system"):
        system = str(identifier["system"])
        source = CNICS if CNICS in system else EPIC if EPIC in system else ""

    return source or EPIC


def as_text(value: Any) -> str | None:
    """Scalar values as text; missing or structured values become None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def questionnaire_id_of(response: dict[str, Any]) -> str | None:
    """The questionnaire id named by a response, without a type prefix."""
    ref = response.get("questionnaire")
    if not ref:
        return None
    return _REFERENCE_PREFIX.sub("", str(ref)) or None


class SummaryBuilder:
    """Builds summary rows for the responses of one instrument.

    The builder holds no per-call state; the same instance can summarize
    any number of response lists and always returns fresh rows.
    """

    def __init__(self, config: ScoringConfig) -> None:
        """Initialize the builder.

        Args:
            config: The instrument config.
        """
        self.config = config
        self.resolver = ScoreResolver(
            fallback_score_map=config.fallback_score_map,
            link_id_match_mode=config.link_id_match_mode,
        )

    # -------------------- linkId helpers --------------------

    def link_ids_equal(self, a: Any, b: Any) -> bool:
        return link_id_equals(a, b, self.config.link_id_match_mode)

    @property
    def scoring_link_id(self) -> str | None:
        """The item holding the total score, or the derived item."""
        if self.config.scoring_question_id:
            return normalize_link_id(self.config.scoring_question_id)
        if self.config.derive_from is not None:
            return normalize_link_id(self.config.derive_from.link_id)
        return None

    def _is_scoring_or_sub_score(self, link_id: Any) -> bool:
        if self.config.scoring_question_id and self.link_ids_equal(
            link_id, self.config.scoring_question_id
        ):
            return True
        return any(
            self.link_ids_equal(link_id, sub.link_id)
            for sub in self.config.sub_scoring_questions
        )

    def is_response_question_item(self, item: dict[str, Any], require_type: bool = True) -> bool:
        """Check whether an item is a real, answerable question.

        Read-only, calculated, instructional and score items are excluded.

        Args:
            item: A definition (or response) item.
            require_type: Whether the item must declare an answer-bearing type.
        """
        if not isinstance(item, dict) or item.get("readOnly"):
            return False
        link_id = str(item.get("linkId") or "").lower()
        if not link_id or normalize_link_id(link_id) in NON_QUESTION_LINK_IDS:
            return False
        if any(marker in link_id for marker in NON_QUESTION_MARKERS):
            return False
        item_type = item.get("type")
        if item_type is None and require_type:
            return False
        if item_type is not None and item_type not in ANSWER_TYPES:
            return False
        if is_calculated_item(item):
            return False
        return not self._is_scoring_or_sub_score(item.get("linkId"))

    def answer_link_ids(self, definition: dict[str, Any] | None) -> list[str]:
        """All answerable linkIds of a definition, in document order."""
        return [
            normalize_link_id(item["linkId"])
            for item in iter_definition_items(definition)
            if item.get("linkId") and self.is_response_question_item(item)
        ]

    def score_link_ids(self, definition: dict[str, Any] | None) -> list[str]:
        """The linkIds whose scores make up the total.

        Configured ``question_link_ids`` win (minus scoring and sub-score
        items). Otherwise every answerable definition item counts, except
        for derived instruments which are scored on their single item.
        """
        if self.config.question_link_ids:
            link_ids = [
                normalize_link_id(link_id)
                for link_id in self.config.question_link_ids
                if not self._is_scoring_or_sub_score(link_id)
            ]
        elif self.config.derive_from is not None:
            link_ids = [normalize_link_id(self.config.derive_from.link_id)]
        else:
            link_ids = self.answer_link_ids(definition)

        if not link_ids and self.scoring_link_id:
            link_ids = [self.scoring_link_id]
        return link_ids

    # -------------------- scoring --------------------

    def calculate_score(
        self,
        definition: dict[str, Any] | None,
        flat_items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Compute the score of one flattened response.

        An explicit scoring question wins. Otherwise the item scores are
        summed, but only when every one of them resolves; a partially
        answered response has no score.

        Returns:
            Dict with ``score``, ``scoring_question_score``,
            ``question_scores``, ``score_link_ids`` and ``sub_scores``.
        """
        score_link_ids = self.score_link_ids(definition)
        scoring_link_id = self.scoring_link_id

        scoring_question_score = (
            self.resolver.score_of(definition, flat_items, scoring_link_id)
            if scoring_link_id
            else None
        )
        question_scores = [
            self.resolver.score_of(definition, flat_items, link_id) for link_id in score_link_ids
        ]
        all_answered = bool(question_scores) and all(s is not None for s in question_scores)

        if scoring_question_score is not None:
            score = scoring_question_score
        elif all_answered:
            score = sum(question_scores)
        else:
            score = None

        sub_scores = {
            sub.key: self.resolver.score_of(definition, flat_items, sub.link_id)
            for sub in self.config.sub_scoring_questions
        }

        return {
            "score": score,
            "scoring_question_score": scoring_question_score,
            "question_scores": question_scores,
            "score_link_ids": score_link_ids,
            "sub_scores": sub_scores,
        }

    def count_answered(
        self,
        flat_items: list[dict[str, Any]],
        link_ids: list[str],
        total_items: int,
        exclude_link_id: str | None = None,
    ) -> int:
        """Count answered items among ``link_ids``, capped at ``total_items``.

        ``exclude_link_id`` is skipped unless it is the only linkId counted.
        """
        counted = [
            link_id
            for link_id in link_ids
            if not (
                exclude_link_id
                and len(link_ids) > 1
                and self.link_ids_equal(link_id, exclude_link_id)
            )
        ]
        answered = 0
        for link_id in counted:
            item = self.resolver.find_item(flat_items, link_id)
            if item is not None and has_answer(item):
                answered += 1
        return min(answered, total_items)

    def score_stats(
        self,
        definition: dict[str, Any] | None,
        flat_items: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Score plus total and answered item counts for one response."""
        stats = self.calculate_score(definition, flat_items)
        link_ids = stats["score_link_ids"]
        total_items = len(link_ids)
        total_answered = self.count_answered(flat_items, link_ids, total_items, self.scoring_link_id)

        if stats["score"] is not None:
            total_items = total_items or 1
            total_answered = total_answered or 1

        stats["total_items"] = total_items
        stats["total_answered_items"] = total_answered
        return stats

    # -------------------- formatting --------------------

    def source_of(self, response: dict[str, Any]) -> str:
        return get_data_source(response)

    def display_answer(self, answers: Any) -> Any:
        return display_value(answers, self.config.fallback_score_map)

    def responses_only(
        self,
        flat_items: list[dict[str, Any]],
        source: str | None = None,
    ) -> list[FormattedResponse]:
        """Format response items when no usable definition is available."""
        return [
            FormattedResponse(
                id=as_text(item.get("linkId")),
                question=as_text(item.get("text")),
                answer=self.display_answer(item.get("answer")),
                text=as_text(item.get("text")) or "",
                raw_answer=item.get("answer"),
                read_only=bool(item.get("readOnly")),
                source=source,
            )
            for item in flat_items
        ]

    def formatted_responses(
        self,
        definition: dict[str, Any] | None,
        flat_items: list[dict[str, Any]],
        source: str | None = None,
    ) -> list[FormattedResponse]:
        """Format the question/answer list of one response.

        Definition items drive the order and the question text. When the
        definition shares no linkId with the response, the response items
        are formatted on their own.

        Args:
            definition: The Questionnaire definition.
            flat_items: Flattened response items.
            source: Data source tag copied onto every entry.

        Returns:
            Formatted entries in definition (or response) order.
        """
        definition_items = [item for item in iter_definition_items(definition) if item.get("linkId")]
        if not definition_items or not any(
            self.resolver.find_item(flat_items, item["linkId"]) is not None
            for item in definition_items
        ):
            return self.responses_only(flat_items, source)

        formatted = []
        for item in definition_items:
            link_id = as_text(item["linkId"])
            matched = self.resolver.find_item(flat_items, link_id) or {}
            answers = matched.get("answer")
            formatted.append(
                FormattedResponse(
                    id=link_id,
                    question=(
                        as_text(item.get("text"))
                        or as_text(matched.get("text"))
                        or f"Question {link_id}"
                    ),
                    answer=self.display_answer(answers),
                    text=as_text(matched.get("text")) or "",
                    raw_answer=answers if answers is not None else [],
                    read_only=not self.is_response_question_item(item),
                    is_value_expression=is_calculated_item(item),
                    is_help=is_help_item(item),
                    source=source,
                )
            )
        return formatted

    # -------------------- rows --------------------

    def column_values(self, response: dict[str, Any]) -> dict[str, Any]:
        """Display answers of the configured columns.

        Only top-level response items are searched. Columns sharing an id
        keep the last value.
        """
        items = response.get("item")
        items = [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []
        values: dict[str, Any] = {}
        for column in self.config.columns:
            matched = next(
                (item for item in items if self.link_ids_equal(item.get("linkId"), column.link_id)),
                None,
            )
            values[column.id] = (
                self.display_answer(matched.get("answer")) if matched is not None else None
            )
        return values

    def base_row(
        self,
        response: dict[str, Any],
        responses: list[FormattedResponse],
        source: str,
        **fields: Any,
    ) -> ResponseSummaryRow:
        """Build a row carrying the fields shared by every strategy."""
        meta = response.get("meta") if isinstance(response.get("meta"), dict) else {}
        row = {
            "id": as_text(response.get("id")),
            "date": as_text(response.get("authored")),
            "responses": responses,
            "authored_date": as_text(response.get("authored")),
            "last_updated": as_text(meta.get("lastUpdated")),
            "instrument_name": self.config.instrument_name or questionnaire_id_of(response),
            "source": source,
            "scoring_params": ScoringParams(
                minimum_score=self.config.minimum_score if self.config.minimum_score is not None else 0,
                maximum_score=self.config.maximum_score,
            ),
            "high_severity_score_cutoff": self.config.high_severity_score_cutoff,
            "comparison_to_alert": self.config.comparison_to_alert,
            "columns": self.column_values(response),
        }
        row.update(fields)
        return ResponseSummaryRow(**row)

    def summarize_response(
        self,
        response: dict[str, Any],
        definition: dict[str, Any] | None,
    ) -> ResponseSummaryRow:
        """Summarize one response on the generic path."""
        flat = flatten_items(response.get("item"))
        stats = self.score_stats(definition, flat)
        source = self.source_of(response)
        responses = self.formatted_responses(definition, flat, source)

        severity = severity_of(stats["score"], self.config.severity_bands)
        return self.base_row(
            response,
            responses,
            source,
            score=stats["score"],
            scoring_question_score=stats["scoring_question_score"],
            sub_scores=stats["sub_scores"],
            score_severity=severity,
            score_meaning=meaning_of(severity, self.config, responses),
            total_items=stats["total_items"],
            total_answered_items=stats["total_answered_items"],
        )

    def summarize_generic(
        self,
        responses: list[dict[str, Any]],
        definition: dict[str, Any] | None,
    ) -> list[ResponseSummaryRow]:
        """Generic path: score every response with the configured items."""
        return [self.summarize_response(response, definition) for response in responses]

    def summarize(
        self,
        responses: list[dict[str, Any]] | None,
        definition: dict[str, Any] | None,
        conditions: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
    ) -> list[ResponseSummaryRow]:
        """Summarize the responses of this instrument.

        Args:
            responses: QuestionnaireResponses (``{"resource": ...}`` wrappers
                are unwrapped).
            definition: The Questionnaire definition, if known.
            conditions: Patient Condition resources, used by strategies
                that depend on patient history.
            options: Strategy options overriding the config's.

        Returns:
            One row per response, newest-first.
        """
        resources = []
        for response in responses or []:
            if isinstance(response, dict) and isinstance(response.get("resource"), dict):
                response = response["resource"]
            if isinstance(response, dict):
                resources.append(response)

        strategy = resolve_strategy(self.config)
        if strategy is not StrategyName.GENERIC:
            logger.debug("Summarizing %s with the %s strategy", self.config.identifier, strategy.value)
        rows = STRATEGIES[strategy](self, resources, definition, conditions or [], options or {})
        return sort_rows_newest_first(rows)


def sort_rows_newest_first(rows: list[ResponseSummaryRow]) -> list[ResponseSummaryRow]:
    """Sort rows newest-first (stable), like the grouped responses."""
    return sorted(
        rows,
        key=lambda row: recency_key(row.authored_date, row.last_updated),
        reverse=True,
    )

"""Instrument-specific summary strategies.

A small closed registry maps each strategy name to the function that
summarizes responses for it. The generic path is the default arm; the
other three replace it for instruments whose scoring does not fit a
plain item sum:

- SLUMS: the severity cutoff depends on the patient's education level.
- C-IDAS: eighteen summed items plus a suicide item that raises the
  severity on its own.
- Mini-Cog: a word recall subscore and a clock drawing subscore.
"""

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from pro_score.interpretation import meaning_of, severity_of
from pro_score.items import flatten_items, has_answer, is_number
from pro_score.matching import questionnaire_ref_matches
from pro_score.registry.models import ScoringConfig
from pro_score.summary.models import ResponseSummaryRow, ScoringParams

if TYPE_CHECKING:
    from pro_score.summary.builder import SummaryBuilder

StrategyFn = Callable[..., list[ResponseSummaryRow]]


class StrategyName(str, Enum):
    """Names of the summary strategies."""

    GENERIC = "generic"
    SLUMS = "slums"
    CIDAS = "cidas"
    MINICOG = "minicog"


# Reserved instrument identifiers, matched against configs without an explicit tag
RESERVED_IDENTIFIERS: dict[str, StrategyName] = {
    "SLUM": StrategyName.SLUMS,
    "CIDAS": StrategyName.CIDAS,
    "MINICOG": StrategyName.MINICOG,
}

LOW_EDUCATION_CODE = "Z55.5"

MINICOG_HIDDEN_LINK_IDS = frozenset(
    {
        "introduction",
        "minicog-question1-instruction",
        "minicog-question2-instruction",
        "minicog-total-score-explanation",
        "minicog-questionnaire-footnote",
    }
)


class SlumsOptions(BaseModel):
    """Options for the SLUMS strategy."""

    scoring_question_id: str | None = None
    low_education_code: str = LOW_EDUCATION_CODE
    low_education_cutoff: float = 19
    cutoff: float = 20
    maximum_score: float = 30


class CidasOptions(BaseModel):
    """Options for the C-IDAS strategy."""

    item_link_ids: list[str] = Field(default_factory=list)
    suicide_link_id: str = "cs-idas-15"
    scoring_question_id: str | None = None
    sum_cutoff: float = 18
    maximum_score: float = 36
    high_severity_score_cutoff: float = 19


class MiniCogOptions(BaseModel):
    """Options for the Mini-Cog strategy."""

    recall_link_ids: list[str] = Field(default_factory=lambda: ["minicog-question1"])
    clock_link_id: str = "minicog-question2"
    total_link_id: str = "minicog-total-score"
    high_severity_score_cutoff: float | None = None
    maximum_score: float = 5


def resolve_strategy(config: ScoringConfig) -> StrategyName:
    """Pick the strategy for an instrument.

    An explicit ``strategy`` tag wins. Otherwise the reserved identifiers
    are matched against the config with its own match mode.
    """
    if config.strategy:
        return StrategyName(config.strategy)
    for identifier, name in RESERVED_IDENTIFIERS.items():
        if questionnaire_ref_matches(identifier, config):
            return name
    return StrategyName.GENERIC


def _merge_options(config: ScoringConfig, options: dict[str, Any]) -> dict[str, Any]:
    return {**config.strategy_options, **(options or {})}


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def has_low_education(conditions: list[dict[str, Any]], code: str = LOW_EDUCATION_CODE) -> bool:
    """Check whether any Condition carries the low-education code."""
    wanted = code.upper()
    for condition in conditions or []:
        if not isinstance(condition, dict):
            continue
        concept = condition.get("code")
        codings = concept.get("coding") if isinstance(concept, dict) else None
        if not isinstance(codings, list):
            continue
        for coding in codings:
            if isinstance(coding, dict) and str(coding.get("code") or "").upper() == wanted:
                return True
    return False


def _answered_count(
    builder: "SummaryBuilder",
    flat: list[dict[str, Any]],
    total_items: int,
    exclude_link_id: str | None,
    score: Any,
) -> tuple[int, int]:
    """Answered and total item counts for the strategies.

    Strategies count every answered response item except the score item.
    """
    answered = sum(
        1
        for item in flat
        if has_answer(item)
        and not (exclude_link_id and builder.link_ids_equal(item.get("linkId"), exclude_link_id))
    )
    if score is not None:
        total_items = total_items or 1
    return min(answered, total_items), total_items


def summarize_generic(
    builder: "SummaryBuilder",
    responses: list[dict[str, Any]],
    definition: dict[str, Any] | None,
    conditions: list[dict[str, Any]],
    options: dict[str, Any],
) -> list[ResponseSummaryRow]:
    return builder.summarize_generic(responses, definition)


def summarize_slums(
    builder: "SummaryBuilder",
    responses: list[dict[str, Any]],
    definition: dict[str, Any] | None,
    conditions: list[dict[str, Any]],
    options: dict[str, Any],
) -> list[ResponseSummaryRow]:
    """Education-aware scoring.

    A score at or below the cutoff is "high" severity. Patients with a
    low-education Condition get a cutoff one point lower.
    """
    config = builder.config
    opts = SlumsOptions.model_validate(_merge_options(config, options))
    scoring_id = opts.scoring_question_id or config.scoring_question_id or "71492-3"
    low_education = has_low_education(conditions, opts.low_education_code)
    cutoff = opts.low_education_cutoff if low_education else opts.cutoff
    total_items = len(builder.answer_link_ids(definition))

    rows = []
    for response in responses:
        flat = flatten_items(response.get("item"))
        source = builder.source_of(response)
        formatted = builder.formatted_responses(definition, flat, source)

        score = builder.resolver.score_of(definition, flat, scoring_id)
        if score is None and formatted and is_number(formatted[0].answer):
            score = formatted[0].answer

        severity = "high" if score is not None and score <= cutoff else "low"
        answered, total = _answered_count(builder, flat, total_items, scoring_id, score)
        rows.append(
            builder.base_row(
                response,
                formatted,
                source,
                score=score,
                scoring_question_score=score,
                score_severity=severity,
                score_meaning=meaning_of(severity, config, formatted),
                comparison_to_alert="lower",
                scoring_params=ScoringParams(
                    minimum_score=0, maximum_score=config.maximum_score or opts.maximum_score
                ),
                high_severity_score_cutoff=cutoff,
                education_level="low" if low_education else "high",
                total_items=total,
                total_answered_items=answered,
            )
        )
    return rows


def summarize_cidas(
    builder: "SummaryBuilder",
    responses: list[dict[str, Any]],
    definition: dict[str, Any] | None,
    conditions: list[dict[str, Any]],
    options: dict[str, Any],
) -> list[ResponseSummaryRow]:
    """Eighteen-item sum with a suicide flag.

    Unanswered items count as 0. Severity is "high" when the sum exceeds
    the cutoff or the suicide item is positive; the latter also attaches
    an alert note.
    """
    config = builder.config
    opts = CidasOptions.model_validate(_merge_options(config, options))
    item_link_ids = opts.item_link_ids or [f"cs-idas-{n}" for n in range(1, 19)]
    scoring_id = opts.scoring_question_id or config.scoring_question_id or "c-ids-score"
    total_items = len(builder.answer_link_ids(definition))

    rows = []
    for response in responses:
        flat = flatten_items(response.get("item"))
        source = builder.source_of(response)
        formatted = builder.formatted_responses(definition, flat, source)

        item_scores = [builder.resolver.score_of(definition, flat, link_id) for link_id in item_link_ids]
        score = sum(s for s in item_scores if s is not None)
        suicide_score = builder.resolver.score_of(definition, flat, opts.suicide_link_id) or 0
        suicide_concern = suicide_score >= 1
        severity = "high" if score > opts.sum_cutoff or suicide_concern else "low"

        answered, total = _answered_count(builder, flat, total_items, scoring_id, score)
        rows.append(
            builder.base_row(
                response,
                formatted,
                source,
                score=score,
                score_severity=severity,
                score_meaning=meaning_of(severity, config, formatted),
                alert_note="suicide concern" if suicide_concern else None,
                scoring_params=ScoringParams(
                    minimum_score=0, maximum_score=config.maximum_score or opts.maximum_score
                ),
                high_severity_score_cutoff=opts.high_severity_score_cutoff,
                total_items=total,
                total_answered_items=answered,
            )
        )
    return rows


def summarize_minicog(
    builder: "SummaryBuilder",
    responses: list[dict[str, Any]],
    definition: dict[str, Any] | None,
    conditions: list[dict[str, Any]],
    options: dict[str, Any],
) -> list[ResponseSummaryRow]:
    """Word recall plus clock drawing.

    Recall is clamped to 0-3 (missing parts of a multi-item recall count
    as 0). Any positive clock score counts as 2. The total is an explicit
    total item clamped to 0-5, else the sum of both subscores.
    """
    config = builder.config
    opts = MiniCogOptions.model_validate(_merge_options(config, options))
    recall_ids = opts.recall_link_ids or ["minicog-question1"]
    cutoff = opts.high_severity_score_cutoff
    if cutoff is None:
        cutoff = config.high_severity_score_cutoff if config.high_severity_score_cutoff is not None else 3
    total_items = len(builder.answer_link_ids(definition))
    resolver = builder.resolver

    rows = []
    for response in responses:
        flat = flatten_items(response.get("item"))
        source = builder.source_of(response)

        if len(recall_ids) == 1:
            raw = resolver.score_of(definition, flat, recall_ids[0])
            recall = _clamp(raw, 0, 3) if raw is not None else None
        else:
            parts = [resolver.score_of(definition, flat, link_id) or 0 for link_id in recall_ids]
            recall = _clamp(sum(parts), 0, 3)

        clock_raw = resolver.score_of(definition, flat, opts.clock_link_id)
        clock = (2 if clock_raw >= 1 else 0) if clock_raw is not None else None

        total_raw = resolver.score_of(definition, flat, opts.total_link_id)
        if total_raw is not None:
            total = _clamp(total_raw, 0, 5)
        elif recall is not None and clock is not None:
            total = _clamp(recall + clock, 0, 5)
        else:
            total = None

        severity = severity_of(total, config.severity_bands)
        formatted = [
            entry
            for entry in builder.formatted_responses(definition, flat, source)
            if entry.id not in MINICOG_HIDDEN_LINK_IDS
        ]
        if not formatted:
            formatted = builder.responses_only(flat, source)

        answered, count = _answered_count(builder, flat, total_items, opts.total_link_id, total)
        rows.append(
            builder.base_row(
                response,
                formatted,
                source,
                score=total,
                score_severity=severity,
                score_meaning=meaning_of(severity, config, formatted),
                scores_by_link_id={
                    recall_ids[0]: recall,
                    opts.clock_link_id: clock,
                    opts.total_link_id: total,
                },
                word_recall_score=recall,
                clock_draw_score=clock,
                comparison_to_alert="lower",
                scoring_params=ScoringParams(
                    minimum_score=0, maximum_score=config.maximum_score or opts.maximum_score
                ),
                high_severity_score_cutoff=cutoff,
                total_items=count,
                total_answered_items=answered,
            )
        )
    return rows


STRATEGIES: dict[StrategyName, StrategyFn] = {
    StrategyName.GENERIC: summarize_generic,
    StrategyName.SLUMS: summarize_slums,
    StrategyName.CIDAS: summarize_cidas,
    StrategyName.MINICOG: summarize_minicog,
}

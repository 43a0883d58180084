"""Score trend, chart series, print and response tables derived from summary rows.

All functions take rows newest-first, as returned by ``SummaryBuilder``.
"""

from collections.abc import Sequence
from typing import Any

from pro_score.interpretation import meaning_of, severity_of
from pro_score.items import find_definition_item, is_number
from pro_score.matching import link_id_equals
from pro_score.registry.models import ScoringConfig
from pro_score.summary.models import (
    ChartPoint,
    ChartSeries,
    FormattedResponse,
    PrintData,
    ResponseSummaryRow,
    ScoreTrend,
    TableData,
    TableRow,
    TableScore,
)

MISSING_ANSWER = "--"


def format_date(value: Any) -> str:
    """Date part of an ISO timestamp, or "" when absent."""
    if not value:
        return ""
    return str(value)[:10]


def has_response_data(rows: Sequence[ResponseSummaryRow] | None) -> bool:
    """True when at least one row carries formatted responses."""
    return bool(rows) and any(row.responses for row in rows)


def has_score_data(rows: Sequence[ResponseSummaryRow] | None) -> bool:
    """True when at least one row carries a numeric score."""
    return bool(rows) and any(is_number(row.score) for row in rows)


def _crosses(score: Any, cutoff: float | None, direction: str) -> bool:
    if not is_number(score) or cutoff is None:
        return False
    return score <= cutoff if direction == "lower" else score >= cutoff


def _alert(current: ResponseSummaryRow, config: ScoringConfig) -> bool:
    if config.alert_question_id:
        for response in current.responses:
            if link_id_equals(response.id, config.alert_question_id, config.link_id_match_mode):
                return bool(response.answer)
        return False
    cutoff = current.high_severity_score_cutoff
    if cutoff is None:
        cutoff = config.high_severity_score_cutoff
    return _crosses(current.score, cutoff, current.comparison_to_alert)


def score_trend(
    rows: Sequence[ResponseSummaryRow] | None,
    config: ScoringConfig,
) -> ScoreTrend | None:
    """Compare the most recent score to the previous scored response.

    Args:
        rows: Summary rows, newest-first.
        config: The instrument config.

    Returns:
        The trend, or None when there are no rows.
    """
    if not rows:
        return None
    current = rows[0]
    previous = next((row for row in rows[1:] if is_number(row.score)), None)
    current_score = current.score if is_number(current.score) else None
    previous_score = previous.score if previous is not None else None

    comparison = None
    if current_score is not None and previous_score is not None:
        if current_score > previous_score:
            comparison = "higher"
        elif current_score < previous_score:
            comparison = "lower"
        else:
            comparison = "equal"

    severity = current.score_severity if current_score is not None else severity_of(None, config.severity_bands)
    return ScoreTrend(
        score=current_score,
        current_score=current_score,
        previous_score=previous_score,
        comparison=comparison,
        comparison_to_alert=current.comparison_to_alert,
        score_severity=severity,
        meaning=current.score_meaning or meaning_of(severity, config, current.responses),
        alert=_alert(current, config),
        warning=_crosses(
            current_score, config.medium_severity_score_cutoff, current.comparison_to_alert
        ),
        minimum_score=config.minimum_score if config.minimum_score is not None else 0,
        maximum_score=config.maximum_score,
        source=current.source,
    )


def chart_series(
    rows: Sequence[ResponseSummaryRow] | None,
    config: ScoringConfig,
) -> ChartSeries | None:
    """Build the chronological series of scored responses.

    Only rows with responses, a numeric score and a date are plotted.

    Returns:
        The series, or None when charts are disabled or nothing is plottable.
    """
    if config.skip_chart or not rows:
        return None
    plottable = [row for row in rows if row.responses and is_number(row.score) and row.date]
    if not plottable:
        return None

    points = [
        ChartPoint(
            id=f"{row.id}_{index}",
            date=row.date,
            score=row.score,
            score_severity=row.score_severity,
            source=row.source,
        )
        for index, row in enumerate(reversed(plottable))
    ]
    return ChartSeries(
        title=config.title or config.identifier,
        minimum_score=config.minimum_score if config.minimum_score is not None else 0,
        maximum_score=config.maximum_score,
        high_severity_score_cutoff=config.high_severity_score_cutoff,
        medium_severity_score_cutoff=config.medium_severity_score_cutoff,
        comparison_to_alert=config.comparison_to_alert,
        data=points,
    )


def print_data(rows: Sequence[ResponseSummaryRow] | None) -> PrintData | None:
    """Printable question/answer table of the most recent response.

    Returns:
        The table, or None when there is nothing to render.
    """
    if not has_response_data(rows):
        return None
    first = rows[0]
    header = f"{format_date(first.date)} ({first.source})" if first.source else format_date(first.date)
    body_rows = [
        [
            response.question or response.text or f"Question {response.id}",
            response.answer if response.answer not in (None, "") else MISSING_ANSWER,
        ]
        for response in first.responses
        if not response.is_help
    ]
    score_row = (
        {"score": first.score, "score_severity": first.score_severity, "meaning": first.score_meaning}
        if has_score_data(rows)
        else None
    )
    return PrintData(header_row=["Questions", header.strip()], body_rows=body_rows, score_row=score_row)


def _find_response(
    row: ResponseSummaryRow, link_id: str, mode: str
) -> FormattedResponse | None:
    for response in row.responses:
        if link_id_equals(response.id, link_id, mode):
            return response
    return None


def table_data(
    rows: Sequence[ResponseSummaryRow] | None,
    config: ScoringConfig,
    definition: dict[str, Any] | None = None,
) -> TableData | None:
    """Question-by-response table of every response in the group.

    Questions come from the config's ``question_link_ids``, else from the
    row with the most responses. Calculated and help items are left out.

    Args:
        rows: Summary rows, newest first.
        config: The instrument config.
        definition: The Questionnaire definition, for question texts.

    Returns:
        The table, or None when there is nothing to render.
    """
    if not has_response_data(rows):
        return None
    mode = config.link_id_match_mode
    anchor = max(rows, key=lambda row: len(row.responses))
    question_ids = list(config.question_link_ids) or list(
        dict.fromkeys(response.id for response in anchor.responses if response.id is not None)
    )
    column_ids = [f"{row.id}_{index}" for index, row in enumerate(rows)]

    table_rows = []
    for link_id in question_ids:
        sample = _find_response(anchor, link_id, mode)
        if sample is None:
            for row in rows:
                sample = _find_response(row, link_id, mode)
                if sample is not None:
                    break
        if sample is not None and (sample.is_value_expression or sample.is_help):
            continue
        question = (sample.question or sample.text) if sample is not None else None
        if not question:
            item = find_definition_item(definition, link_id, mode)
            question = (item or {}).get("text")
        answers = {}
        for column_id, row in zip(column_ids, rows):
            response = _find_response(row, link_id, mode)
            answer = response.answer if response is not None else None
            answers[column_id] = answer if answer not in (None, "") else MISSING_ANSWER
        table_rows.append(
            TableRow(
                id=link_id,
                question=str(question) if question else f"Question {link_id}",
                source=sample.source if sample is not None else None,
                read_only=sample.read_only if sample is not None else False,
                answers=answers,
            )
        )

    scores = None
    if has_score_data(rows) or any(row.score_meaning for row in rows):
        scores = {
            column_id: TableScore(
                score=row.score, score_severity=row.score_severity, meaning=row.score_meaning
            )
            for column_id, row in zip(column_ids, rows)
        }
    return TableData(response_ids=column_ids, rows=table_rows, scores=scores)

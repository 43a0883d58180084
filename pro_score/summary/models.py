"""Output models for questionnaire summaries.

Rows are created fresh on every summarize call and never cached.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from pro_score.registry.models import ScoringConfig

Comparison = Literal["higher", "lower", "equal"]


class FormattedResponse(BaseModel):
    """One question/answer pair rendered for display."""

    id: str | None = None
    question: str | None = None
    answer: Any = None
    text: str = ""
    raw_answer: Any = None
    read_only: bool = False
    is_value_expression: bool = False
    is_help: bool = False
    source: str | None = None


class ScoringParams(BaseModel):
    """Score range used when rendering a row."""

    minimum_score: float | None = 0
    maximum_score: float | None = None


class ResponseSummaryRow(BaseModel):
    """Summary of one QuestionnaireResponse.

    The optional fields after ``last_updated`` are only filled by the
    instruments that produce them.
    """

    id: str | None = None
    date: str | None = None
    responses: list[FormattedResponse] = Field(default_factory=list)
    score: float | None = None
    score_severity: str = "low"
    score_meaning: str | None = None
    total_items: int = 0
    total_answered_items: int = 0
    scoring_params: ScoringParams = Field(default_factory=ScoringParams)
    authored_date: str | None = None
    last_updated: str | None = None

    instrument_name: str | None = None
    source: str | None = None
    scoring_question_score: float | None = None
    sub_scores: dict[str, float | None] = Field(default_factory=dict)
    alert_note: str | None = None
    education_level: Literal["low", "high"] | None = None
    high_severity_score_cutoff: float | None = None
    comparison_to_alert: Literal["higher", "lower"] = "higher"
    scores_by_link_id: dict[str, float | None] | None = None
    word_recall_score: float | None = None
    clock_draw_score: float | None = None
    columns: dict[str, Any] = Field(default_factory=dict)


class ScoreTrend(BaseModel):
    """Current score compared to the previous scored response."""

    score: float | None = None
    current_score: float | None = None
    previous_score: float | None = None
    comparison: Comparison | None = None
    comparison_to_alert: Literal["higher", "lower"] = "higher"
    score_severity: str = "low"
    meaning: str | None = None
    alert: bool = False
    warning: bool = False
    minimum_score: float = 0
    maximum_score: float | None = None
    source: str | None = None


class ChartPoint(BaseModel):
    """One scored response on the chart."""

    id: str
    date: str
    score: float
    score_severity: str = "low"
    source: str | None = None


class ChartSeries(BaseModel):
    """Chronological score series for one questionnaire."""

    title: str = ""
    minimum_score: float = 0
    maximum_score: float | None = None
    high_severity_score_cutoff: float | None = None
    medium_severity_score_cutoff: float | None = None
    comparison_to_alert: Literal["higher", "lower"] = "higher"
    data: list[ChartPoint] = Field(default_factory=list)


class PrintData(BaseModel):
    """Printable table of the most recent response."""

    header_row: list[str]
    body_rows: list[list[Any]]
    score_row: dict[str, Any] | None = None


class TableRow(BaseModel):
    """One question across every response of a questionnaire group."""

    id: str
    question: str
    source: str | None = None
    read_only: bool = False
    answers: dict[str, Any] = Field(default_factory=dict)


class TableScore(BaseModel):
    score: float | None = None
    score_severity: str = "low"
    meaning: str | None = None


class TableData(BaseModel):
    """Question-by-response table, one column per response (newest first).

    Columns are keyed ``"{response id}_{index}"`` so that responses
    sharing an id stay apart.
    """

    response_ids: list[str]
    rows: list[TableRow]
    score_label: str = "Score / Meaning"
    scores: dict[str, TableScore] | None = None


class QuestionnaireSummary(BaseModel):
    """Everything produced for one questionnaire group."""

    key: str | None = None
    response_data: list[ResponseSummaryRow] = Field(default_factory=list)
    chart_data: ChartSeries | None = None
    score_trend: ScoreTrend | None = None
    print_data: PrintData | None = None
    table_data: TableData | None = None
    questionnaire: dict[str, Any] | None = None
    config: ScoringConfig | None = None
    error: str = ""

"""Summary building: per-response rows, strategies and trend data."""

from pro_score.summary.builder import SummaryBuilder, get_data_source
from pro_score.summary.models import (
    ChartPoint,
    ChartSeries,
    FormattedResponse,
    PrintData,
    QuestionnaireSummary,
    ResponseSummaryRow,
    ScoreTrend,
    ScoringParams,
    TableData,
    TableRow,
    TableScore,
)
from pro_score.summary.strategies import STRATEGIES, StrategyName, resolve_strategy
from pro_score.summary.trend import chart_series, print_data, score_trend, table_data

__all__ = [
    "STRATEGIES",
    "ChartPoint",
    "ChartSeries",
    "FormattedResponse",
    "PrintData",
    "QuestionnaireSummary",
    "ResponseSummaryRow",
    "ScoreTrend",
    "ScoringParams",
    "StrategyName",
    "SummaryBuilder",
    "TableData",
    "TableRow",
    "TableScore",
    "chart_series",
    "get_data_source",
    "print_data",
    "resolve_strategy",
    "score_trend",
    "table_data",
]

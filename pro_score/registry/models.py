"""Pydantic models for instrument scoring configurations."""

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pro_score.scoring.constants import DEFAULT_FALLBACK_SCORE_MAP

MatchMode = Literal["strict", "fuzzy"]
StrategyTag = Literal["slums", "cidas", "minicog"]


class SeverityBand(BaseModel):
    """Score threshold band."""

    min: float
    label: str
    meaning: str | None = None


class SubScoringQuestion(BaseModel):
    """A named sub-score read from a single item."""

    key: str
    link_id: str


class ResponseColumn(BaseModel):
    """An answer copied onto every summary row under a column id."""

    link_id: str
    id: str


class DeriveFrom(BaseModel):
    """Declares that an instrument's answer lives inside host responses."""

    link_id: str
    host_ids: list[str]
    target_questionnaire_id: str | None = None
    normalize_answer_to_coding: Callable[[Any], dict[str, Any]] | None = Field(
        default=None, exclude=True
    )


class ScoringConfig(BaseModel):
    """Scoring configuration for one questionnaire instrument."""

    key: str = ""
    questionnaire_id: str = ""
    questionnaire_name: str = ""
    questionnaire_url: str = ""
    title: str = ""
    subtitle: str = ""
    instrument_name: str | None = None
    match_mode: MatchMode = "fuzzy"
    link_id_match_mode: MatchMode = "strict"
    scoring_question_id: str | None = None
    question_link_ids: list[str] = Field(default_factory=list)
    sub_scoring_questions: list[SubScoringQuestion] = Field(default_factory=list)
    severity_bands: list[SeverityBand] = Field(default_factory=list)
    fallback_score_map: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_SCORE_MAP)
    )
    derive_from: DeriveFrom | None = None
    strategy: StrategyTag | None = None
    strategy_options: dict[str, Any] = Field(default_factory=dict)
    minimum_score: float | None = None
    maximum_score: float | None = None
    high_severity_score_cutoff: float | None = None
    medium_severity_score_cutoff: float | None = None
    comparison_to_alert: Literal["higher", "lower"] = "higher"
    meaning_question_id: str | None = None
    alert_question_id: str | None = None
    skip_chart: bool = False
    columns: list[ResponseColumn] = Field(default_factory=list)
    observation_code_map: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("severity_bands")
    @classmethod
    def sort_bands_descending(cls, bands: list[SeverityBand]) -> list[SeverityBand]:
        """Keep bands ordered highest threshold first."""
        return sorted(bands, key=lambda band: band.min, reverse=True)

    @field_validator("fallback_score_map")
    @classmethod
    def lowercase_fallback_keys(cls, mapping: dict[str, int]) -> dict[str, int]:
        """Fallback codes are looked up case-insensitively."""
        return {str(code).strip().lower(): value for code, value in mapping.items()}

    @property
    def identifier(self) -> str:
        """First non-empty identifier for this instrument."""
        for value in (
            self.key,
            self.questionnaire_id,
            self.questionnaire_name,
            self.questionnaire_url,
        ):
            if value:
                return value
        return ""

    def band_for_label(self, label: str | None) -> SeverityBand | None:
        """Get a severity band by its label."""
        for band in self.severity_bands:
            if band.label == label:
                return band
        return None

    @classmethod
    def for_definition(cls, definition: dict[str, Any] | None) -> "ScoringConfig":
        """Build a default config that identifies a questionnaire definition."""
        definition = definition or {}
        return cls(
            key=str(definition.get("id") or ""),
            questionnaire_id=str(definition.get("id") or ""),
            questionnaire_name=str(definition.get("name") or ""),
            questionnaire_url=str(definition.get("url") or ""),
            title=str(definition.get("title") or definition.get("name") or ""),
        )

"""Registry modules for instrument scoring configs."""

from pro_score.registry.configs import (
    ConfigNotFoundError,
    ConfigRegistry,
    ConfigValidationError,
    validate_config_data,
)
from pro_score.registry.models import (
    DeriveFrom,
    ResponseColumn,
    ScoringConfig,
    SeverityBand,
    SubScoringQuestion,
)

__all__ = [
    "ConfigNotFoundError",
    "ConfigRegistry",
    "ConfigValidationError",
    "DeriveFrom",
    "ResponseColumn",
    "ScoringConfig",
    "SeverityBand",
    "SubScoringQuestion",
    "validate_config_data",
]

"""pro-score: Scoring and derivation engine for patient-reported outcome questionnaires."""

__version__ = "0.1.0"

# These imports must come after __version__ to avoid circular import
from pro_score.callable import CallableResult, execute
from pro_score.engine import SummaryEngine
from pro_score.registry import ConfigRegistry, ScoringConfig

__all__ = [
    "__version__",
    "CallableResult",
    "ConfigRegistry",
    "ScoringConfig",
    "SummaryEngine",
    "execute",
]

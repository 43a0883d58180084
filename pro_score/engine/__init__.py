"""Engine entry points (sync and async)."""

from pro_score.engine.orchestrator import NO_HOST_RESPONSES, Loader, SummaryEngine

__all__ = [
    "Loader",
    "NO_HOST_RESPONSES",
    "SummaryEngine",
]

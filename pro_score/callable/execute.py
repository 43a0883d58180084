"""Execute interface for the pro-score callable protocol.

Provides the in-process execute() function for orchestrators that call
the engine directly instead of going through the CLI.
"""

from __future__ import annotations

from typing import Any

from pro_score.bundle import ResponseGrouper
from pro_score.callable.result import CallableResult
from pro_score.config import get_registry_path, load_global_config
from pro_score.engine import SummaryEngine
from pro_score.registry import ConfigRegistry


def execute(params: dict[str, Any]) -> dict[str, Any]:
    """Summarize the questionnaire responses of a bundle.

    Args:
        params: Dictionary containing:
            - bundle: dict | list - FHIR Bundle or list of resources (required)
            - instrument: str - Optional instrument key; when given only that
              instrument is summarized (derived instruments included)
            - config: dict - Optional overrides:
                - registry_path: str - Instrument registry directory
                - completed_only: bool - Only completed responses (default from
                  config.yaml, True when unset)
                - strategy_options: dict - Options for instrument strategies

    Returns:
        CallableResult dict with:
            - schema_version: "1.0"
            - items: list[dict] - Questionnaire summaries
            - stats: dict - Processing statistics

    Raises:
        ValueError: If required parameters are missing or invalid.
        ConfigNotFoundError: If the instrument is not registered.
    """
    if "bundle" not in params:
        raise ValueError("'bundle' is required in params")
    bundle = params["bundle"]
    if not isinstance(bundle, (dict, list)):
        raise ValueError("'bundle' must be a Bundle dict or a list of resources")

    config = params.get("config") or {}
    registry_path = config.get("registry_path") or get_registry_path()
    completed_only = config.get("completed_only")
    if completed_only is None:
        completed_only = load_global_config().completed_only
    strategy_options = config.get("strategy_options")

    registry = ConfigRegistry(registry_path)
    engine = SummaryEngine(bundle=bundle, registry=registry)

    instrument = params.get("instrument")
    if instrument:
        summary = engine.summary_for_questionnaire(
            registry.get(instrument),
            completed_only=completed_only,
            strategy_options=strategy_options,
        )
        summaries = [summary] if summary is not None else []
    else:
        summaries = list(
            engine.summaries_by_questionnaire(
                completed_only=completed_only,
                strategy_options=strategy_options,
            ).values()
        )

    items = [summary.model_dump(mode="json") for summary in summaries]
    stats = {
        "input": len(ResponseGrouper().responses(bundle, completed_only)),
        "output": len(items),
        "rows": sum(len(summary.response_data) for summary in summaries),
        "errors": sum(1 for summary in summaries if summary.error),
    }

    result = CallableResult(schema_version="1.0", items=items, stats=stats)
    return result.to_dict()

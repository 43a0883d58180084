"""Engine entry points for summarizing questionnaire bundles.

Groups the responses of a bundle, resolves each group's definition and
config, and hands everything to the summary builder. Definition lookup
is the only step that may be asynchronous: the async entry points await
the injected loader, resolving every group concurrently, while the sync
entry points require the loader to answer immediately.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from pro_score.bundle import (
    ResponseGrouper,
    conditions_from_bundle,
    make_bundle_loader,
    responses_from_observations,
)
from pro_score.derivation import derive_for_config, is_host_response
from pro_score.registry import ConfigRegistry, ScoringConfig
from pro_score.summary import (
    QuestionnaireSummary,
    ResponseSummaryRow,
    SummaryBuilder,
    chart_series,
    print_data,
    score_trend,
    table_data,
)

logger = logging.getLogger(__name__)

NO_HOST_RESPONSES = "no host questionnaire responses found"

Loader = Callable[[str], Any]


def _require_sync(definition: Any, ref: str) -> dict[str, Any] | None:
    if inspect.isawaitable(definition):
        if inspect.iscoroutine(definition):
            definition.close()
        raise TypeError(
            f"Definition loader returned an awaitable for {ref!r}; "
            "use the async entry point for asynchronous loaders"
        )
    return definition


async def _load_async(load: Loader, ref: str) -> dict[str, Any] | None:
    definition = load(ref)
    if inspect.isawaitable(definition):
        definition = await definition
    return definition


class SummaryEngine:
    """Summarizes questionnaire responses found in a bundle.

    The engine keeps no state between calls. ``bundle`` and ``registry``
    are defaults that every entry point can override.
    """

    def __init__(
        self,
        bundle: Any = None,
        registry: ConfigRegistry | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            bundle: Default bundle (FHIR Bundle or list of resources).
            registry: Config registry. Defaults to the built-in instruments.
        """
        self.bundle = bundle
        self.registry = registry if registry is not None else ConfigRegistry()
        self.grouper = ResponseGrouper()

    def _bundle(self, bundle: Any) -> Any:
        return self.bundle if bundle is None else bundle

    def _loader(self, loader: Loader | None, bundle: Any) -> Loader:
        return loader if loader is not None else make_bundle_loader(bundle, self.registry)

    # -------------------- building blocks --------------------

    def summarize(
        self,
        responses: list[dict[str, Any]] | None,
        definition: dict[str, Any] | None,
        config: ScoringConfig,
        conditions: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
    ) -> list[ResponseSummaryRow]:
        """Summarize responses with the summary builder."""
        return SummaryBuilder(config).summarize(responses, definition, conditions, options)

    def build_summary(
        self,
        ref: str | None,
        responses: list[dict[str, Any]],
        definition: dict[str, Any] | None,
        config: ScoringConfig,
        conditions: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
        error: str = "",
    ) -> QuestionnaireSummary:
        """Summarize responses into a full questionnaire summary record."""
        rows = self.summarize(responses, definition, config, conditions, options)
        key = (definition or {}).get("id") or ref
        return QuestionnaireSummary(
            key=key,
            response_data=rows,
            chart_data=chart_series(rows, config),
            score_trend=score_trend(rows, config),
            print_data=print_data(rows),
            table_data=table_data(rows, config, definition),
            questionnaire=definition,
            config=config,
            error=error,
        )

    def _group_summary(
        self,
        ref: str,
        responses: list[dict[str, Any]],
        definition: dict[str, Any] | None,
        conditions: list[dict[str, Any]],
        options: dict[str, Any] | None,
    ) -> QuestionnaireSummary | None:
        if definition is None:
            logger.debug(
                "No definition found for %s; skipping group", ref, extra={"questionnaire": ref}
            )
            return None
        config = self.registry.resolve(ref, definition)
        summary = self.build_summary(ref, responses, definition, config, conditions, options)
        return summary if summary.response_data else None

    def _responses_for(
        self,
        config: ScoringConfig,
        bundle: Any,
        completed_only: bool,
        host_responses: list[dict[str, Any]] | None,
        target_questionnaire_id: str | None,
    ) -> tuple[list[dict[str, Any]], str]:
        """Responses for one config.

        Derived instruments fall back to responses synthesized from their
        hosts, other instruments to responses built from Observations.
        """
        responses = self.grouper.for_questionnaire(bundle, config, completed_only)
        derive_from = config.derive_from
        if derive_from is None:
            return responses or responses_from_observations(bundle, config), ""

        looks_like_host = any(is_host_response(r, derive_from.host_ids) for r in responses)
        if responses and not looks_like_host:
            return responses, ""

        if host_responses is not None:
            hosts = host_responses
        elif looks_like_host:
            hosts = responses
        else:
            hosts = self.grouper.hosts_for(bundle, derive_from.host_ids, completed_only)
        if not hosts:
            logger.warning(
                "No host responses for derived questionnaire %s",
                config.identifier,
                extra={"questionnaire": config.identifier},
            )
            return [], NO_HOST_RESPONSES
        return derive_for_config(hosts, config, target_questionnaire_id), ""

    @staticmethod
    def _candidate_refs(config: ScoringConfig, responses: list[dict[str, Any]]) -> list[str]:
        refs = []
        if responses and responses[0].get("questionnaire"):
            refs.append(str(responses[0]["questionnaire"]))
        for value in (config.questionnaire_url, config.questionnaire_id, config.key):
            if value:
                refs.append(value if "/" in value else f"Questionnaire/{value}")
        return list(dict.fromkeys(refs))

    def _finish_single(
        self,
        config: ScoringConfig,
        responses: list[dict[str, Any]],
        definition: dict[str, Any] | None,
        error: str,
        bundle: Any,
        conditions: list[dict[str, Any]] | None,
        strategy_options: dict[str, Any] | None,
    ) -> QuestionnaireSummary | None:
        if definition is None and not error:
            logger.debug(
                "No definition available for %s",
                config.identifier,
                extra={"questionnaire": config.identifier},
            )
            return None
        if conditions is None:
            conditions = conditions_from_bundle(bundle)
        ref = responses[0].get("questionnaire") if responses else config.identifier
        return self.build_summary(
            ref, responses, definition, config, conditions, strategy_options, error=error
        )

    # -------------------- sync entry points --------------------

    def summaries_by_questionnaire(
        self,
        loader: Loader | None = None,
        completed_only: bool = True,
        bundle: Any = None,
        strategy_options: dict[str, Any] | None = None,
    ) -> dict[str, QuestionnaireSummary]:
        """Summarize every questionnaire found in a bundle.

        Args:
            loader: Maps a questionnaire reference to its definition. It must
                answer synchronously. Defaults to the in-bundle index backed
                by the config registry.
            completed_only: Only summarize completed responses.
            bundle: Bundle overriding the engine default.
            strategy_options: Options passed to instrument strategies.

        Returns:
            Mapping of questionnaire reference to summary. Groups without a
            definition or without rows are omitted.

        Raises:
            TypeError: If the loader returns an awaitable.
        """
        bundle = self._bundle(bundle)
        load = self._loader(loader, bundle)
        conditions = conditions_from_bundle(bundle)
        out: dict[str, QuestionnaireSummary] = {}
        for ref, responses in self.grouper.group(bundle, completed_only).items():
            definition = _require_sync(load(ref), ref)
            summary = self._group_summary(ref, responses, definition, conditions, strategy_options)
            if summary is not None:
                out[ref] = summary
        return out

    def summary_for_questionnaire(
        self,
        config: ScoringConfig,
        definition: dict[str, Any] | None = None,
        loader: Loader | None = None,
        completed_only: bool = True,
        bundle: Any = None,
        host_responses: list[dict[str, Any]] | None = None,
        conditions: list[dict[str, Any]] | None = None,
        strategy_options: dict[str, Any] | None = None,
    ) -> QuestionnaireSummary | None:
        """Summarize the responses of one configured questionnaire.

        Derived instruments without responses of their own are summarized
        from responses synthesized out of their host responses.

        Args:
            config: The instrument config.
            definition: The definition, if already known.
            loader: Synchronous definition loader used when ``definition``
                is not given.
            completed_only: Only summarize completed responses.
            bundle: Bundle overriding the engine default.
            host_responses: Host responses for derived instruments. Pulled
                from the bundle when omitted.
            conditions: Patient conditions. Pulled from the bundle when omitted.
            strategy_options: Options passed to instrument strategies.

        Returns:
            The summary, or None when no definition is available. A derived
            instrument with no host responses yields a summary carrying an
            error instead of rows.

        Raises:
            TypeError: If the loader returns an awaitable.
        """
        bundle = self._bundle(bundle)
        target = (definition or {}).get("id")
        responses, error = self._responses_for(
            config, bundle, completed_only, host_responses, target
        )
        if definition is None:
            load = self._loader(loader, bundle)
            for ref in self._candidate_refs(config, responses):
                definition = _require_sync(load(ref), ref)
                if definition is not None:
                    break
        return self._finish_single(
            config, responses, definition, error, bundle, conditions, strategy_options
        )

    # -------------------- async entry points --------------------

    async def summaries_by_questionnaire_async(
        self,
        loader: Loader | None = None,
        completed_only: bool = True,
        bundle: Any = None,
        strategy_options: dict[str, Any] | None = None,
    ) -> dict[str, QuestionnaireSummary]:
        """Summarize every questionnaire found in a bundle.

        Same as ``summaries_by_questionnaire`` except that the loader may
        return awaitables. Definitions for all groups are resolved
        concurrently; loader exceptions propagate to the caller.
        """
        bundle = self._bundle(bundle)
        load = self._loader(loader, bundle)
        conditions = conditions_from_bundle(bundle)
        groups = self.grouper.group(bundle, completed_only)
        refs = list(groups)
        definitions = await asyncio.gather(*(_load_async(load, ref) for ref in refs))

        out: dict[str, QuestionnaireSummary] = {}
        for ref, definition in zip(refs, definitions):
            summary = self._group_summary(ref, groups[ref], definition, conditions, strategy_options)
            if summary is not None:
                out[ref] = summary
        return out

    async def summary_for_questionnaire_async(
        self,
        config: ScoringConfig,
        definition: dict[str, Any] | None = None,
        loader: Loader | None = None,
        completed_only: bool = True,
        bundle: Any = None,
        host_responses: list[dict[str, Any]] | None = None,
        conditions: list[dict[str, Any]] | None = None,
        strategy_options: dict[str, Any] | None = None,
    ) -> QuestionnaireSummary | None:
        """Async variant of ``summary_for_questionnaire``."""
        bundle = self._bundle(bundle)
        target = (definition or {}).get("id")
        responses, error = self._responses_for(
            config, bundle, completed_only, host_responses, target
        )
        if definition is None:
            load = self._loader(loader, bundle)
            for ref in self._candidate_refs(config, responses):
                definition = await _load_async(load, ref)
                if definition is not None:
                    break
        return self._finish_single(
            config, responses, definition, error, bundle, conditions, strategy_options
        )

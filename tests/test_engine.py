"""Tests for the summary engine entry points."""

import asyncio
import logging
import random
from collections.abc import Callable
from typing import Any

import pytest

from pro_score.engine import NO_HOST_RESPONSES, SummaryEngine
from pro_score.registry import ConfigRegistry, ScoringConfig

PHQ9_REF = "Questionnaire/CIRG-PHQ9"


@pytest.fixture
def engine(phq9_bundle: dict[str, Any], registry: ConfigRegistry) -> SummaryEngine:
    """Engine over the PHQ-9 bundle."""
    return SummaryEngine(bundle=phq9_bundle, registry=registry)


def response_ids(summary: Any) -> list[str]:
    return [row.id for row in summary.response_data]


class TestSummariesByQuestionnaire:
    """Tests for the sync summaries_by_questionnaire entry point."""

    def test_full_summary(self, engine: SummaryEngine) -> None:
        """Test rows, trend, chart and print data for a bundle group."""
        summaries = engine.summaries_by_questionnaire()

        assert list(summaries) == [PHQ9_REF]
        summary = summaries[PHQ9_REF]
        assert summary.key == "CIRG-PHQ9"
        assert summary.error == ""
        assert summary.config.key == "CIRG-PHQ9"
        assert response_ids(summary) == ["phq9-response-3", "phq9-response-2", "phq9-response-1"]
        assert summary.score_trend.current_score == 22
        assert summary.score_trend.previous_score == 18
        assert summary.score_trend.comparison == "higher"
        assert summary.score_trend.alert is True
        assert [p.score for p in summary.chart_data.data] == [9, 18, 22]
        assert summary.print_data.header_row == ["Questions", "2024-03-01 (epic)"]

    def test_shuffled_responses_reverse_chronological(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        phq9_definition: dict[str, Any],
        registry: ConfigRegistry,
    ) -> None:
        """Test that 25 shuffled responses are summarized newest first."""
        responses = [
            make_phq9_response(f"r{n:02d}", authored=f"2024-01-{n + 1:02d}T08:00:00Z")
            for n in range(25)
        ]
        random.Random(11).shuffle(responses)
        engine = SummaryEngine(registry=registry)

        summaries = engine.summaries_by_questionnaire(
            bundle=make_bundle(phq9_definition, *responses)
        )

        assert response_ids(summaries[PHQ9_REF]) == [f"r{n:02d}" for n in reversed(range(25))]

    def test_bundle_override_narrowing(
        self,
        engine: SummaryEngine,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that an override bundle of the newest K responses gives the first K ids."""
        responses = [
            make_phq9_response(f"r{n:02d}", authored=f"2024-02-{n + 1:02d}T08:00:00Z")
            for n in range(10)
        ]
        full = engine.summaries_by_questionnaire(bundle=make_bundle(phq9_definition, *responses))
        full_ids = response_ids(full[PHQ9_REF])

        newest = sorted(responses, key=lambda r: r["authored"], reverse=True)[:4]
        narrowed = engine.summaries_by_questionnaire(bundle=make_bundle(phq9_definition, *newest))

        assert response_ids(narrowed[PHQ9_REF]) == full_ids[:4]

    def test_group_without_definition_omitted(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        registry: ConfigRegistry,
    ) -> None:
        """Test that groups with no definition anywhere are left out."""
        unknown = make_phq9_response("u1", questionnaire="Questionnaire/zzz-unregistered")
        engine = SummaryEngine(bundle=make_bundle(unknown), registry=registry)

        assert engine.summaries_by_questionnaire() == {}

    def test_registry_definition_fallback(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        phq9_responses: list[dict[str, Any]],
        registry: ConfigRegistry,
    ) -> None:
        """Test that registered instruments are summarized without a bundled definition."""
        engine = SummaryEngine(bundle=make_bundle(*phq9_responses), registry=registry)

        summary = engine.summaries_by_questionnaire()[PHQ9_REF]

        assert [row.score for row in summary.response_data] == [22, 18, 9]

    def test_injected_loader(
        self,
        phq9_responses: list[dict[str, Any]],
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that an injected loader supplies definitions."""
        requested: list[str] = []

        def loader(ref: str) -> dict[str, Any] | None:
            requested.append(ref)
            return phq9_definition if ref == PHQ9_REF else None

        engine = SummaryEngine(bundle=phq9_responses)

        summaries = engine.summaries_by_questionnaire(loader=loader)

        assert requested == [PHQ9_REF]
        assert response_ids(summaries[PHQ9_REF])[0] == "phq9-response-3"

    def test_async_loader_rejected(self, engine: SummaryEngine) -> None:
        """Test that the sync entry point refuses awaitable definitions."""

        async def loader(ref: str) -> None:
            return None

        with pytest.raises(TypeError, match="awaitable"):
            engine.summaries_by_questionnaire(loader=loader)

    def test_completed_only(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        phq9_definition: dict[str, Any],
        registry: ConfigRegistry,
    ) -> None:
        """Test that in-progress responses are only summarized on request."""
        bundle = make_bundle(
            phq9_definition,
            make_phq9_response("done"),
            make_phq9_response("draft", status="in-progress", authored="2024-05-01T00:00:00Z"),
        )
        engine = SummaryEngine(bundle=bundle, registry=registry)

        assert response_ids(engine.summaries_by_questionnaire()[PHQ9_REF]) == ["done"]
        assert response_ids(
            engine.summaries_by_questionnaire(completed_only=False)[PHQ9_REF]
        ) == ["draft", "done"]

    def test_identical_inputs_deep_equal(self, engine: SummaryEngine) -> None:
        """Test that repeated calls give deep-equal output."""
        first = engine.summaries_by_questionnaire()
        second = engine.summaries_by_questionnaire()

        assert {k: v.model_dump() for k, v in first.items()} == {
            k: v.model_dump() for k, v in second.items()
        }


class TestSummariesByQuestionnaireAsync:
    """Tests for the async summaries_by_questionnaire entry point."""

    def test_async_loader(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        phq9_responses: list[dict[str, Any]],
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that async loaders are awaited."""

        async def loader(ref: str) -> dict[str, Any] | None:
            await asyncio.sleep(0)
            return phq9_definition if ref == PHQ9_REF else None

        engine = SummaryEngine(bundle=make_bundle(*phq9_responses))

        summaries = asyncio.run(engine.summaries_by_questionnaire_async(loader=loader))

        assert response_ids(summaries[PHQ9_REF]) == [
            "phq9-response-3",
            "phq9-response-2",
            "phq9-response-1",
        ]

    def test_matches_sync_result(self, engine: SummaryEngine) -> None:
        """Test that the async path gives the same summaries as the sync path."""
        sync_result = engine.summaries_by_questionnaire()
        async_result = asyncio.run(engine.summaries_by_questionnaire_async())

        assert {k: v.model_dump() for k, v in async_result.items()} == {
            k: v.model_dump() for k, v in sync_result.items()
        }

    def test_groups_resolved_concurrently(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that every group's definition is requested before any completes."""
        started: list[str] = []
        bundle = make_bundle(
            make_phq9_response("p1"),
            make_phq9_response("g1", questionnaire="Questionnaire/CIRG-GAD7"),
        )
        engine = SummaryEngine(bundle=bundle)

        async def run() -> dict[str, Any]:
            both_started = asyncio.Event()

            async def loader(ref: str) -> dict[str, Any] | None:
                started.append(ref)
                if len(started) == 2:
                    both_started.set()
                await asyncio.wait_for(both_started.wait(), timeout=1)
                return phq9_definition if ref == PHQ9_REF else None

            return await engine.summaries_by_questionnaire_async(loader=loader)

        summaries = asyncio.run(run())

        assert sorted(started) == ["Questionnaire/CIRG-GAD7", PHQ9_REF]
        assert list(summaries) == [PHQ9_REF]

    def test_loader_errors_propagate(self, engine: SummaryEngine) -> None:
        """Test that loader exceptions reach the caller."""

        async def loader(ref: str) -> dict[str, Any]:
            raise RuntimeError(f"cannot load {ref}")

        with pytest.raises(RuntimeError, match="cannot load"):
            asyncio.run(engine.summaries_by_questionnaire_async(loader=loader))


class TestSummaryForQuestionnaire:
    """Tests for summary_for_questionnaire."""

    def test_registered_instrument(
        self, engine: SummaryEngine, phq9_config: ScoringConfig
    ) -> None:
        """Test summarizing a single configured instrument."""
        summary = engine.summary_for_questionnaire(phq9_config)

        assert summary is not None
        assert summary.key == "CIRG-PHQ9"
        assert [row.score for row in summary.response_data] == [22, 18, 9]

    def test_explicit_definition(
        self,
        engine: SummaryEngine,
        phq9_config: ScoringConfig,
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that a given definition skips loading."""

        def loader(ref: str) -> None:
            raise AssertionError("loader should not be called")

        summary = engine.summary_for_questionnaire(
            phq9_config, definition=phq9_definition, loader=loader
        )

        assert summary.questionnaire == phq9_definition

    def test_derived_from_host_responses(
        self, engine: SummaryEngine, si_config: ScoringConfig
    ) -> None:
        """Test that a derived instrument is summarized from its hosts."""
        summary = engine.summary_for_questionnaire(si_config)

        assert summary is not None
        assert summary.error == ""
        assert response_ids(summary) == [
            "phq9-response-3_CIRG-SI",
            "phq9-response-2_CIRG-SI",
            "phq9-response-1_CIRG-SI",
        ]
        assert [row.score for row in summary.response_data] == [1, 2, 1]
        assert [row.score_severity for row in summary.response_data] == ["mild", "moderate", "mild"]

    def test_explicit_host_responses(
        self,
        engine: SummaryEngine,
        si_config: ScoringConfig,
        make_phq9_response: Callable[..., dict[str, Any]],
    ) -> None:
        """Test that host responses can be passed in directly."""
        host = make_phq9_response("external", scores=(0,) * 8 + (3,))

        summary = engine.summary_for_questionnaire(si_config, bundle=[], host_responses=[host])

        assert response_ids(summary) == ["external_CIRG-SI"]
        assert summary.response_data[0].score_severity == "high"

    def test_no_host_responses(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        make_phq9_response: Callable[..., dict[str, Any]],
        si_config: ScoringConfig,
        registry: ConfigRegistry,
    ) -> None:
        """Test the error reported when a derived instrument has no hosts."""
        gad7 = make_phq9_response("g1", questionnaire="Questionnaire/CIRG-GAD7")
        engine = SummaryEngine(bundle=make_bundle(gad7), registry=registry)

        summary = engine.summary_for_questionnaire(si_config)

        assert summary is not None
        assert summary.error == NO_HOST_RESPONSES
        assert summary.response_data == []
        assert summary.print_data is None
        assert summary.score_trend is None

    def test_no_host_warning_names_questionnaire(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        si_config: ScoringConfig,
        registry: ConfigRegistry,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that the warning carries the questionnaire for structured logs."""
        engine = SummaryEngine(bundle=make_bundle(), registry=registry)

        with caplog.at_level(logging.WARNING, logger="pro_score.engine"):
            engine.summary_for_questionnaire(si_config)

        records = [r for r in caplog.records if r.name.startswith("pro_score.engine")]
        assert len(records) == 1
        assert records[0].questionnaire == si_config.identifier

    def test_own_responses_used_for_derived_instrument(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        si_config: ScoringConfig,
        registry: ConfigRegistry,
    ) -> None:
        """Test that a derived instrument's own responses are used as-is."""
        own = {
            "resourceType": "QuestionnaireResponse",
            "id": "si-1",
            "questionnaire": "Questionnaire/CIRG-SI",
            "status": "completed",
            "authored": "2024-01-01T00:00:00Z",
            "item": [{"linkId": "/44260-8", "answer": [{"valueInteger": 3}]}],
        }
        engine = SummaryEngine(bundle=make_bundle(own), registry=registry)

        summary = engine.summary_for_questionnaire(si_config)

        assert response_ids(summary) == ["si-1"]
        assert summary.response_data[0].score == 3

    def test_unknown_instrument(self, engine: SummaryEngine) -> None:
        """Test that an instrument without a definition gives None."""
        config = ScoringConfig(key="zzz-unregistered", questionnaire_id="zzz-unregistered")

        assert engine.summary_for_questionnaire(config) is None

    def test_responses_from_observations(
        self,
        registry: ConfigRegistry,
        phq9_config: ScoringConfig,
        phq9_definition: dict[str, Any],
        make_bundle: Callable[..., dict[str, Any]],
    ) -> None:
        """Test that Observations stand in for missing QuestionnaireResponses."""
        observations = [
            {
                "resourceType": "Observation",
                "id": f"obs-{index}",
                "status": "final",
                "code": {"coding": [{"system": "http://loinc.org", "code": link_id.lstrip("/")}]},
                "effectiveDateTime": "2024-05-01T09:00:00Z",
                "valueQuantity": {"value": 2},
            }
            for index, link_id in enumerate(phq9_config.question_link_ids)
        ]
        bundle = make_bundle(phq9_definition, *observations)
        engine = SummaryEngine(bundle=bundle, registry=registry)

        summary = engine.summary_for_questionnaire(phq9_config)

        assert summary is not None
        assert response_ids(summary) == ["obs-0_CIRG-PHQ9"]
        assert summary.response_data[0].score == 18

    def test_strategy_with_bundle_conditions(
        self,
        make_bundle: Callable[..., dict[str, Any]],
        registry: ConfigRegistry,
    ) -> None:
        """Test that Conditions in the bundle reach the strategies."""
        slums = {
            "resourceType": "QuestionnaireResponse",
            "id": "s1",
            "questionnaire": "Questionnaire/CIRG-SLUMS",
            "status": "completed",
            "authored": "2024-01-01T00:00:00Z",
            "item": [{"linkId": "/71492-3", "answer": [{"valueInteger": 20}]}],
        }
        condition = {"resourceType": "Condition", "code": {"coding": [{"code": "Z55.5"}]}}
        engine = SummaryEngine(bundle=make_bundle(slums, condition), registry=registry)

        summary = engine.summary_for_questionnaire(registry.get("CIRG-SLUMS"))

        assert summary.response_data[0].education_level == "low"
        assert summary.response_data[0].score_severity == "low"

    def test_async_variant(self, engine: SummaryEngine, si_config: ScoringConfig) -> None:
        """Test that the async variant matches the sync result."""
        sync_summary = engine.summary_for_questionnaire(si_config)
        async_summary = asyncio.run(engine.summary_for_questionnaire_async(si_config))

        assert async_summary.model_dump() == sync_summary.model_dump()

    def test_async_variant_awaits_loader(
        self,
        engine: SummaryEngine,
        phq9_config: ScoringConfig,
        phq9_definition: dict[str, Any],
    ) -> None:
        """Test that the async variant awaits an async loader."""

        async def loader(ref: str) -> dict[str, Any]:
            return phq9_definition

        summary = asyncio.run(engine.summary_for_questionnaire_async(phq9_config, loader=loader))

        assert summary.questionnaire == phq9_definition

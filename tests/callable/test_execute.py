"""Tests for the execute() interface."""

from pathlib import Path
from typing import Any

import pytest

from pro_score import execute
from pro_score.config import GlobalConfig, save_global_config
from pro_score.registry import ConfigNotFoundError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep execute() away from the user's config and registry."""
    monkeypatch.setenv("PRO_SCORE_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("PRO_SCORE_REGISTRY", raising=False)


class TestExecuteInterface:
    """Tests for execute() function interface."""

    def test_execute_returns_callable_result(self, phq9_bundle: dict[str, Any]) -> None:
        """Test the shape of the execute result."""
        result = execute({"bundle": phq9_bundle})

        assert result["schema_version"] == "1.0"
        assert "items_ref" not in result
        assert len(result["items"]) == 1
        assert result["items"][0]["key"] == "CIRG-PHQ9"

    def test_stats(self, phq9_bundle: dict[str, Any]) -> None:
        """Test processing statistics."""
        result = execute({"bundle": phq9_bundle})

        assert result["stats"] == {"input": 3, "output": 1, "rows": 3, "errors": 0}

    def test_items_are_json_ready(self, phq9_bundle: dict[str, Any]) -> None:
        """Test that items are plain JSON-compatible dicts."""
        item = execute({"bundle": phq9_bundle})["items"][0]

        assert isinstance(item["response_data"][0], dict)
        assert item["response_data"][0]["id"] == "phq9-response-3"

    def test_single_instrument(self, phq9_bundle: dict[str, Any]) -> None:
        """Test summarizing one derived instrument."""
        result = execute({"bundle": phq9_bundle, "instrument": "CIRG-SI"})

        assert [row["score"] for row in result["items"][0]["response_data"]] == [1, 2, 1]

    def test_no_host_error_counted(self, phq9_definition: dict[str, Any]) -> None:
        """Test that summaries carrying an error are counted."""
        result = execute({"bundle": [phq9_definition], "instrument": "CIRG-SI"})

        assert result["stats"]["errors"] == 1
        assert result["items"][0]["error"] == "no host questionnaire responses found"

    def test_include_incomplete(
        self,
        phq9_bundle: dict[str, Any],
        make_phq9_response: Any,
    ) -> None:
        """Test the completed_only override."""
        phq9_bundle["entry"].append(
            {"resource": make_phq9_response("draft", status="in-progress", authored="2024-04-01")}
        )

        completed = execute({"bundle": phq9_bundle})
        everything = execute({"bundle": phq9_bundle, "config": {"completed_only": False}})

        assert completed["stats"]["rows"] == 3
        assert everything["stats"]["rows"] == 4
        assert everything["stats"]["input"] == 4

    def test_completed_only_from_config_file(
        self,
        phq9_bundle: dict[str, Any],
        make_phq9_response: Any,
    ) -> None:
        """Test that config.yaml supplies the completed_only default."""
        phq9_bundle["entry"].append(
            {"resource": make_phq9_response("draft", status="in-progress", authored="2024-04-01")}
        )
        save_global_config(GlobalConfig(completed_only=False))

        assert execute({"bundle": phq9_bundle})["stats"]["rows"] == 4
        assert execute({"bundle": phq9_bundle, "config": {"completed_only": True}})["stats"]["rows"] == 3


class TestExecuteErrors:
    """Tests for execute() parameter errors."""

    def test_missing_bundle(self) -> None:
        """Test that a bundle is required."""
        with pytest.raises(ValueError, match="'bundle' is required"):
            execute({})

    def test_invalid_bundle(self) -> None:
        """Test that the bundle must be a dict or list."""
        with pytest.raises(ValueError, match="must be a Bundle"):
            execute({"bundle": "not a bundle"})

    def test_unknown_instrument(self, phq9_bundle: dict[str, Any]) -> None:
        """Test that unknown instruments raise ConfigNotFoundError."""
        with pytest.raises(ConfigNotFoundError):
            execute({"bundle": phq9_bundle, "instrument": "NOPE"})

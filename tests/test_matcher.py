"""Tests for questionnaire reference and linkId matching."""

from pro_score.matching import (
    fuzzy_match,
    link_id_equals,
    normalize_link_id,
    normalize_ref,
    normalize_str,
    questionnaire_ref_matches,
)
from pro_score.registry import ScoringConfig


class TestNormalization:
    """Tests for the normalization helpers."""

    def test_normalize_str(self) -> None:
        """Test trimming and lower-casing."""
        assert normalize_str("  PHQ-9 ") == "phq-9"
        assert normalize_str(None) == ""
        assert normalize_str(9) == "9"

    def test_normalize_ref_strips_type_prefix(self) -> None:
        """Test that the Questionnaire/ prefix is removed."""
        assert normalize_ref("Questionnaire/CIRG-PHQ9") == "cirg-phq9"
        assert normalize_ref("/Questionnaire/CIRG-PHQ9") == "cirg-phq9"
        assert normalize_ref("questionnaire/x ") == "x"

    def test_normalize_ref_keeps_urls(self) -> None:
        """Test that canonical urls are only lower-cased."""
        assert normalize_ref("http://example.org/Questionnaire/PHQ9") == (
            "http://example.org/questionnaire/phq9"
        )

    def test_normalize_link_id(self) -> None:
        """Test that leading slashes are removed."""
        assert normalize_link_id("/44250-9") == "44250-9"
        assert normalize_link_id(" 44250-9 ") == "44250-9"
        assert normalize_link_id(None) == ""


class TestFuzzyMatch:
    """Tests for containment matching."""

    def test_containment(self) -> None:
        """Test that either side may contain the other."""
        assert fuzzy_match("phq9", "cirg-phq9")
        assert fuzzy_match("CIRG-PHQ9", "phq9")

    def test_separators_ignored(self) -> None:
        """Test that separators do not prevent a match."""
        assert fuzzy_match("PHQ-9", "phq9")
        assert fuzzy_match("phq_9", "PHQ 9")

    def test_empty_never_matches(self) -> None:
        """Test that empty strings never match."""
        assert not fuzzy_match("", "phq9")
        assert not fuzzy_match(None, "phq9")
        assert not fuzzy_match("---", "phq9")

    def test_unrelated(self) -> None:
        """Test that unrelated names do not match."""
        assert not fuzzy_match("gad7", "phq9")


class TestLinkIdEquals:
    """Tests for linkId comparison."""

    def test_strict_ignores_leading_slash(self) -> None:
        """Test strict equality after normalization."""
        assert link_id_equals("/44250-9", "44250-9")
        assert not link_id_equals("44250", "44250-9")

    def test_fuzzy_containment(self) -> None:
        """Test fuzzy containment."""
        assert link_id_equals("44250", "/44250-9", mode="fuzzy")

    def test_empty_never_equal(self) -> None:
        """Test that empty linkIds never match."""
        assert not link_id_equals("", "")
        assert not link_id_equals(None, "/")


class TestQuestionnaireRefMatches:
    """Tests for matching references against instrument configs."""

    def test_fuzzy_name_against_id(self) -> None:
        """Test that a display name fuzzily matches a bare id."""
        config = ScoringConfig(questionnaire_id="phq9", match_mode="fuzzy")

        assert questionnaire_ref_matches("PHQ-9", config)

    def test_strict_requires_exact_field(self) -> None:
        """Test that strict mode rejects the same pair."""
        config = ScoringConfig(questionnaire_id="phq9", match_mode="strict")

        assert not questionnaire_ref_matches("PHQ-9", config)
        assert questionnaire_ref_matches("Questionnaire/PHQ9", config)

    def test_mode_override(self) -> None:
        """Test that an explicit mode overrides the config's."""
        config = ScoringConfig(questionnaire_id="phq9", match_mode="fuzzy")

        assert not questionnaire_ref_matches("PHQ-9", config, match_mode="strict")

    def test_matches_url_name_and_key(self) -> None:
        """Test that every configured identifier is tried."""
        config = ScoringConfig(
            key="CIRG-GAD7",
            questionnaire_name="gad7",
            questionnaire_url="http://example.org/gad7",
            match_mode="strict",
        )

        assert questionnaire_ref_matches("http://example.org/GAD7", config)
        assert questionnaire_ref_matches("GAD7", config)
        assert questionnaire_ref_matches("Questionnaire/CIRG-GAD7", config)

    def test_empty_reference(self) -> None:
        """Test that an empty reference never matches."""
        config = ScoringConfig(questionnaire_id="phq9")

        assert not questionnaire_ref_matches("", config)
        assert not questionnaire_ref_matches("Questionnaire/", config)

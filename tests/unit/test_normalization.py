"""Unit tests for the normalization utilities."""

from datetime import date

import pytest

from cv_autofill.normalization import (
    DateParts,
    decompose_date,
    extract_month,
    is_present,
    match_skills,
    normalize_language_level,
    normalize_languages,
    normalize_phone,
    to_e164,
)


class TestLanguageLevel:
    """Tests for normalize_language_level."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Verhandlungssicher", "C1"),
            ("Grundkenntnisse", "A2"),
            ("Muttersprachlich", "Muttersprache"),
            ("xyz", "B1"),
            ("Native speaker", "Muttersprache"),
            ("Gute Kenntnisse", "B2"),
            ("fluent", "C1"),
        ],
    )
    def test_keyword_buckets(self, raw, expected):
        """Test the documented keyword mappings."""
        assert normalize_language_level(raw) == expected

    def test_cefr_code_beats_fluency_keyword(self):
        """Test that an embedded CEFR code wins over a fluency keyword."""
        assert normalize_language_level("fliessend (C2)") == "C2"

    def test_native_keyword_beats_cefr_code(self):
        """Test that native keywords take priority over CEFR codes."""
        assert normalize_language_level("Muttersprache / C2") == "Muttersprache"

    def test_empty_defaults_to_b1(self):
        """Test that missing levels default to B1."""
        assert normalize_language_level(None) == "B1"
        assert normalize_language_level("   ") == "B1"

    def test_is_idempotent(self):
        """Test that repeated calls return the same code."""
        first = normalize_language_level("Sehr gut")
        assert normalize_language_level("Sehr gut") == first

    def test_normalize_languages_dedupes_and_drops_nameless(self):
        """Test that duplicate and nameless language entries are dropped."""
        result = normalize_languages(
            [
                {"name": "Deutsch", "level": "Muttersprache"},
                {"name": "deutsch", "level": "A1"},
                {"name": "", "level": "C1"},
                {"language": "English", "level": "C1"},
            ]
        )
        assert result == [
            {"language": "Deutsch", "level": "Muttersprache"},
            {"language": "English", "level": "C1"},
        ]


class TestDateDecomposition:
    """Tests for decompose_date and helpers."""

    def test_german_month_name(self):
        """Test that German month names are recognized."""
        assert decompose_date("März 2021") == DateParts(month="03", year="2021")

    def test_present_uses_current_year(self):
        """Test that 'Present' resolves to the current year with no month."""
        parts = decompose_date("Present", today=date(2024, 6, 1))
        assert parts == DateParts(month="", year="2024")

    def test_heute_is_present(self):
        """Test that the German present marker is recognized."""
        assert is_present("bis heute")

    def test_not_a_date(self):
        """Test that non-dates yield empty parts."""
        assert decompose_date("not a date") == DateParts(month="", year="")

    def test_numeric_month(self):
        """Test numeric month/year forms."""
        assert decompose_date("03.2019") == DateParts(month="03", year="2019")
        assert extract_month("2018-11") == "11"

    def test_invalid_numeric_month_is_ignored(self):
        """Test that month numbers outside 1..12 are not accepted."""
        assert extract_month("13/2020") == ""

    def test_none_input(self):
        """Test that None never raises."""
        assert decompose_date(None) == DateParts(month="", year="")


class TestSkillMatching:
    """Tests for match_skills."""

    def test_case_insensitive_match_drops_unknown(self):
        """Test the canonical matching scenario."""
        result = match_skills(["python", "Go", "kubernetes"], ["Python", "Kubernetes"])
        assert result == ["Python", "Kubernetes"]

    def test_aliases_resolve_before_lookup(self):
        """Test that tenant aliases rewrite mentions to canonical names."""
        result = match_skills(["k8s", "Py"], ["Python", "Kubernetes"], aliases={"K8S": "Kubernetes"})
        assert result == ["Kubernetes"]

    def test_duplicates_are_dropped(self):
        """Test that the same canonical skill is emitted once."""
        assert match_skills(["Python", "python", "PYTHON"], ["Python"]) == ["Python"]


class TestPhoneNormalization:
    """Tests for phone normalization."""

    def test_swiss_number_to_e164(self):
        """Test that a Swiss number without prefix becomes E.164."""
        assert to_e164("044 668 18 00") == "+41446681800"

    def test_international_number(self):
        """Test that numbers with a country prefix are kept in their country."""
        assert to_e164("+49 30 123456") == "+4930123456"

    def test_unparseable_number_is_kept(self):
        """Test that invalid numbers are returned stripped."""
        assert normalize_phone("  12 ") == "12"

    def test_empty_phone(self):
        """Test that empty input yields None."""
        assert normalize_phone("") is None

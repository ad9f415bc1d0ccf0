"""Unit tests for the hybrid extraction engine and completeness report."""

from unittest.mock import MagicMock

import pytest

from cv_autofill.extractors.completeness import build_completeness_report
from cv_autofill.extractors.hybrid_engine import HybridExtractionEngine, merge_extracted_data
from cv_autofill.extractors.packer import pack_text
from cv_autofill.models.enums import DetectedType
from cv_autofill.models.extraction import (
    ContactData,
    Evidence,
    ExtractedData,
    ExtractionResult,
    ImplicitMapping,
    PersonData,
    SkillEntry,
    UnmappedSegment,
)


CV_TEXT = "\n".join([
    "Anna Beispiel",
    "anna@example.ch",
    "Tel: 079 123 45 67",
    "Seite 1 / 2",
    "Kenntnisse",
    "Python, SQL",
])


def _llm_engine(result=None, enabled=True, configured=True):
    engine = MagicMock()
    engine.is_enabled.return_value = enabled
    engine.is_configured.return_value = configured
    engine.extract.return_value = result
    return engine


def _llm_success():
    data = ExtractedData(
        person=PersonData(
            first_name="Anna",
            last_name="Beispiel-Muster",
            evidence=[Evidence(line_id="p1_l0", page=1, text="Anna Beispiel")],
        ),
        contact=ContactData(),
        nationality="Schweiz",
    )
    return ExtractionResult(
        success=True,
        extracted_data=data,
        unmapped_segments=[
            UnmappedSegment(
                original_text="Python, SQL",
                detected_type=DetectedType.SKILL,
                reason="duplicate of rule segment",
            )
        ],
        implicit_mappings=[ImplicitMapping(field_name="nationality", reason="origin")],
        thought_process="reasoning",
        engine="openai",
    )


class TestHybridExtractionEngine:
    """Tests for HybridExtractionEngine."""

    def test_rules_only_without_llm(self):
        """Test that the rule layer alone produces a result."""
        engine = HybridExtractionEngine()

        result = engine.extract(pack_text(CV_TEXT))

        assert result.success is True
        assert result.extracted_data.contact.email == "anna@example.ch"
        assert engine.is_enabled() and engine.is_configured()
        assert engine.llm_active is False

    def test_disabled_llm_is_skipped(self):
        """Test that a disabled LLM layer is never called."""
        llm = _llm_engine(enabled=False)
        engine = HybridExtractionEngine(llm_engine=llm)

        engine.extract(pack_text(CV_TEXT))

        llm.extract.assert_not_called()

    def test_llm_data_wins_and_rules_fill_gaps(self):
        """Test that LLM values win and rule values fill empty fields."""
        engine = HybridExtractionEngine(llm_engine=_llm_engine(_llm_success()))

        result = engine.extract(pack_text(CV_TEXT))

        data = result.extracted_data
        assert result.engine == "hybrid"
        assert data.person.last_name == "Beispiel-Muster"
        assert data.contact.email == "anna@example.ch"
        assert data.contact.phone == "+41791234567"
        assert [s.name for s in data.skills] == ["Python", "SQL"]
        assert data.nationality == "Schweiz"
        assert result.thought_process == "reasoning"

    def test_llm_failure_fails_extraction(self):
        """Test that a failing LLM layer is not hidden behind the rule result."""
        failure = ExtractionResult.failure("vendor down", "LLM_FAILED", retry_count=2)
        engine = HybridExtractionEngine(llm_engine=_llm_engine(failure))

        result = engine.extract(pack_text(CV_TEXT))

        assert result.success is False
        assert result.error_code == "LLM_FAILED"
        assert result.error == "vendor down"
        assert result.retry_count == 2
        assert result.extracted_data is None

    def test_unconfigured_llm_makes_engine_unconfigured(self):
        """Test that an enabled LLM without credentials blocks extraction."""
        engine = HybridExtractionEngine(llm_engine=_llm_engine(configured=False))

        assert engine.is_enabled() is True
        assert engine.is_configured() is False
        assert engine.llm_active is False

    def test_completeness_report_is_attached(self):
        """Test that every result carries a completeness report."""
        result = HybridExtractionEngine().extract(pack_text(CV_TEXT))

        report = result.completeness
        assert report is not None
        assert report.total_input_lines == 6
        assert "p1_l3" in report.ignored_line_ids


class TestMergeExtractedData:
    """Tests for merge_extracted_data."""

    def test_fills_only_empty_fields(self):
        """Test the gap-filling merge."""
        primary = ExtractedData(contact=ContactData(email="llm@example.ch"))
        fallback = ExtractedData(
            person=PersonData(first_name="Anna", last_name="Beispiel"),
            contact=ContactData(email="rule@example.ch", phone="+41791234567"),
            skills=[SkillEntry(name="Python")],
        )

        filled = merge_extracted_data(primary, fallback)

        assert primary.contact.email == "llm@example.ch"
        assert primary.contact.phone == "+41791234567"
        assert primary.person.first_name == "Anna"
        assert set(filled) == {"firstName", "lastName", "phone", "skills"}


class TestCompletenessReport:
    """Tests for build_completeness_report."""

    def test_missing_lines_are_reported(self):
        """Test that lines without evidence or segment are missing."""
        packed = pack_text("Anna Beispiel\nirgendein Text ohne Zuordnung\nCurriculum Vitae")
        result = ExtractionResult(
            success=True,
            extracted_data=ExtractedData(
                person=PersonData(
                    first_name="Anna",
                    evidence=[Evidence(line_id="p1_l0", page=1, text="Anna Beispiel")],
                )
            ),
        )

        report = build_completeness_report(packed, result)

        assert report.missing_line_ids == ["p1_l1"]
        assert report.ignored_line_ids == ["p1_l2"]
        assert report.completeness_percentage == pytest.approx(50.0)
        assert report.is_complete is False

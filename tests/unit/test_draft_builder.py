"""Unit tests for the draft builder."""

import pytest

from cv_autofill.mapping.draft_builder import build_draft, empty_draft, split_candidate_fields
from cv_autofill.models.draft import CandidateAutoFillDraft, DraftMetadata, SourceInfo
from cv_autofill.models.enums import AcquisitionMethod, ConfidenceLevel, DetectedType, UnmappedCategory
from cv_autofill.models.extraction import (
    AddressData,
    ContactData,
    EducationEntry,
    Evidence,
    ExperienceEntry,
    ExtractedData,
    ExtractionResult,
    ImplicitMapping,
    LanguageEntry,
    PersonData,
    SkillEntry,
    UnmappedSegment,
)


SYSTEM_SKILLS = ["Python", "Kubernetes", "SQL"]


def _ev(line_id, text, page=1):
    return [Evidence(line_id=line_id, page=page, text=text)]


@pytest.fixture
def metadata():
    return DraftMetadata(
        file_name="cv.pdf",
        file_type="pdf",
        file_size=2048,
        page_count=2,
        extraction_method=AcquisitionMethod.TEXT,
    )


@pytest.fixture
def extraction():
    data = ExtractedData(
        person=PersonData(first_name="Anna", last_name="Beispiel", evidence=_ev("p1_l0", "Anna Beispiel")),
        contact=ContactData(
            email="anna@example.ch",
            phone="+41791234567",
            address=AddressData(
                street="Bahnhofstrasse 12",
                postal_code="8001",
                city="Zürich",
                evidence=_ev("p1_l3", "Bahnhofstrasse 12, 8001 Zürich"),
            ),
            evidence=_ev("p1_l1", "anna@example.ch"),
        ),
        nationality="Schweiz",
        languages=[
            LanguageEntry(name="Deutsch", level="Muttersprachlich", evidence=_ev("p2_l1", "Deutsch")),
            LanguageEntry(name="Englisch", level="Verhandlungssicher", evidence=_ev("p2_l1", "Englisch")),
        ],
        skills=[
            SkillEntry(name="python", evidence=_ev("p2_l3", "python, Go, kubernetes")),
            SkillEntry(name="Go", evidence=_ev("p2_l3", "python, Go, kubernetes")),
            SkillEntry(name="kubernetes", evidence=_ev("p2_l3", "python, Go, kubernetes")),
        ],
        experience=[
            ExperienceEntry(
                title="Software Engineer",
                company="Example AG",
                start_date="März 2021",
                end_date="heute",
                description="Backend",
                responsibilities=["Backend", "Betrieb"],
                evidence=_ev("p1_l7", "03.2021 - heute Software Engineer"),
            )
        ],
        education=[
            EducationEntry(
                institution="ETH Zürich",
                degree="MSc Informatik",
                start_date="2014",
                end_date="06.2018",
                evidence=_ev("p1_l10", "2014 - 06.2018 ETH Zürich"),
            )
        ],
        attribute_evidence={"nationality": _ev("p1_l4", "Nationalität: Schweiz")},
    )
    return ExtractionResult(success=True, extracted_data=data)


class TestBuildDraft:
    """Tests for build_draft."""

    def test_failed_extraction_yields_empty_draft(self, metadata):
        """Test the universal fallback."""
        failed = ExtractionResult.failure("engine down", "LLM_FAILED")

        draft = build_draft(failed, SYSTEM_SKILLS, metadata)

        assert draft.is_empty
        assert draft.metadata is metadata
        assert build_draft(None, SYSTEM_SKILLS, metadata).is_empty

    def test_person_and_contact_confidence(self, extraction, metadata):
        """Test high confidence on clean person and contact fields."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        first = draft.get_field("firstName")
        assert first.extracted_value == "Anna"
        assert first.confidence == ConfidenceLevel.HIGH
        assert first.source.text == "Anna Beispiel"
        assert first.source.position == "p1_l0"
        assert draft.get_field("email").confidence == ConfidenceLevel.HIGH

    def test_address_fields_are_medium(self, extraction, metadata):
        """Test that address sub-fields never exceed medium confidence."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        for target in ("street", "postalCode", "city"):
            assert draft.get_field(target).confidence == ConfidenceLevel.MEDIUM
        assert draft.get_field("canton") is None

    def test_flagged_fields_lower_confidence(self, extraction, metadata):
        """Test that flagged fields drop to low, and a flagged phone to medium."""
        extraction.flagged_fields = ["email", "phone"]

        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        assert draft.get_field("email").confidence == ConfidenceLevel.LOW
        assert draft.get_field("phone").confidence == ConfidenceLevel.MEDIUM

    def test_implicit_mapping_lowers_to_medium(self, extraction, metadata):
        """Test that implicitly inferred fields are medium confidence."""
        extraction.implicit_mappings = [ImplicitMapping.parse("ethnicity→nationality")]

        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        nationality = draft.get_field("nationality")
        assert nationality.confidence == ConfidenceLevel.MEDIUM
        assert nationality.source.text == "Nationalität: Schweiz"

    def test_languages_are_normalized(self, extraction, metadata):
        """Test CEFR normalization of language levels."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        assert draft.get_field("languages").extracted_value == [
            {"language": "Deutsch", "level": "Muttersprache"},
            {"language": "Englisch", "level": "C1"},
        ]

    def test_skills_are_matched_to_catalog(self, extraction, metadata):
        """Test that unknown skills are dropped and catalog spelling is used."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        skills = draft.get_field("skills")
        assert skills.extracted_value == ["Python", "Kubernetes"]
        assert skills.confidence == ConfidenceLevel.HIGH

    def test_no_matching_skills_omits_field(self, extraction, metadata):
        """Test that an empty match produces no skills entry."""
        draft = build_draft(extraction, ["Java"], metadata)

        assert draft.get_field("skills") is None

    def test_experience_dates_are_decomposed(self, extraction, metadata):
        """Test month/year decomposition and the current flag."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        (job,) = draft.get_field("experience").extracted_value
        assert job["role"] == "Software Engineer"
        assert (job["startMonth"], job["startYear"]) == ("03", "2021")
        assert job["endMonth"] == ""
        assert job["current"] is True
        assert job["description"] == "Backend\nBetrieb"

        (school,) = draft.get_field("education").extracted_value
        assert (school["startMonth"], school["startYear"]) == ("", "2014")
        assert (school["endMonth"], school["endYear"]) == ("06", "2018")

    def test_multi_field_suggestion_becomes_ambiguous(self, extraction, metadata):
        """Test that a slash-separated suggestion is never resolved automatically."""
        extraction.unmapped_segments = [
            UnmappedSegment(
                original_text="Ausweis: B",
                detected_type=DetectedType.PERSONAL,
                reason="Label maps to several fields",
                suggested_field="workPermit/driversLicense",
                confidence=0.5,
                line_reference="p1_l5",
            )
        ]

        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        (ambiguous,) = draft.ambiguous_fields
        assert ambiguous.extracted_label == "Ausweis"
        assert ambiguous.extracted_value == "B"
        assert [c.target_field for c in ambiguous.candidates] == ["workPermit", "driversLicense"]
        assert draft.get_field("workPermit") is None
        assert draft.unmapped_items == []

    def test_unmapped_segment_category_and_target(self, extraction, metadata):
        """Test conversion of single-target unmapped segments."""
        extraction.unmapped_segments = [
            UnmappedSegment(
                original_text="Scrum Master Zertifikat 2020",
                detected_type=DetectedType.CREDENTIAL,
                reason="Certificate",
                suggested_field=None,
                confidence=0.5,
            ),
            UnmappedSegment(
                original_text="   ",
                detected_type=DetectedType.OTHER,
                reason="blank",
            ),
        ]

        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        (item,) = draft.unmapped_items
        assert item.category == UnmappedCategory.EDUCATION
        assert item.suggested_targets == []
        assert item.source.text == "Scrum Master Zertifikat 2020"

    def test_every_entry_has_source(self, extraction, metadata):
        """Test that provenance is present on all filled fields."""
        draft = build_draft(extraction, SYSTEM_SKILLS, metadata)

        assert all(f.source.text.strip() for f in draft.filled_fields)

    def test_draft_serialization(self, extraction, metadata):
        """Test the camelCase draft shape."""
        data = build_draft(extraction, SYSTEM_SKILLS, metadata).to_dict()

        assert set(data) == {"filledFields", "ambiguousFields", "unmappedItems", "metadata"}
        assert data["metadata"]["extractionMethod"] == "text"
        assert CandidateAutoFillDraft.from_dict(data).get_field("email").extracted_value == "anna@example.ch"


class TestDraftHelpers:
    """Tests for helper functions and models."""

    def test_split_candidate_fields(self):
        """Test splitting dotted and slash-separated suggestions."""
        assert split_candidate_fields("person.firstName/lastName") == ["firstName", "lastName"]
        assert split_candidate_fields("driversLicense") == ["driversLicense"]
        assert split_candidate_fields(None) == []

    def test_empty_draft(self, metadata):
        """Test that empty_draft carries only metadata."""
        draft = empty_draft(metadata)
        assert draft.is_empty
        assert draft.to_dict()["filledFields"] == []

    def test_source_text_is_required(self):
        """Test that empty provenance is rejected."""
        with pytest.raises(ValueError):
            SourceInfo(text="  ")

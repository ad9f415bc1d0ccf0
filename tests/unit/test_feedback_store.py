"""Unit tests for the feedback store."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from cv_autofill.errors import CVError, CVErrorCode
from cv_autofill.feedback.database import DatabaseManager
from cv_autofill.feedback.feedback_store import (
    BUILTIN_FEW_SHOT_EXAMPLES,
    FeedbackStore,
    extract_keywords,
    text_similarity,
)
from cv_autofill.feedback.models import SegmentAssignmentModel
from cv_autofill.models.feedback import CorrectionRecord, FieldSuggestion, SegmentAssignment


TENANT_A = "11111111-1111-1111-1111-111111111111"
TENANT_B = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def db_manager():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    manager = DatabaseManager(engine=engine)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager):
    return FeedbackStore(db_manager=db_manager, tenant_id=TENANT_A)


def _correction(field="nationality", value="Schweiz", context="Heimatort: Bern", created_by="operator-1"):
    return CorrectionRecord(
        source_context=context,
        corrected_value=value,
        corrected_field=field,
        source_label=context.split(":")[0],
        extracted_value=None,
        created_by=created_by,
    )


def _assignment(text="Fahrausweis Kat. B", field="driversLicense", created_by="operator-1", category="credential"):
    return SegmentAssignment(
        segment_text=text,
        segment_category=category,
        assigned_field=field,
        assigned_value="B",
        created_by=created_by,
    )


class TestCorrections:
    """Tests for recording and reading corrections."""

    def test_record_and_read_correction(self, store):
        """Test that a correction is persisted with its operator."""
        correction_id = store.record_correction(_correction())

        assert correction_id is not None
        (stored,) = store.get_corrections()
        assert stored.id == correction_id
        assert stored.tenant_id == TENANT_A
        assert stored.corrected_field == "nationality"
        assert stored.created_by == "operator-1"

    def test_correction_requires_identity(self, store):
        """Test that anonymous writes are rejected before touching the database."""
        with pytest.raises(CVError) as exc_info:
            store.record_correction(_correction(created_by=" "))

        assert exc_info.value.code == CVErrorCode.AUTH_REQUIRED
        assert store.get_corrections() == []

    def test_batch_checks_identity_first(self, store):
        """Test that a batch with one anonymous record writes nothing."""
        records = [_correction(), _correction(created_by=None)]

        with pytest.raises(CVError):
            store.batch_record_corrections(records)

        assert store.get_corrections() == []

    def test_batch_returns_persisted_count(self, store):
        """Test batch recording."""
        records = [_correction(), _correction(field="email", value="anna@example.ch", context="Mail anna")]

        assert store.batch_record_corrections(records) == 2
        assert len(store.get_corrections(field_name="email")) == 1

    def test_corrections_are_tenant_scoped(self, store):
        """Test that another tenant never sees these corrections."""
        store.record_correction(_correction())

        other = store.for_tenant(TENANT_B)

        assert other.tenant_id == TENANT_B
        assert other.get_corrections() == []
        assert store.for_tenant(TENANT_A) is store

    def test_database_error_returns_none(self):
        """Test that a failing database is reported as None."""
        db_manager = MagicMock()
        db_manager.get_session.side_effect = SQLAlchemyError("db down")
        store = FeedbackStore(db_manager=db_manager, tenant_id=TENANT_A)

        assert store.record_correction(_correction()) is None
        assert store.record_segment_assignment(_assignment()) is None
        assert store.record_successful_extraction("email") is False


class TestFieldMetrics:
    """Tests for accuracy metrics and problematic fields."""

    def test_accuracy_per_field(self, store):
        """Test correct / total accounting."""
        for _ in range(3):
            store.record_successful_extraction("email")
        store.record_correction(_correction(field="email", value="anna@example.ch"))

        assert store.get_field_accuracies()["email"] == pytest.approx(0.75)
        (metric,) = store.get_field_metrics()
        assert metric.total_extractions == 4
        assert metric.corrected_extractions == 1

    def test_low_accuracy_field_is_problematic(self, store):
        """Test the 0.8 threshold with at least five samples."""
        for _ in range(5):
            store.record_null_extraction("phone")

        assert store.get_problematic_fields() == ["phone"]

    def test_too_few_samples_are_not_problematic(self, store):
        """Test that fields with fewer than five samples are ignored."""
        for _ in range(4):
            store.record_null_extraction("phone")

        assert store.get_problematic_fields() == []

    def test_critical_fields_use_stricter_threshold(self, store):
        """Test that critical fields need 0.9 accuracy."""
        for _ in range(8):
            store.record_successful_extraction("firstName")
            store.record_successful_extraction("email")
        store.record_correction(_correction(field="firstName", value="Anna"))
        store.record_correction(_correction(field="email", value="anna@example.ch"))

        assert store.get_problematic_fields() == ["firstName"]

    def test_many_corrections_are_problematic(self, store):
        """Test that ten corrections flag a field regardless of accuracy."""
        for _ in range(90):
            store.record_successful_extraction("city")
        for i in range(10):
            store.record_correction(_correction(field="city", value="Bern", context=f"Ort {i}"))

        assert store.get_field_accuracies()["city"] == pytest.approx(0.9)
        assert "city" in store.get_problematic_fields()


class TestSuggestions:
    """Tests for unmapped segment suggestions."""

    def test_previous_assignment_is_suggested(self, store):
        """Test that an earlier assignment of the same text is offered first."""
        store.record_segment_assignment(_assignment())

        (suggestion,) = store.get_suggestions_for_unmapped("Fahrausweis Kat. B", "credential")

        assert suggestion.field_name == "driversLicense"
        assert suggestion.confidence == pytest.approx(0.9)
        assert suggestion.source == "history"

    def test_repeated_assignments_raise_confidence(self, store):
        """Test that usage raises confidence up to the cap."""
        store.record_segment_assignment(_assignment())
        store.record_segment_assignment(_assignment(text="fahrausweis  kat. b"))

        (suggestion,) = store.get_suggestions_for_unmapped("Fahrausweis Kat. B")

        assert suggestion.confidence == pytest.approx(0.95)

    def test_unrelated_text_has_no_history(self, store):
        """Test that dissimilar segments are not matched."""
        store.record_segment_assignment(_assignment())

        assert store.get_suggestions_for_unmapped("Hobbys: Klettern, Lesen") == []

    def test_engine_suggestion_is_merged(self, store):
        """Test that the engine's own hint is kept after history matches."""
        store.record_segment_assignment(_assignment())
        engine_hint = FieldSuggestion(field_name="workPermit", confidence=0.5, reason="LLM", source="engine")

        suggestions = store.get_suggestions_for_unmapped("Fahrausweis Kat. B", engine_suggestion=engine_hint)

        assert [s.field_name for s in suggestions] == ["driversLicense", "workPermit"]

    def test_identical_segment_outranks_similar_history(self, store):
        """Test that a field chosen for the exact text beats fuzzier matches."""
        store.record_segment_assignment(_assignment())
        for _ in range(4):
            store.record_segment_assignment(_assignment(text="Fahrausweis Kat. B, BE", field="certifications"))

        suggestions = store.get_suggestions_for_unmapped("Fahrausweis Kat. B", "credential")

        assert [s.field_name for s in suggestions] == ["driversLicense", "certifications"]

    def test_new_assignment_is_found_behind_used_history(self, store, db_manager):
        """Test that a fresh assignment is suggested after a long, used history."""
        for i in range(210):
            store.record_segment_assignment(
                _assignment(text=f"Referenz {i}: Firma {i} AG", field="references", category="other")
            )
        with db_manager.get_session() as session:
            session.execute(update(SegmentAssignmentModel).values(usage_count=5))
        store.record_segment_assignment(_assignment())

        suggestions = store.get_suggestions_for_unmapped("Fahrausweis Kat. B", "credential")

        assert [s.field_name for s in suggestions] == ["driversLicense"]

    def test_suggestions_are_tenant_scoped(self, store):
        """Test that another tenant's history is not used."""
        store.for_tenant(TENANT_B).record_segment_assignment(_assignment())

        assert store.get_suggestions_for_unmapped("Fahrausweis Kat. B") == []


class TestFewShotExamples:
    """Tests for few-shot example selection."""

    def test_builtin_examples_without_history(self, store):
        """Test that built-in examples fill an empty store."""
        examples = store.get_relevant_few_shot_examples("Anna Beispiel")

        assert examples == list(BUILTIN_FEW_SHOT_EXAMPLES[:5])

    def test_tenant_corrections_come_first(self, store):
        """Test that critical-field corrections lead the list."""
        store.record_correction(_correction(context="Heimatort: Bern"))

        examples = store.get_relevant_few_shot_examples("Heimatort: Bern")

        assert examples[0].source_context == "Heimatort: Bern"
        assert examples[0].correct_field == "nationality"
        assert examples[0].reasoning == "User correction"
        assert len(examples) == 5

    def test_keyword_matches_are_included(self, store):
        """Test that corrections with shared keywords are found."""
        store.record_correction(_correction(field="city", value="Bern", context="Wohnhaft in Bern-Bümpliz"))

        examples = store.get_relevant_few_shot_examples("Wohnhaft seit 2015")

        assert examples[0].correct_field == "city"
        assert examples[0].reasoning == "Similar context correction"

    def test_database_error_falls_back_to_builtins(self):
        """Test the fallback on a failing database."""
        db_manager = MagicMock()
        db_manager.get_session.side_effect = SQLAlchemyError("db down")
        store = FeedbackStore(db_manager=db_manager, max_few_shot_examples=2)

        assert store.get_relevant_few_shot_examples("x") == list(BUILTIN_FEW_SHOT_EXAMPLES[:2])


class TestHelpers:
    """Tests for module helpers."""

    def test_text_similarity(self):
        """Test normalization and bounds."""
        assert text_similarity("Fahrausweis  B", "fahrausweis b") == 1.0
        assert text_similarity("", "abc") == 0.0
        assert 0.0 < text_similarity("Fahrausweis B", "Fahrausweis BE") < 1.0

    def test_extract_keywords(self):
        """Test that stop words and short words are dropped."""
        assert extract_keywords("Der Name und die Adresse von Anna") == ["name", "adresse", "anna"]

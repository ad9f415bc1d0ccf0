"""Feedback and learning store for the CV Auto-Fill System.

Persists operator corrections, segment assignments and per-field
extraction metrics, and turns them back into prompt context (few-shot
examples, problem-field warnings) and field suggestions.
"""

import difflib
import hashlib
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.models import DEFAULT_TENANT_ID
from ..errors import CVError, CVErrorCode
from ..interfaces.feedback import IFeedbackStore
from ..models.feedback import (
    CorrectionRecord,
    FewShotExample,
    FieldAccuracy,
    FieldSuggestion,
    SegmentAssignment,
)
from ..performance import SimpleCache
from .database import DatabaseManager
from .models import CorrectionModel, FieldMetricModel, SegmentAssignmentModel


logger = logging.getLogger(__name__)


# Fields whose corrections are always offered as few-shot examples
FEW_SHOT_FIELDS = ("firstName", "lastName", "nationality", "email", "phone")

# Fields held to a stricter accuracy bar
CRITICAL_FIELDS = ("firstName", "lastName", "nationality")

PROBLEM_ACCURACY_THRESHOLD = 0.8
CRITICAL_ACCURACY_THRESHOLD = 0.9
MIN_SAMPLES_FOR_ACCURACY = 5
HIGH_CORRECTION_COUNT = 10

SIMILARITY_THRESHOLD = 0.6
SAME_TYPE_SIMILARITY_THRESHOLD = 0.4
MAX_SUGGESTION_CONFIDENCE = 0.95
SUGGESTION_CANDIDATE_LIMIT = 200
SEGMENT_KEY_LENGTH = 500

_ACCURACY_CACHE_KEY = "field_accuracies"

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "und", "der", "die", "das", "ein", "eine", "ist", "sind", "war",
    "von", "mit", "für", "auf", "bei", "nach", "zu", "zur", "zum",
})

BUILTIN_FEW_SHOT_EXAMPLES = (
    FewShotExample(
        source_context="Senior Software Engineer\nMax Müller\nmax.mueller@email.com",
        wrong_extraction="Senior Software",
        correct_value="Max",
        correct_field="firstName",
        reasoning=(
            "'Senior Software Engineer' is a job title, not a name. "
            "The actual name 'Max Müller' appears on the next line."
        ),
    ),
    FewShotExample(
        source_context="Ethnicity: Turkish\nLanguages: German (native), Turkish (native)",
        source_label="Ethnicity",
        correct_value="Turkish",
        correct_field="nationality",
        reasoning="Ethnicity 'Turkish' strongly implies Turkish nationality. This is an implicit mapping.",
    ),
    FewShotExample(
        source_context="Staatsangehörigkeit: Deutsch\nGeburtsdatum: 15.03.1990",
        source_label="Staatsangehörigkeit",
        correct_value="German",
        correct_field="nationality",
        reasoning="'Staatsangehörigkeit' is German for 'nationality'. Direct translation mapping.",
    ),
    FewShotExample(
        source_context="Name: Ali Yilmaz\nPosition: DevOps Engineer",
        source_label="Name",
        wrong_extraction="Ali Yilmaz",
        correct_value="Ali",
        correct_field="firstName",
        reasoning="Full name must be split. 'Ali' is the first name, 'Yilmaz' is the last name.",
    ),
    FewShotExample(
        source_context="Herkunft: Italien\nWohnort: Zürich",
        source_label="Herkunft",
        correct_value="Italian",
        correct_field="nationality",
        reasoning="'Herkunft' (origin) from Italy implies Italian nationality.",
    ),
)


def normalize_segment_text(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def segment_key(text: str) -> str:
    return normalize_segment_text(text)[:SEGMENT_KEY_LENGTH]


def text_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] of two normalized strings; identical text is 1.0."""
    left = normalize_segment_text(a)
    right = normalize_segment_text(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return difflib.SequenceMatcher(None, left, right).ratio()


def context_hash(context: str) -> str:
    return hashlib.md5(context.strip().lower().encode("utf-8")).hexdigest()[:16]


def extract_keywords(text: str, limit: int = 20) -> List[str]:
    words = [w for w in text.lower().split() if len(w) > 3 and w not in STOP_WORDS]
    return words[:limit]


def _require_identity(created_by: Optional[str]) -> str:
    if not created_by or not created_by.strip():
        raise CVError(CVErrorCode.AUTH_REQUIRED, "Feedback write without operator identity")
    return created_by.strip()


class FeedbackStore(IFeedbackStore):
    """
    Tenant-scoped feedback store backed by SQLAlchemy.

    Writes are best-effort: a database error is logged and reported as
    ``None``/``False``. A write without ``created_by`` raises
    ``CVError(AUTH_REQUIRED)`` before the database is touched.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        database_url: Optional[str] = None,
        tenant_id: str = DEFAULT_TENANT_ID,
        max_few_shot_examples: int = 5,
        cache: Optional[SimpleCache] = None,
    ):
        """
        Initialize the feedback store.

        Args:
            db_manager: Optional DatabaseManager instance. If not provided,
                       a new one will be created.
            database_url: Database URL for creating a new DatabaseManager.
            tenant_id: Tenant every read and write is scoped to.
            max_few_shot_examples: Upper bound for prompt examples.
            cache: Cache for field accuracies (60 s TTL by default).
        """
        if db_manager is not None:
            self._db_manager = db_manager
            self._owns_db_manager = False
        else:
            self._db_manager = DatabaseManager(database_url=database_url)
            self._owns_db_manager = True
        self._tenant_id = tenant_id or DEFAULT_TENANT_ID
        self._max_few_shot_examples = max_few_shot_examples
        self._cache = cache or SimpleCache(max_size=100, ttl=60)

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    @property
    def _accuracy_cache_key(self) -> str:
        return f"{_ACCURACY_CACHE_KEY}:{self._tenant_id}"

    def for_tenant(self, tenant_id: Optional[str]) -> "FeedbackStore":
        """Store for another tenant sharing this store's database manager."""
        tenant_id = tenant_id or DEFAULT_TENANT_ID
        if tenant_id == self._tenant_id:
            return self
        return FeedbackStore(
            db_manager=self._db_manager,
            tenant_id=tenant_id,
            max_few_shot_examples=self._max_few_shot_examples,
            cache=self._cache,
        )

    # =========================================================================
    # Conversion
    # =========================================================================

    def _correction_to_model(self, record: CorrectionRecord, created_by: str) -> CorrectionModel:
        return CorrectionModel(
            tenant_id=self._tenant_id,
            source_context=record.source_context,
            source_label=record.source_label,
            extracted_value=record.extracted_value,
            corrected_value=record.corrected_value,
            corrected_field=record.corrected_field,
            reason=record.reason,
            cv_hash=record.cv_hash,
            created_by=created_by,
            usage_count=0,
        )

    def _correction_from_model(self, model: CorrectionModel) -> CorrectionRecord:
        return CorrectionRecord(
            id=model.id,
            tenant_id=model.tenant_id,
            source_context=model.source_context,
            source_label=model.source_label,
            extracted_value=model.extracted_value,
            corrected_value=model.corrected_value,
            corrected_field=model.corrected_field,
            reason=model.reason,
            cv_hash=model.cv_hash,
            created_by=model.created_by,
            usage_count=model.usage_count or 0,
            last_used_at=model.last_used_at,
            created_at=model.created_at,
        )

    @staticmethod
    def _example_from_model(model: CorrectionModel, default_reason: str) -> FewShotExample:
        return FewShotExample(
            source_context=model.source_context,
            source_label=model.source_label,
            wrong_extraction=model.extracted_value,
            correct_value=model.corrected_value,
            correct_field=model.corrected_field,
            reasoning=model.reason or default_reason,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def _bump_metric(
        self,
        session: Session,
        field_name: str,
        correct: bool = False,
        corrected: bool = False,
        null: bool = False,
    ) -> None:
        metric = session.execute(
            select(FieldMetricModel).where(
                and_(
                    FieldMetricModel.tenant_id == self._tenant_id,
                    FieldMetricModel.field_name == field_name,
                )
            )
        ).scalar_one_or_none()

        if metric is None:
            metric = FieldMetricModel(
                tenant_id=self._tenant_id,
                field_name=field_name,
                total_extractions=0,
                correct_extractions=0,
                corrected_extractions=0,
                null_extractions=0,
            )
            session.add(metric)

        metric.total_extractions += 1
        if correct:
            metric.correct_extractions += 1
        if corrected:
            metric.corrected_extractions += 1
        if null:
            metric.null_extractions += 1
        metric.updated_at = datetime.utcnow()

    def record_correction(self, record: CorrectionRecord) -> Optional[str]:
        """
        Append a correction and count it against the field's accuracy.

        Returns:
            The new correction id, or None when persistence failed.

        Raises:
            CVError: AUTH_REQUIRED if ``record.created_by`` is missing.
        """
        created_by = _require_identity(record.created_by)
        model = self._correction_to_model(record, created_by)
        try:
            with self._db_manager.get_session() as session:
                session.add(model)
                self._bump_metric(session, record.corrected_field, corrected=True)
                session.flush()
                correction_id = model.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to record correction for field {record.corrected_field}: {e}")
            return None

        self._cache.invalidate(self._accuracy_cache_key)
        logger.info(f"Recorded correction {correction_id} for field {record.corrected_field}")
        return correction_id

    def batch_record_corrections(self, records: List[CorrectionRecord]) -> int:
        """
        Record many corrections; the count of persisted ones is returned.

        Identity is checked for every record before anything is written.
        """
        for record in records:
            _require_identity(record.created_by)

        persisted = 0
        for record in records:
            if self.record_correction(record) is not None:
                persisted += 1
        return persisted

    def record_segment_assignment(self, assignment: SegmentAssignment) -> Optional[str]:
        created_by = _require_identity(assignment.created_by)
        model = SegmentAssignmentModel(
            tenant_id=self._tenant_id,
            segment_text=assignment.segment_text,
            segment_key=segment_key(assignment.segment_text),
            segment_category=assignment.segment_category,
            assigned_field=assignment.assigned_field,
            assigned_value=assignment.assigned_value,
            surrounding_context=assignment.surrounding_context,
            cv_hash=assignment.cv_hash,
            created_by=created_by,
            usage_count=0,
        )
        try:
            with self._db_manager.get_session() as session:
                session.add(model)
                session.flush()
                assignment_id = model.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to record segment assignment to {assignment.assigned_field}: {e}")
            return None

        logger.info(f"Recorded segment assignment {assignment_id} -> {assignment.assigned_field}")
        return assignment_id

    def _record_metric(self, field_name: str, **flags) -> bool:
        try:
            with self._db_manager.get_session() as session:
                self._bump_metric(session, field_name, **flags)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update field metrics for {field_name}: {e}")
            return False
        self._cache.invalidate(self._accuracy_cache_key)
        return True

    def record_successful_extraction(self, field_name: str) -> bool:
        return self._record_metric(field_name, correct=True)

    def record_null_extraction(self, field_name: str) -> bool:
        return self._record_metric(field_name, null=True)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_corrections(self, field_name: Optional[str] = None, limit: int = 50) -> List[CorrectionRecord]:
        """Most recent corrections of this tenant, optionally for one field."""
        with self._db_manager.get_session() as session:
            conditions = [CorrectionModel.tenant_id == self._tenant_id]
            if field_name:
                conditions.append(CorrectionModel.corrected_field == field_name)
            query = (
                select(CorrectionModel)
                .where(and_(*conditions))
                .order_by(CorrectionModel.created_at.desc())
                .limit(limit)
            )
            return [self._correction_from_model(m) for m in session.execute(query).scalars().all()]

    def get_field_metrics(self) -> List[FieldAccuracy]:
        with self._db_manager.get_session() as session:
            query = select(FieldMetricModel).where(FieldMetricModel.tenant_id == self._tenant_id)
            return [
                FieldAccuracy(
                    field_name=m.field_name,
                    total_extractions=m.total_extractions or 0,
                    correct_extractions=m.correct_extractions or 0,
                    corrected_extractions=m.corrected_extractions or 0,
                    null_extractions=m.null_extractions or 0,
                )
                for m in session.execute(query).scalars().all()
            ]

    def _load_metrics(self) -> Dict[str, FieldAccuracy]:
        cached = self._cache.get(self._accuracy_cache_key)
        if cached is not None:
            return cached
        try:
            metrics = {m.field_name: m for m in self.get_field_metrics()}
        except SQLAlchemyError as e:
            logger.error(f"Failed to load field metrics: {e}")
            return {}
        self._cache.set(self._accuracy_cache_key, metrics)
        return metrics

    def get_field_accuracies(self) -> Dict[str, float]:
        """correct / total per field; a field without samples counts as 1.0."""
        return {name: metric.accuracy for name, metric in self._load_metrics().items()}

    def get_problematic_fields(self) -> List[str]:
        """
        Fields worth warning the engine about.

        A field is problematic when its accuracy is below 0.8 (critical
        fields: 0.9) with at least 5 samples, or when it was corrected at
        least 10 times.
        """
        problematic: List[str] = []
        for name, metric in sorted(self._load_metrics().items()):
            threshold = (
                CRITICAL_ACCURACY_THRESHOLD if name in CRITICAL_FIELDS else PROBLEM_ACCURACY_THRESHOLD
            )
            low_accuracy = (
                metric.total_extractions >= MIN_SAMPLES_FOR_ACCURACY and metric.accuracy < threshold
            )
            if low_accuracy or metric.corrected_extractions >= HIGH_CORRECTION_COUNT:
                problematic.append(name)
        return problematic

    def _suggestion_candidates(
        self, session: Session, original_text: str, detected_type: Optional[str]
    ) -> List[SegmentAssignmentModel]:
        """
        Assignments worth scoring for ``original_text``.

        Every assignment with identical normalized text is loaded. Fuzzy
        matching only looks at the most recent assignments of the tenant and
        of the detected type, so older history never hides a new assignment.
        """
        tenant = SegmentAssignmentModel.tenant_id == self._tenant_id
        queries = [
            select(SegmentAssignmentModel).where(
                and_(tenant, SegmentAssignmentModel.segment_key == segment_key(original_text))
            ),
            select(SegmentAssignmentModel)
            .where(tenant)
            .order_by(SegmentAssignmentModel.created_at.desc())
            .limit(SUGGESTION_CANDIDATE_LIMIT),
        ]
        if detected_type:
            queries.append(
                select(SegmentAssignmentModel)
                .where(and_(tenant, SegmentAssignmentModel.segment_category == detected_type))
                .order_by(SegmentAssignmentModel.created_at.desc())
                .limit(SUGGESTION_CANDIDATE_LIMIT)
            )

        candidates: Dict[str, SegmentAssignmentModel] = {}
        for query in queries:
            for model in session.execute(query).scalars().all():
                candidates.setdefault(model.id, model)
        return list(candidates.values())

    def get_suggestions_for_unmapped(
        self,
        original_text: str,
        detected_type: Optional[str] = None,
        engine_suggestion: Optional[FieldSuggestion] = None,
    ) -> List[FieldSuggestion]:
        """
        Rank target fields for an unmapped segment.

        Past assignments of this tenant are compared by text similarity;
        an assignment counts when similarity is at least 0.6, or at least
        0.4 with the same detected type. Matches are grouped per field.
        Fields assigned to the identical segment before rank first.
        """
        groups: Dict[str, Dict[str, object]] = {}
        try:
            with self._db_manager.get_session() as session:
                for candidate in self._suggestion_candidates(session, original_text, detected_type):
                    similarity = text_similarity(original_text, candidate.segment_text)
                    same_type = bool(detected_type) and candidate.segment_category == detected_type
                    if similarity < SIMILARITY_THRESHOLD and not (
                        same_type and similarity >= SAME_TYPE_SIMILARITY_THRESHOLD
                    ):
                        continue
                    group = groups.setdefault(
                        candidate.assigned_field,
                        {"similarity": 0.0, "uses": 0, "models": []},
                    )
                    group["similarity"] = max(group["similarity"], similarity)
                    group["uses"] += 1
                    group["models"].append(candidate)

                now = datetime.utcnow()
                for group in groups.values():
                    for model in group["models"]:
                        model.usage_count = (model.usage_count or 0) + 1
                        model.last_used_at = now
        except SQLAlchemyError as e:
            logger.error(f"Failed to load segment suggestions: {e}")
            groups = {}

        suggestions: List[FieldSuggestion] = []
        exact_fields: Set[str] = set()
        for field_name, group in groups.items():
            uses = group["uses"]
            if group["similarity"] == 1.0:
                exact_fields.add(field_name)
            confidence = min(
                MAX_SUGGESTION_CONFIDENCE,
                0.5 + 0.4 * group["similarity"] + 0.05 * (uses - 1),
            )
            suggestions.append(
                FieldSuggestion(
                    field_name=field_name,
                    confidence=confidence,
                    reason=f"Matched {uses} previous assignment(s)",
                    source="history",
                )
            )

        if engine_suggestion is not None and not any(
            s.field_name == engine_suggestion.field_name for s in suggestions
        ):
            suggestions.append(engine_suggestion)

        suggestions.sort(key=lambda s: (s.field_name in exact_fields, s.confidence), reverse=True)
        return suggestions

    def get_relevant_few_shot_examples(self, context: str) -> List[FewShotExample]:
        """
        Corrections worth showing to the engine for this document.

        Order: corrections of the critical fields by usage, then corrections
        whose context shares keywords with ``context``, then built-in
        examples when fewer than three were found.
        """
        limit = self._max_few_shot_examples
        examples: List[FewShotExample] = []
        seen: Set[str] = set()

        def add(example: FewShotExample) -> None:
            digest = context_hash(example.source_context)
            if digest not in seen and len(examples) < limit:
                seen.add(digest)
                examples.append(example)

        try:
            with self._db_manager.get_session() as session:
                query = (
                    select(CorrectionModel)
                    .where(
                        and_(
                            CorrectionModel.tenant_id == self._tenant_id,
                            CorrectionModel.corrected_field.in_(FEW_SHOT_FIELDS),
                        )
                    )
                    .order_by(CorrectionModel.usage_count.desc())
                    .limit(limit * 2)
                )
                for model in session.execute(query).scalars().all():
                    add(self._example_from_model(model, "User correction"))

                keywords = extract_keywords(context or "")[:5]
                if len(examples) < limit and keywords:
                    query = (
                        select(CorrectionModel)
                        .where(
                            and_(
                                CorrectionModel.tenant_id == self._tenant_id,
                                or_(*[CorrectionModel.source_context.ilike(f"%{k}%") for k in keywords]),
                            )
                        )
                        .limit(limit - len(examples))
                    )
                    for model in session.execute(query).scalars().all():
                        add(self._example_from_model(model, "Similar context correction"))
        except SQLAlchemyError as e:
            logger.error(f"Failed to load few-shot examples, using built-in examples: {e}")
            return list(BUILTIN_FEW_SHOT_EXAMPLES[:limit])

        if len(examples) < 3:
            for example in BUILTIN_FEW_SHOT_EXAMPLES:
                add(example)

        logger.debug(f"Retrieved {len(examples)} few-shot examples")
        return examples[:limit]

    def close(self) -> None:
        if self._owns_db_manager:
            self._db_manager.close()

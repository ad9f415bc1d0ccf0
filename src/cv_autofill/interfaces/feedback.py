"""Feedback store interface for the CV Auto-Fill System."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.feedback import (
    CorrectionRecord,
    FewShotExample,
    FieldSuggestion,
    SegmentAssignment,
)


class IFeedbackStore(ABC):
    """
    Abstract interface for the feedback and learning store.

    All writes are tenant-scoped and best-effort: a failed write returns
    None/False and is logged instead of raising.
    """

    @abstractmethod
    def for_tenant(self, tenant_id: Optional[str]) -> "IFeedbackStore":
        """Return the store scoped to another tenant."""
        pass

    @abstractmethod
    def record_correction(self, record: CorrectionRecord) -> Optional[str]:
        """Append a correction and return its id, or None on failure."""
        pass

    @abstractmethod
    def record_segment_assignment(self, assignment: SegmentAssignment) -> Optional[str]:
        """Append a segment assignment and return its id, or None on failure."""
        pass

    @abstractmethod
    def record_successful_extraction(self, field_name: str) -> bool:
        """Count a confirmed extraction for a field."""
        pass

    @abstractmethod
    def batch_record_corrections(self, records: List[CorrectionRecord]) -> int:
        """Record many corrections; return how many persisted."""
        pass

    @abstractmethod
    def get_field_accuracies(self) -> Dict[str, float]:
        """Return correct/total per field."""
        pass

    @abstractmethod
    def get_problematic_fields(self) -> List[str]:
        """Return fields with low accuracy or high correction volume."""
        pass

    @abstractmethod
    def get_suggestions_for_unmapped(
        self,
        original_text: str,
        detected_type: Optional[str] = None,
        engine_suggestion: Optional[FieldSuggestion] = None,
    ) -> List[FieldSuggestion]:
        """Rank target fields for an unmapped segment from past assignments."""
        pass

    @abstractmethod
    def get_relevant_few_shot_examples(self, context: str) -> List[FewShotExample]:
        """Return corrections worth showing to the engine for this context."""
        pass

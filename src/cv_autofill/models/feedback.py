"""Feedback and learning data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class CorrectionRecord:
    """
    A human fixing a wrong or missing extraction.

    ``source_context``, ``corrected_value`` and ``corrected_field`` are
    mandatory; the remaining attributes are optional context.
    """
    source_context: str
    corrected_value: str
    corrected_field: str
    source_label: Optional[str] = None
    extracted_value: Optional[str] = None
    reason: Optional[str] = None
    cv_hash: Optional[str] = None
    created_by: Optional[str] = None
    tenant_id: Optional[str] = None
    id: Optional[str] = None
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class SegmentAssignment:
    """A previously unmapped segment that an operator assigned to a field."""
    segment_text: str
    segment_category: str
    assigned_field: str
    assigned_value: str
    surrounding_context: Optional[str] = None
    cv_hash: Optional[str] = None
    created_by: Optional[str] = None
    tenant_id: Optional[str] = None
    id: Optional[str] = None
    usage_count: int = 0
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class FieldSuggestion:
    """A ranked target field proposed for an unmapped segment."""
    field_name: str
    confidence: float
    reason: str
    source: str = "history"

    def to_dict(self) -> Dict[str, object]:
        return {
            "field": self.field_name,
            "confidence": round(self.confidence, 3),
            "reason": self.reason,
            "source": self.source,
        }


@dataclass
class FieldAccuracy:
    """Rolling per-field counters."""
    field_name: str
    total_extractions: int = 0
    correct_extractions: int = 0
    corrected_extractions: int = 0
    null_extractions: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_extractions <= 0:
            return 1.0
        return self.correct_extractions / self.total_extractions


@dataclass
class FewShotExample:
    """A correction rendered into the engine prompt."""
    source_context: str
    correct_value: str
    correct_field: str
    reasoning: str
    source_label: Optional[str] = None
    wrong_extraction: Optional[str] = None


@dataclass
class ExtractionConfig:
    """
    Tenant dictionaries consulted on every extraction.

    Attributes:
        field_synonyms: Lower-cased source label -> target fields. More than
            one target marks the label as ambiguous.
        skill_aliases: Lower-cased alias -> canonical skill name.
        system_skills: Canonical skill names.
        tenant_id: Tenant the run belongs to; scopes the feedback the
            engine reads. None means the default tenant.
    """
    field_synonyms: Dict[str, List[str]] = field(default_factory=dict)
    skill_aliases: Dict[str, str] = field(default_factory=dict)
    system_skills: List[str] = field(default_factory=list)
    tenant_id: Optional[str] = None

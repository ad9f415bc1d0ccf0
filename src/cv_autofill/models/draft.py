"""Draft (review report) models for the CV Auto-Fill System."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .enums import AcquisitionMethod, ConfidenceLevel, UnmappedCategory

# Target fields of the candidate profile form.
TARGET_FIELDS = (
    "firstName",
    "lastName",
    "email",
    "phone",
    "linkedinUrl",
    "street",
    "postalCode",
    "city",
    "canton",
    "nationality",
    "birthdate",
    "workPermit",
    "driversLicense",
    "languages",
    "skills",
    "experience",
    "education",
)


@dataclass
class SourceInfo:
    """
    Provenance of a draft entry.

    Attributes:
        text: The originating text. Must not be empty.
        position: Line id or other locator inside the document.
        page: Page number when known.
    """
    text: str
    position: Optional[str] = None
    page: Optional[int] = None

    def __post_init__(self):
        if self.text is None or not str(self.text).strip():
            raise ValueError("Source provenance text must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"text": self.text}
        if self.position is not None:
            data["position"] = self.position
        if self.page is not None:
            data["page"] = self.page
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceInfo":
        return cls(text=data["text"], position=data.get("position"), page=data.get("page"))


@dataclass
class FilledField:
    """One successfully mapped attribute."""
    target_field: str
    extracted_value: Any
    confidence: ConfidenceLevel
    source: SourceInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetField": self.target_field,
            "extractedValue": self.extracted_value,
            "confidence": self.confidence.value,
            "source": self.source.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilledField":
        return cls(
            target_field=data["targetField"],
            extracted_value=data["extractedValue"],
            confidence=ConfidenceLevel(data["confidence"]),
            source=SourceInfo.from_dict(data["source"]),
        )


@dataclass
class FieldCandidate:
    """A plausible target for an ambiguous value."""
    target_field: str
    reason: str
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetField": self.target_field,
            "reason": self.reason,
            "confidence": self.confidence.value,
        }


@dataclass
class AmbiguousField:
    """Extracted text whose meaning is contested; always left to the operator."""
    extracted_label: str
    extracted_value: str
    candidates: List[FieldCandidate]
    source: SourceInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extractedLabel": self.extracted_label,
            "extractedValue": self.extracted_value,
            "suggestedFields": [c.to_dict() for c in self.candidates],
            "source": self.source.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AmbiguousField":
        return cls(
            extracted_label=data["extractedLabel"],
            extracted_value=data["extractedValue"],
            candidates=[
                FieldCandidate(
                    target_field=c["targetField"],
                    reason=c.get("reason", ""),
                    confidence=ConfidenceLevel(c.get("confidence", "medium")),
                )
                for c in data.get("suggestedFields", [])
            ],
            source=SourceInfo.from_dict(data["source"]),
        )


@dataclass
class SuggestedTarget:
    target_field: str
    confidence: ConfidenceLevel
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetField": self.target_field,
            "confidence": self.confidence.value,
            "reason": self.reason,
        }


@dataclass
class UnmappedItem:
    """Source text that could not be assigned to any target field."""
    extracted_value: str
    category: UnmappedCategory
    source: SourceInfo
    extracted_label: Optional[str] = None
    suggested_targets: List[SuggestedTarget] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extractedLabel": self.extracted_label,
            "extractedValue": self.extracted_value,
            "category": self.category.value,
            "suggestedTargets": [t.to_dict() for t in self.suggested_targets],
            "source": self.source.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnmappedItem":
        return cls(
            extracted_label=data.get("extractedLabel"),
            extracted_value=data["extractedValue"],
            category=UnmappedCategory(data["category"]),
            suggested_targets=[
                SuggestedTarget(
                    target_field=t["targetField"],
                    confidence=ConfidenceLevel(t["confidence"]),
                    reason=t.get("reason", ""),
                )
                for t in data.get("suggestedTargets", [])
            ],
            source=SourceInfo.from_dict(data["source"]),
        )


@dataclass
class DraftMetadata:
    file_name: str
    file_type: str
    file_size: int
    page_count: int
    extraction_method: AcquisitionMethod
    processing_time_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "pageCount": self.page_count,
            "extractionMethod": self.extraction_method.value,
            "processingTimeMs": self.processing_time_ms,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DraftMetadata":
        return cls(
            file_name=data["fileName"],
            file_type=data["fileType"],
            file_size=data["fileSize"],
            page_count=data["pageCount"],
            extraction_method=AcquisitionMethod(data["extractionMethod"]),
            processing_time_ms=data.get("processingTimeMs", 0),
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class CandidateAutoFillDraft:
    """
    Structured, human-reviewable output of one extraction job.

    An empty draft (all three lists empty) is the universal fallback for
    empty documents and disabled or failing engines.
    """
    metadata: DraftMetadata
    filled_fields: List[FilledField] = field(default_factory=list)
    ambiguous_fields: List[AmbiguousField] = field(default_factory=list)
    unmapped_items: List[UnmappedItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.filled_fields or self.ambiguous_fields or self.unmapped_items)

    def get_field(self, target_field: str) -> Optional[FilledField]:
        for filled in self.filled_fields:
            if filled.target_field == target_field:
                return filled
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filledFields": [f.to_dict() for f in self.filled_fields],
            "ambiguousFields": [f.to_dict() for f in self.ambiguous_fields],
            "unmappedItems": [i.to_dict() for i in self.unmapped_items],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateAutoFillDraft":
        return cls(
            metadata=DraftMetadata.from_dict(data["metadata"]),
            filled_fields=[FilledField.from_dict(f) for f in data.get("filledFields", [])],
            ambiguous_fields=[AmbiguousField.from_dict(f) for f in data.get("ambiguousFields", [])],
            unmapped_items=[UnmappedItem.from_dict(i) for i in data.get("unmappedItems", [])],
        )

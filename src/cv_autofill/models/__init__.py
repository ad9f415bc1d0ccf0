"""Data models for the CV Auto-Fill System."""

from .enums import (
    AcquisitionMethod,
    ConfidenceLevel,
    DetectedType,
    FileType,
    JobStatus,
    UnmappedCategory,
)
from .document import (
    AcquiredText,
    DocumentLine,
    DocumentPage,
    DocumentRepresentation,
    DocumentTable,
)
from .extraction import (
    AddressData,
    AutoCorrection,
    CompletenessReport,
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
from .draft import (
    AmbiguousField,
    CandidateAutoFillDraft,
    DraftMetadata,
    FieldCandidate,
    FilledField,
    SourceInfo,
    SuggestedTarget,
    UnmappedItem,
)
from .feedback import (
    CorrectionRecord,
    ExtractionConfig,
    FewShotExample,
    FieldAccuracy,
    FieldSuggestion,
    SegmentAssignment,
)
from .job import ExtractionJob
from .packed import PackedInput, PackedKeyValue, PackedLine, PackedSection

__all__ = [
    "AcquisitionMethod",
    "ConfidenceLevel",
    "DetectedType",
    "FileType",
    "JobStatus",
    "UnmappedCategory",
    "AcquiredText",
    "DocumentLine",
    "DocumentPage",
    "DocumentRepresentation",
    "DocumentTable",
    "AddressData",
    "AutoCorrection",
    "CompletenessReport",
    "ContactData",
    "EducationEntry",
    "Evidence",
    "ExperienceEntry",
    "ExtractedData",
    "ExtractionResult",
    "ImplicitMapping",
    "LanguageEntry",
    "PersonData",
    "SkillEntry",
    "UnmappedSegment",
    "AmbiguousField",
    "CandidateAutoFillDraft",
    "DraftMetadata",
    "FieldCandidate",
    "FilledField",
    "SourceInfo",
    "SuggestedTarget",
    "UnmappedItem",
    "CorrectionRecord",
    "ExtractionConfig",
    "FewShotExample",
    "FieldAccuracy",
    "FieldSuggestion",
    "SegmentAssignment",
    "ExtractionJob",
    "PackedInput",
    "PackedKeyValue",
    "PackedLine",
    "PackedSection",
]

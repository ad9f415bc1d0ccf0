"""
CV Auto-Fill System

Turns uploaded résumés (PDF, DOCX, scanned images) into a confidence-scored
candidate profile draft and learns from operator corrections.
"""

__version__ = "0.1.0"

# Export main components
from .errors import CVError, CVErrorCode
from .config import AppSettings, ConfigurationManager, ConfigurationError, StaticSkillCatalog
from .models.enums import AcquisitionMethod, ConfidenceLevel, JobStatus, UnmappedCategory
from .models.draft import AmbiguousField, CandidateAutoFillDraft, DraftMetadata, FilledField, UnmappedItem
from .models.extraction import ExtractedData, ExtractionResult
from .parsers import FormatDispatcher
from .extractors import HybridExtractionEngine, OpenAIExtractionEngine, RuleBasedExtractionEngine
from .mapping import build_draft, empty_draft
from .feedback import DatabaseManager, FeedbackStore, JobRepository, TenantDictionary
from .pipeline import ExtractionPipeline, PipelineConfig, PipelineResult
from .jobs import ExtractionJobService, SubmitRequest, SubmitResult

__all__ = [
    "CVError",
    "CVErrorCode",
    "AppSettings",
    "ConfigurationManager",
    "ConfigurationError",
    "StaticSkillCatalog",
    "AcquisitionMethod",
    "ConfidenceLevel",
    "JobStatus",
    "UnmappedCategory",
    "AmbiguousField",
    "CandidateAutoFillDraft",
    "DraftMetadata",
    "FilledField",
    "UnmappedItem",
    "ExtractedData",
    "ExtractionResult",
    "FormatDispatcher",
    "HybridExtractionEngine",
    "OpenAIExtractionEngine",
    "RuleBasedExtractionEngine",
    "build_draft",
    "empty_draft",
    "DatabaseManager",
    "FeedbackStore",
    "JobRepository",
    "TenantDictionary",
    "ExtractionPipeline",
    "PipelineConfig",
    "PipelineResult",
    "ExtractionJobService",
    "SubmitRequest",
    "SubmitResult",
]

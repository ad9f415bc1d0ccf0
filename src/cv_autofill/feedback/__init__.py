"""Feedback, tenant dictionary and job persistence for the CV Auto-Fill System."""

from .database import DatabaseManager, get_database_url
from .feedback_store import (
    BUILTIN_FEW_SHOT_EXAMPLES,
    FeedbackStore,
    extract_keywords,
    text_similarity,
)
from .job_repository import JobRepository
from .models import (
    Base,
    CorrectionModel,
    ExtractionJobModel,
    FieldMetricModel,
    SegmentAssignmentModel,
    TenantFieldSynonymModel,
    TenantSkillAliasModel,
)
from .tenant_dictionary import TenantDictionary

__all__ = [
    "DatabaseManager",
    "get_database_url",
    "BUILTIN_FEW_SHOT_EXAMPLES",
    "FeedbackStore",
    "extract_keywords",
    "text_similarity",
    "JobRepository",
    "Base",
    "CorrectionModel",
    "ExtractionJobModel",
    "FieldMetricModel",
    "SegmentAssignmentModel",
    "TenantFieldSynonymModel",
    "TenantSkillAliasModel",
    "TenantDictionary",
]

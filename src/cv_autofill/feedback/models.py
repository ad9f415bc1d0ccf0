"""SQLAlchemy models for the feedback store, tenant dictionaries and jobs."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def _uuid() -> str:
    return str(uuid.uuid4())


class JSONType(TypeDecorator):
    """Platform-independent JSON type.

    Uses JSONB for PostgreSQL and JSON for other databases (like SQLite).
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class CorrectionModel(Base):
    """Append-only record of an operator correcting an extraction."""
    __tablename__ = "extraction_corrections"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), nullable=False)
    source_context = Column(Text, nullable=False)
    source_label = Column(String(255))
    extracted_value = Column(Text)
    corrected_value = Column(Text, nullable=False)
    corrected_field = Column(String(100), nullable=False)
    reason = Column(Text)
    cv_hash = Column(String(64))
    created_by = Column(String(100), nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index("idx_corrections_tenant_field", "tenant_id", "corrected_field"),
        Index("idx_corrections_created_at", "created_at"),
    )


class SegmentAssignmentModel(Base):
    """Append-only record of an unmapped segment assigned to a field."""
    __tablename__ = "segment_assignments"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), nullable=False)
    segment_text = Column(Text, nullable=False)
    segment_key = Column(String(500))
    segment_category = Column(String(50), nullable=False)
    assigned_field = Column(String(100), nullable=False)
    assigned_value = Column(Text, nullable=False)
    surrounding_context = Column(Text)
    cv_hash = Column(String(64))
    created_by = Column(String(100), nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        Index("idx_segment_assignments_tenant", "tenant_id", "segment_category"),
        Index("idx_segment_assignments_key", "tenant_id", "segment_key"),
    )


class FieldMetricModel(Base):
    """Rolling per-field extraction counters."""
    __tablename__ = "extraction_field_metrics"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), nullable=False)
    field_name = Column(String(100), nullable=False)
    total_extractions = Column(Integer, default=0, nullable=False)
    correct_extractions = Column(Integer, default=0, nullable=False)
    corrected_extractions = Column(Integer, default=0, nullable=False)
    null_extractions = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "field_name", name="uq_field_metrics_tenant_field"),
    )


class TenantFieldSynonymModel(Base):
    """Tenant label -> target field synonym."""
    __tablename__ = "tenant_field_synonyms"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), nullable=False)
    label = Column(String(255), nullable=False)
    target_field = Column(String(100), nullable=False)
    locale = Column(String(10), default="de")
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "label", "target_field", name="uq_tenant_synonym"),
        Index("idx_tenant_synonyms_tenant", "tenant_id"),
    )


class TenantSkillAliasModel(Base):
    """Tenant alias -> canonical skill name."""
    __tablename__ = "tenant_skill_aliases"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), nullable=False)
    alias = Column(String(255), nullable=False)
    skill_name = Column(String(255), nullable=False)
    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "alias", name="uq_tenant_skill_alias"),
    )


class ExtractionJobModel(Base):
    """Extraction job with its lifecycle status and result."""
    __tablename__ = "cv_analysis_jobs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(100), nullable=False)
    tenant_id = Column(String(36), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(10), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_hash = Column(String(64))
    page_count = Column(Integer)
    result = Column(JSONType)
    error = Column(Text)
    error_code = Column(String(50))
    latency_ms = Column(Integer)
    filled_count = Column(Integer, default=0)
    unmapped_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_job_status",
        ),
        Index("idx_jobs_user_created", "user_id", "created_at"),
        Index("idx_jobs_status_updated", "status", "updated_at"),
    )

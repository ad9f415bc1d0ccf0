"""FastAPI application for the CV Auto-Fill System.

Exposes job submission and status, the feedback loop (corrections,
segment assignments, confirmations, suggestions) and tenant dictionaries.

Usage (from project root, after installing the package):

    uvicorn cv_autofill.api.app:app

Operator identity is read from the ``X-User-Id`` header and the tenant
from ``X-Tenant-Id``; authenticating those headers is left to the
surrounding gateway.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..config.config_manager import ConfigurationManager, StaticSkillCatalog
from ..config.models import AppSettings
from ..errors import CVError, CVErrorCode
from ..feedback.database import DatabaseManager
from ..feedback.feedback_store import FeedbackStore
from ..feedback.job_repository import JobRepository
from ..feedback.tenant_dictionary import TenantDictionary
from ..jobs.job_service import ExtractionJobService, SubmitRequest
from ..log_redaction import configure_logging
from ..models.feedback import CorrectionRecord, FieldSuggestion, SegmentAssignment
from ..pipeline import ExtractionPipeline


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SubmitJobBody(_CamelModel):
    file_base64: str = Field(alias="fileBase64", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1)
    file_type: str = Field(alias="fileType", min_length=1)
    file_size: int = Field(alias="fileSize", ge=0)


class CorrectionBody(_CamelModel):
    source_context: str = Field(alias="sourceContext", min_length=1)
    source_label: Optional[str] = Field(default=None, alias="sourceLabel")
    wrong_extraction: Optional[str] = Field(default=None, alias="wrongExtraction")
    correct_value: str = Field(alias="correctValue", min_length=1)
    correct_field: str = Field(alias="correctField", min_length=1)
    reasoning: Optional[str] = None
    cv_hash: Optional[str] = Field(default=None, alias="cvHash")

    def to_record(self, created_by: Optional[str]) -> CorrectionRecord:
        return CorrectionRecord(
            source_context=self.source_context,
            source_label=self.source_label,
            extracted_value=self.wrong_extraction,
            corrected_value=self.correct_value,
            corrected_field=self.correct_field,
            reason=self.reasoning,
            cv_hash=self.cv_hash,
            created_by=created_by,
        )


class CorrectionBatchBody(_CamelModel):
    corrections: List[CorrectionBody]


class SegmentAssignmentBody(_CamelModel):
    segment_text: str = Field(alias="segmentText", min_length=1)
    detected_type: str = Field(default="other", alias="detectedType")
    assigned_field: str = Field(alias="assignedField", min_length=1)
    assigned_value: str = Field(alias="assignedValue", min_length=1)
    surrounding_context: Optional[str] = Field(default=None, alias="surroundingContext")
    cv_hash: Optional[str] = Field(default=None, alias="cvHash")


class ConfirmationBody(_CamelModel):
    fields: List[str] = Field(min_length=1)


class SuggestionBody(_CamelModel):
    original_text: str = Field(alias="originalText", min_length=1)
    detected_type: Optional[str] = Field(default=None, alias="detectedType")
    suggested_field: Optional[str] = Field(default=None, alias="suggestedField")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class FieldSynonymBody(_CamelModel):
    label: str = Field(min_length=1)
    target_field: str = Field(alias="targetField", min_length=1)
    locale: str = "de"


class SkillAliasBody(_CamelModel):
    alias: str = Field(min_length=1)
    skill_name: str = Field(alias="skillName", min_length=1)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------

@dataclass
class AppServices:
    """Everything the endpoints need, built once per application."""
    settings: AppSettings
    db_manager: DatabaseManager
    feedback_store: FeedbackStore
    tenant_dictionary: TenantDictionary
    job_service: ExtractionJobService
    init_schema: bool = True


def build_services(
    settings: Optional[AppSettings] = None,
    db_manager: Optional[DatabaseManager] = None,
    pipeline: Optional[ExtractionPipeline] = None,
    job_service: Optional[ExtractionJobService] = None,
    init_schema: bool = True,
) -> AppServices:
    """Wire settings, dictionaries, stores and the job service together."""
    settings = settings or AppSettings.from_env()
    db_manager = db_manager or DatabaseManager(database_url=settings.database_url)

    config_manager = ConfigurationManager(config_dir=settings.config_dir)
    if settings.config_dir:
        config_manager.load_from_directory(settings.config_dir)
    if settings.skills_file:
        config_manager.load_skills(settings.skills_file)
    skill_catalog = StaticSkillCatalog.from_configuration(config_manager)

    feedback_store = FeedbackStore(db_manager=db_manager, tenant_id=settings.default_tenant_id)
    tenant_dictionary = TenantDictionary(
        db_manager=db_manager,
        tenant_id=settings.default_tenant_id,
        base_configuration=config_manager.configuration,
    )
    if job_service is None:
        pipeline = pipeline or ExtractionPipeline(
            settings=settings,
            skill_catalog=skill_catalog,
            feedback_store=feedback_store,
        )
        job_service = ExtractionJobService(
            repository=JobRepository(db_manager=db_manager),
            pipeline=pipeline,
            settings=settings,
            tenant_dictionary=tenant_dictionary,
            skill_catalog=skill_catalog,
        )

    return AppServices(
        settings=settings,
        db_manager=db_manager,
        feedback_store=feedback_store,
        tenant_dictionary=tenant_dictionary,
        job_service=job_service,
        init_schema=init_schema,
    )


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Services are built from the environment on startup unless passed in.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            configure_logging()
            app.state.services = build_services()
        current: AppServices = app.state.services
        if current.init_schema:
            current.db_manager.init_database()
        reconciled = current.job_service.reconcile_stuck_jobs()
        if reconciled:
            logger.warning(f"Failed {reconciled} stuck job(s) on startup")
        yield
        current.job_service.shutdown(wait=False)

    app = FastAPI(title="CV Auto-Fill API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(CVError)
    async def handle_cv_error(request: Request, exc: CVError) -> JSONResponse:
        logger.warning(f"Request failed [{exc.code.value}]: {exc.internal_message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_user_response())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = CVError(CVErrorCode.INVALID_PAYLOAD, str(exc.errors()))
        return JSONResponse(status_code=error.http_status, content=error.to_user_response())

    def _services(request: Request) -> AppServices:
        return request.app.state.services

    # -----------------------------------------------------------------------
    # Jobs
    # -----------------------------------------------------------------------

    @app.post("/api/cv/jobs")
    def submit_job(
        body: SubmitJobBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        """Accept an upload and start background extraction."""
        result = _services(request).job_service.submit(
            SubmitRequest(
                file_base64=body.file_base64,
                file_name=body.file_name,
                file_type=body.file_type,
                file_size=body.file_size,
            ),
            user_id=x_user_id,
            tenant_id=x_tenant_id,
        )
        headers = {}
        if result.retry_after_seconds:
            headers["Retry-After"] = str(result.retry_after_seconds)
        return JSONResponse(status_code=result.http_status, content=result.to_dict(), headers=headers)

    @app.get("/api/cv/jobs")
    def list_jobs(
        request: Request,
        limit: int = Query(default=5, ge=1, le=50),
        x_user_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        jobs = _services(request).job_service.list_recent(x_user_id, limit=limit)
        return JSONResponse(status_code=200, content={"success": True, "jobs": jobs})

    @app.get("/api/cv/jobs/{job_id}")
    def get_job(job_id: str, request: Request, x_user_id: Optional[str] = Header(default=None)) -> JSONResponse:
        """Poll a job; only its owner can see it."""
        try:
            status = _services(request).job_service.get_status(job_id, x_user_id)
        except CVError as exc:
            if exc.code == CVErrorCode.JOB_NOT_FOUND:
                raise HTTPException(status_code=404, detail=exc.user_message) from exc
            raise
        return JSONResponse(status_code=200, content=status)

    @app.delete("/api/cv/jobs/{job_id}")
    def delete_job(job_id: str, request: Request, x_user_id: Optional[str] = Header(default=None)) -> JSONResponse:
        try:
            deleted = _services(request).job_service.delete(job_id, x_user_id)
        except CVError as exc:
            if exc.code == CVErrorCode.JOB_NOT_FOUND:
                raise HTTPException(status_code=404, detail=exc.user_message) from exc
            raise
        return JSONResponse(status_code=200, content={"success": deleted})

    # -----------------------------------------------------------------------
    # Feedback
    # -----------------------------------------------------------------------

    def _store(request: Request, tenant_id: Optional[str]) -> FeedbackStore:
        return _services(request).feedback_store.for_tenant(tenant_id)

    @app.post("/api/feedback/corrections")
    def record_correction(
        body: CorrectionBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        correction_id = _store(request, x_tenant_id).record_correction(body.to_record(x_user_id))
        return JSONResponse(
            status_code=200,
            content={"success": correction_id is not None, "id": correction_id},
        )

    @app.post("/api/feedback/corrections/batch")
    def record_corrections_batch(
        body: CorrectionBatchBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        records = [c.to_record(x_user_id) for c in body.corrections]
        count = _store(request, x_tenant_id).batch_record_corrections(records)
        return JSONResponse(
            status_code=200,
            content={"success": count == len(records), "count": count, "total": len(records)},
        )

    @app.post("/api/feedback/segments")
    def record_segment_assignment(
        body: SegmentAssignmentBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        assignment_id = _store(request, x_tenant_id).record_segment_assignment(
            SegmentAssignment(
                segment_text=body.segment_text,
                segment_category=body.detected_type,
                assigned_field=body.assigned_field,
                assigned_value=body.assigned_value,
                surrounding_context=body.surrounding_context,
                cv_hash=body.cv_hash,
                created_by=x_user_id,
            )
        )
        return JSONResponse(
            status_code=200,
            content={"success": assignment_id is not None, "id": assignment_id},
        )

    @app.post("/api/feedback/confirmations")
    def record_confirmations(
        body: ConfirmationBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        """Count fields the operator accepted unchanged."""
        if not x_user_id:
            raise CVError(CVErrorCode.AUTH_REQUIRED)
        store = _store(request, x_tenant_id)
        count = sum(1 for name in body.fields if store.record_successful_extraction(name))
        return JSONResponse(status_code=200, content={"success": count == len(body.fields), "count": count})

    @app.post("/api/feedback/suggestions")
    def get_suggestions(
        body: SuggestionBody,
        request: Request,
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        engine_suggestion = None
        if body.suggested_field:
            engine_suggestion = FieldSuggestion(
                field_name=body.suggested_field,
                confidence=body.confidence,
                reason="Suggested by extraction engine",
                source="engine",
            )
        suggestions = _store(request, x_tenant_id).get_suggestions_for_unmapped(
            body.original_text,
            detected_type=body.detected_type,
            engine_suggestion=engine_suggestion,
        )
        return JSONResponse(
            status_code=200,
            content={"success": True, "suggestions": [s.to_dict() for s in suggestions]},
        )

    @app.get("/api/feedback/accuracy")
    def get_accuracy(request: Request, x_tenant_id: Optional[str] = Header(default=None)) -> JSONResponse:
        store = _store(request, x_tenant_id)
        return JSONResponse(
            status_code=200,
            content={
                "accuracies": store.get_field_accuracies(),
                "problematicFields": store.get_problematic_fields(),
            },
        )

    # -----------------------------------------------------------------------
    # Tenant dictionaries
    # -----------------------------------------------------------------------

    @app.post("/api/tenant/synonyms")
    def add_field_synonym(
        body: FieldSynonymBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        dictionary = _services(request).tenant_dictionary.for_tenant(x_tenant_id)
        synonym_id = dictionary.add_field_synonym(
            body.label, body.target_field, created_by=x_user_id, locale=body.locale
        )
        return JSONResponse(status_code=200, content={"success": True, "id": synonym_id})

    @app.post("/api/tenant/skill-aliases")
    def add_skill_alias(
        body: SkillAliasBody,
        request: Request,
        x_user_id: Optional[str] = Header(default=None),
        x_tenant_id: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        dictionary = _services(request).tenant_dictionary.for_tenant(x_tenant_id)
        alias_id = dictionary.add_skill_alias(body.alias, body.skill_name, created_by=x_user_id)
        return JSONResponse(status_code=200, content={"success": True, "id": alias_id})

    @app.get("/health")
    def health(request: Request) -> JSONResponse:
        healthy = _services(request).db_manager.health_check()
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "ok" if healthy else "degraded", "database": healthy},
        )

    return app


app = create_app()

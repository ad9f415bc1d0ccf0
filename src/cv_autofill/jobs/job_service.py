"""Extraction job lifecycle: admission, background processing and status."""

import logging
import threading
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..admission.dedupe import DedupeCache, compute_file_hash
from ..admission.rate_limiter import RateLimiter, RateLimitResult
from ..config.models import AppSettings
from ..errors import CVError, CVErrorCode, wrap_error
from ..feedback.job_repository import JobRepository
from ..feedback.tenant_dictionary import TenantDictionary
from ..interfaces.skills import ISkillCatalog
from ..models.enums import JobStatus
from ..models.feedback import ExtractionConfig
from ..models.job import ExtractionJob
from ..pipeline import ExtractionPipeline
from ..validation import (
    decode_base64_payload,
    resolve_mime_type,
    sanitize_filename,
    validate_file_size,
    validate_magic_bytes,
)


logger = logging.getLogger(__name__)


@dataclass
class SubmitRequest:
    """Upload as received from the caller."""
    file_base64: str
    file_name: str
    file_type: str
    file_size: int


@dataclass
class SubmitResult:
    success: bool
    job_id: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None
    retryable: bool = False
    duplicate: bool = False
    retry_after_seconds: Optional[int] = None
    http_status: int = 202

    @classmethod
    def from_error(cls, error: CVError, retry_after_seconds: Optional[int] = None) -> "SubmitResult":
        return cls(
            success=False,
            message=error.user_message,
            code=error.code.value,
            retryable=error.retryable,
            retry_after_seconds=retry_after_seconds,
            http_status=error.http_status,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.success:
            payload["jobId"] = self.job_id
            if self.duplicate:
                payload["cached"] = True
        else:
            payload["code"] = self.code
            payload["retryable"] = self.retryable
            if self.retry_after_seconds is not None:
                payload["retryAfterSeconds"] = self.retry_after_seconds
        return payload


class ExtractionJobService:
    """
    Accepts uploads as jobs and processes them in a worker pool.

    ``submit`` returns as soon as the job row exists; ``process`` runs on
    the executor, claims the job (``pending -> processing``) and writes the
    terminal status. Upload bytes are held in memory only until the job is
    claimed.
    """

    def __init__(
        self,
        repository: JobRepository,
        pipeline: ExtractionPipeline,
        settings: Optional[AppSettings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        dedupe_cache: Optional[DedupeCache] = None,
        tenant_dictionary: Optional[TenantDictionary] = None,
        skill_catalog: Optional[ISkillCatalog] = None,
        executor: Optional[Executor] = None,
    ):
        self.settings = settings or pipeline.settings
        self._repository = repository
        self._pipeline = pipeline
        self._rate_limiter = rate_limiter or RateLimiter()
        self._dedupe = dedupe_cache or DedupeCache(ttl=self.settings.dedupe_ttl_seconds)
        self._tenant_dictionary = tenant_dictionary
        self._skill_catalog = skill_catalog
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.job_workers, thread_name_prefix="cv-extract"
        )
        self._payloads: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(
        self,
        request: SubmitRequest,
        user_id: Optional[str],
        tenant_id: Optional[str] = None,
    ) -> SubmitResult:
        """
        Validate an upload and enqueue it.

        Checks run in order: identity, rate limit, daily quota, tenant
        quota, size, extension, magic bytes. A rejected upload never
        creates a job.
        """
        tenant_id = tenant_id or self.settings.default_tenant_id
        try:
            if not user_id:
                raise CVError(CVErrorCode.AUTH_REQUIRED, "Upload without user identity")

            rejected = self._check_admission(user_id, tenant_id)
            if rejected is not None:
                return rejected

            validate_file_size(request.file_size, self.settings.max_file_size_mb)
            mime_type = resolve_mime_type(request.file_type)
            data = decode_base64_payload(request.file_base64)
            validate_file_size(len(data), self.settings.max_file_size_mb)
            validate_magic_bytes(data, mime_type)
            safe_name = sanitize_filename(request.file_name)
            file_hash = compute_file_hash(data)

            existing_id = self._find_duplicate(file_hash, user_id)
            if existing_id is not None:
                logger.info(f"Dedupe cache hit, returning job {existing_id}")
                return SubmitResult(
                    success=True,
                    job_id=existing_id,
                    message="Analyse aus Cache geladen",
                    duplicate=True,
                    http_status=200,
                )

            job = self._repository.create(
                ExtractionJob(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    tenant_id=tenant_id,
                    status=JobStatus.PENDING,
                    file_name=safe_name,
                    file_type=request.file_type.strip().lower().lstrip("."),
                    file_size=len(data),
                    file_hash=file_hash,
                )
            )
            self._dedupe.set(file_hash, user_id, job.id)
            with self._lock:
                self._payloads[job.id] = data
            self._executor.submit(self.process, job.id)

            return SubmitResult(success=True, job_id=job.id, message="Analyse gestartet")

        except CVError as e:
            logger.warning(f"Upload rejected [{e.code.value}]: {e.internal_message}")
            return SubmitResult.from_error(e)
        except Exception as e:
            error = wrap_error(e)
            logger.exception(f"Failed to create analysis job: {e}")
            return SubmitResult.from_error(error)

    def _check_admission(self, user_id: str, tenant_id: str) -> Optional[SubmitResult]:
        checks = (
            (lambda: self._rate_limiter.check("cv_analysis", user_id), CVErrorCode.RATE_LIMITED),
            (
                lambda: self._rate_limiter.check_daily_quota(user_id, self.settings.daily_quota),
                CVErrorCode.DAILY_QUOTA_EXCEEDED,
            ),
            (
                lambda: self._rate_limiter.check_tenant_quota(
                    tenant_id, self.settings.tenant_daily_quota
                ),
                CVErrorCode.TENANT_QUOTA_EXCEEDED,
            ),
        )
        for check, code in checks:
            outcome: RateLimitResult = check()
            if not outcome.allowed:
                return SubmitResult.from_error(
                    CVError(code, f"Admission denied until {outcome.reset_at.isoformat()}"),
                    retry_after_seconds=outcome.retry_after_seconds,
                )
        return None

    def _find_duplicate(self, file_hash: str, user_id: str) -> Optional[str]:
        job_id = self._dedupe.get(file_hash, user_id)
        if job_id is None:
            return None
        job = self._repository.get(job_id)
        if job is None or job.user_id != user_id or job.status == JobStatus.FAILED:
            self._dedupe.invalidate(file_hash, user_id)
            return None
        return job_id

    # =========================================================================
    # Processing
    # =========================================================================

    def process(self, job_id: str) -> Optional[ExtractionJob]:
        """
        Run one job to a terminal status.

        A job that is not ``pending`` is left untouched. No exception
        escapes: anything unexpected fails the job.
        """
        with self._lock:
            data = self._payloads.pop(job_id, None)

        try:
            if not self._repository.mark_processing(job_id):
                logger.warning(f"Job {job_id} is not pending, skipping")
                return self._repository.get(job_id)

            job = self._repository.get(job_id)
            if job is None:
                return None
            if data is None:
                self._repository.mark_failed(
                    job_id,
                    error=CVError(CVErrorCode.ANALYSIS_FAILED).user_message,
                    error_code=CVErrorCode.ANALYSIS_FAILED.value,
                )
                logger.error(f"Job {job_id} has no upload payload")
                return self._repository.get(job_id)

            logger.info(f"Processing job {job_id}")
            result = self._pipeline.process(
                data,
                file_name=job.file_name,
                file_type=job.file_type,
                file_size=job.file_size,
                extraction_config=self._extraction_config(job.tenant_id),
            )
            draft = result.draft.to_dict() if result.draft else None

            if result.success:
                self._repository.mark_completed(
                    job_id,
                    result=draft,
                    page_count=result.page_count,
                    latency_ms=result.processing_time_ms,
                    filled_count=result.filled_count,
                    unmapped_count=result.unmapped_count,
                )
                logger.info(
                    f"Job {job_id} completed in {result.processing_time_ms}ms "
                    f"({result.filled_count} filled, {result.unmapped_count} unmapped)"
                )
            else:
                code = CVErrorCode(result.error_code or CVErrorCode.ANALYSIS_FAILED.value)
                self._repository.mark_failed(
                    job_id,
                    error=CVError(code).user_message,
                    error_code=code.value,
                    result=draft,
                    page_count=result.page_count,
                    latency_ms=result.processing_time_ms,
                )
                logger.warning(f"Job {job_id} failed [{code.value}]")

        except Exception as e:
            error = wrap_error(e)
            logger.exception(f"Job {job_id} crashed: {e}")
            try:
                self._repository.mark_failed(
                    job_id, error=error.user_message, error_code=error.code.value
                )
            except SQLAlchemyError as db_error:
                logger.error(f"Could not mark job {job_id} as failed: {db_error}")
                return None

        return self._repository.get(job_id)

    def _extraction_config(self, tenant_id: str) -> ExtractionConfig:
        """Dictionaries and feedback scope of the job's tenant."""
        if self._tenant_dictionary is not None:
            dictionary = self._tenant_dictionary.for_tenant(tenant_id)
            try:
                return dictionary.get_extraction_config(self._skill_catalog)
            except SQLAlchemyError as e:
                logger.warning(f"Tenant dictionaries unavailable, using defaults: {e}")
        skills = self._skill_catalog.get_skill_names() if self._skill_catalog else []
        return ExtractionConfig(system_skills=list(skills), tenant_id=tenant_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def _owned_job(self, job_id: str, user_id: Optional[str]) -> ExtractionJob:
        if not user_id:
            raise CVError(CVErrorCode.AUTH_REQUIRED)
        job = self._repository.get(job_id)
        if job is None or job.user_id != user_id:
            raise CVError(CVErrorCode.JOB_NOT_FOUND, f"Job {job_id} not found for user")
        return job

    def get_status(self, job_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        """
        Raises:
            CVError: JOB_NOT_FOUND if the job does not exist or belongs to
                another user.
        """
        return self._owned_job(job_id, user_id).to_status_dict()

    def list_recent(self, user_id: Optional[str], limit: int = 5) -> List[Dict[str, Any]]:
        if not user_id:
            raise CVError(CVErrorCode.AUTH_REQUIRED)
        return [job.to_status_dict() for job in self._repository.list_recent(user_id, limit)]

    def delete(self, job_id: str, user_id: Optional[str]) -> bool:
        job = self._owned_job(job_id, user_id)
        if job.file_hash:
            self._dedupe.invalidate(job.file_hash, job.user_id)
        with self._lock:
            self._payloads.pop(job_id, None)
        return self._repository.delete(job_id, job.user_id)

    def reconcile_stuck_jobs(self, older_than_minutes: Optional[int] = None) -> int:
        """Fail jobs left open longer than the bound; returns how many."""
        minutes = older_than_minutes if older_than_minutes is not None else self.settings.stuck_job_minutes
        error = CVError(CVErrorCode.ANALYSIS_TIMEOUT)
        return self._repository.fail_stuck_jobs(
            minutes, error=error.user_message, error_code=error.code.value
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

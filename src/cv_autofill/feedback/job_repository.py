"""Persistence for extraction jobs."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select, update

from ..models.enums import JobStatus
from ..models.job import ExtractionJob
from .database import DatabaseManager
from .models import ExtractionJobModel


logger = logging.getLogger(__name__)

_OPEN_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class JobRepository:
    """
    Stores extraction jobs and guards their state transitions.

    Status updates are conditional on the current status, so a job that
    reached ``completed`` or ``failed`` is never written again and a job
    that is not ``pending`` is never picked up twice.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        database_url: Optional[str] = None,
    ):
        if db_manager is not None:
            self._db_manager = db_manager
            self._owns_db_manager = False
        else:
            self._db_manager = DatabaseManager(database_url=database_url)
            self._owns_db_manager = True

    def _to_model(self, job: ExtractionJob) -> ExtractionJobModel:
        now = datetime.utcnow()
        return ExtractionJobModel(
            id=job.id,
            user_id=job.user_id,
            tenant_id=job.tenant_id,
            status=job.status.value,
            file_name=job.file_name,
            file_type=job.file_type,
            file_size=job.file_size,
            file_hash=job.file_hash,
            page_count=job.page_count,
            result=job.result,
            error=job.error,
            error_code=job.error_code,
            latency_ms=job.latency_ms,
            filled_count=job.filled_count,
            unmapped_count=job.unmapped_count,
            created_at=job.created_at or now,
            updated_at=job.updated_at or now,
            completed_at=job.completed_at,
        )

    def _from_model(self, model: ExtractionJobModel) -> ExtractionJob:
        return ExtractionJob(
            id=model.id,
            user_id=model.user_id,
            tenant_id=model.tenant_id,
            status=JobStatus(model.status),
            file_name=model.file_name,
            file_type=model.file_type,
            file_size=model.file_size,
            file_hash=model.file_hash,
            page_count=model.page_count,
            result=model.result,
            error=model.error,
            error_code=model.error_code,
            latency_ms=model.latency_ms,
            filled_count=model.filled_count or 0,
            unmapped_count=model.unmapped_count or 0,
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )

    def create(self, job: ExtractionJob) -> ExtractionJob:
        model = self._to_model(job)
        with self._db_manager.get_session() as session:
            session.add(model)
            session.flush()
            created = self._from_model(model)
        logger.info(f"Created job {created.id} ({created.file_type}, {created.file_size} bytes)")
        return created

    def get(self, job_id: str) -> Optional[ExtractionJob]:
        with self._db_manager.get_session() as session:
            model = session.get(ExtractionJobModel, job_id)
            return self._from_model(model) if model is not None else None

    def list_recent(self, user_id: str, limit: int = 5) -> List[ExtractionJob]:
        with self._db_manager.get_session() as session:
            query = (
                select(ExtractionJobModel)
                .where(ExtractionJobModel.user_id == user_id)
                .order_by(ExtractionJobModel.created_at.desc())
                .limit(limit)
            )
            return [self._from_model(m) for m in session.execute(query).scalars().all()]

    def _transition(self, job_id: str, allowed_from: tuple, values: Dict[str, Any]) -> bool:
        values = dict(values, updated_at=datetime.utcnow())
        with self._db_manager.get_session() as session:
            result = session.execute(
                update(ExtractionJobModel)
                .where(
                    and_(
                        ExtractionJobModel.id == job_id,
                        ExtractionJobModel.status.in_(allowed_from),
                    )
                )
                .values(**values)
            )
            return result.rowcount > 0

    def mark_processing(self, job_id: str) -> bool:
        """Claim a pending job; False if it is not pending anymore."""
        return self._transition(
            job_id, (JobStatus.PENDING.value,), {"status": JobStatus.PROCESSING.value}
        )

    def mark_completed(
        self,
        job_id: str,
        result: Dict[str, Any],
        page_count: Optional[int],
        latency_ms: int,
        filled_count: int,
        unmapped_count: int,
    ) -> bool:
        return self._transition(
            job_id,
            _OPEN_STATUSES,
            {
                "status": JobStatus.COMPLETED.value,
                "result": result,
                "page_count": page_count,
                "latency_ms": latency_ms,
                "filled_count": filled_count,
                "unmapped_count": unmapped_count,
                "completed_at": datetime.utcnow(),
            },
        )

    def mark_failed(
        self,
        job_id: str,
        error: str,
        error_code: str,
        result: Optional[Dict[str, Any]] = None,
        page_count: Optional[int] = None,
        latency_ms: Optional[int] = None,
    ) -> bool:
        return self._transition(
            job_id,
            _OPEN_STATUSES,
            {
                "status": JobStatus.FAILED.value,
                "error": error,
                "error_code": error_code,
                "result": result,
                "page_count": page_count,
                "latency_ms": latency_ms,
                "completed_at": datetime.utcnow(),
            },
        )

    def delete(self, job_id: str, user_id: str) -> bool:
        with self._db_manager.get_session() as session:
            model = session.get(ExtractionJobModel, job_id)
            if model is None or model.user_id != user_id:
                return False
            session.delete(model)
        logger.info(f"Deleted job {job_id}")
        return True

    def fail_stuck_jobs(self, older_than_minutes: int, error: str, error_code: str) -> int:
        """Fail open jobs untouched for ``older_than_minutes``; returns the count."""
        now = datetime.utcnow()
        cutoff = now - timedelta(minutes=older_than_minutes)
        with self._db_manager.get_session() as session:
            result = session.execute(
                update(ExtractionJobModel)
                .where(
                    and_(
                        ExtractionJobModel.status.in_(_OPEN_STATUSES),
                        ExtractionJobModel.updated_at < cutoff,
                    )
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error=error,
                    error_code=error_code,
                    updated_at=now,
                    completed_at=now,
                )
            )
            count = result.rowcount
        if count:
            logger.warning(f"Marked {count} stuck job(s) as failed")
        return count

    def close(self) -> None:
        if self._owns_db_manager:
            self._db_manager.close()

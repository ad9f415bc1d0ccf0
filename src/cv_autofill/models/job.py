"""Extraction job model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .enums import JobStatus


@dataclass
class ExtractionJob:
    """
    One uploaded document moving through ``pending -> processing ->
    completed|failed``.

    Only the background processor mutates a job, and a job is immutable once
    it reaches a terminal status.
    """
    id: str
    user_id: str
    tenant_id: str
    status: JobStatus
    file_name: str
    file_type: str
    file_size: int
    file_hash: Optional[str] = None
    page_count: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    latency_ms: Optional[int] = None
    filled_count: int = 0
    unmapped_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_status_dict(self) -> Dict[str, Any]:
        """Public status payload; ``result`` only for completed jobs."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "fileName": self.file_name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if self.status == JobStatus.COMPLETED and self.result is not None:
            payload["result"] = self.result
        if self.error:
            payload["error"] = self.error
            payload["errorCode"] = self.error_code
        if self.completed_at:
            payload["completedAt"] = self.completed_at.isoformat()
        return payload

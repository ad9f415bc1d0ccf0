"""User-facing error taxonomy for the CV Auto-Fill System.

Every error shown to a caller is a ``CVError`` with a fixed code. The user
message is short, German and never contains internal details; the
internal message and details are for logs only.
"""

from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class CVErrorCode(Enum):
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INSUFFICIENT = "AUTH_INSUFFICIENT"
    RATE_LIMITED = "RATE_LIMITED"
    DAILY_QUOTA_EXCEEDED = "DAILY_QUOTA_EXCEEDED"
    TENANT_QUOTA_EXCEEDED = "TENANT_QUOTA_EXCEEDED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_INVALID_TYPE = "FILE_INVALID_TYPE"
    FILE_MAGIC_MISMATCH = "FILE_MAGIC_MISMATCH"
    FILE_TOO_MANY_PAGES = "FILE_TOO_MANY_PAGES"
    ANALYSIS_TIMEOUT = "ANALYSIS_TIMEOUT"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    ENGINE_AUTH_FAILED = "ENGINE_AUTH_FAILED"
    ENGINE_RATE_LIMITED = "ENGINE_RATE_LIMITED"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ErrorDefinition:
    user_message: str
    retryable: bool
    http_status: int


ERROR_DEFINITIONS: Dict[CVErrorCode, ErrorDefinition] = {
    CVErrorCode.AUTH_REQUIRED: ErrorDefinition("Bitte melden Sie sich an.", False, 401),
    CVErrorCode.AUTH_INSUFFICIENT: ErrorDefinition(
        "Sie haben keine Berechtigung für diese Aktion.", False, 403
    ),
    CVErrorCode.RATE_LIMITED: ErrorDefinition(
        "Zu viele Anfragen. Bitte warten Sie einen Moment.", True, 429
    ),
    CVErrorCode.DAILY_QUOTA_EXCEEDED: ErrorDefinition(
        "Tageslimit erreicht. Versuchen Sie es morgen erneut.", False, 429
    ),
    CVErrorCode.TENANT_QUOTA_EXCEEDED: ErrorDefinition(
        "Das Kontingent für Ihre Organisation wurde erreicht.", False, 429
    ),
    CVErrorCode.FILE_TOO_LARGE: ErrorDefinition("Die Datei ist zu groß.", False, 413),
    CVErrorCode.FILE_INVALID_TYPE: ErrorDefinition(
        "Nur PDF, PNG, JPG oder DOCX erlaubt.", False, 415
    ),
    CVErrorCode.FILE_MAGIC_MISMATCH: ErrorDefinition(
        "Die Datei scheint beschädigt oder ungültig zu sein.", False, 415
    ),
    CVErrorCode.FILE_TOO_MANY_PAGES: ErrorDefinition(
        "Das Dokument hat zu viele Seiten.", False, 413
    ),
    CVErrorCode.ANALYSIS_TIMEOUT: ErrorDefinition(
        "Die Analyse hat zu lange gedauert. Bitte versuchen Sie es erneut.", True, 504
    ),
    CVErrorCode.ANALYSIS_FAILED: ErrorDefinition(
        "Die Analyse ist fehlgeschlagen. Bitte versuchen Sie es erneut.", True, 500
    ),
    CVErrorCode.ENGINE_AUTH_FAILED: ErrorDefinition(
        "Ein Systemfehler ist aufgetreten. Bitte kontaktieren Sie den Support.", False, 500
    ),
    CVErrorCode.ENGINE_RATE_LIMITED: ErrorDefinition(
        "Der Dienst ist überlastet. Bitte versuchen Sie es später erneut.", True, 503
    ),
    CVErrorCode.JOB_NOT_FOUND: ErrorDefinition("Die Analyse wurde nicht gefunden.", False, 404),
    CVErrorCode.INVALID_PAYLOAD: ErrorDefinition("Die Anfrage ist unvollständig.", False, 400),
    CVErrorCode.INTERNAL_ERROR: ErrorDefinition(
        "Ein unerwarteter Fehler ist aufgetreten.", False, 500
    ),
}


class CVError(Exception):
    """
    Error with a fixed user-facing message.

    Args:
        code: Error code; selects message, retryability and HTTP status.
        internal_message: Diagnostic text for logs. Defaults to the code.
        details: Extra diagnostic context (never sent to the caller).
    """

    def __init__(
        self,
        code: CVErrorCode,
        internal_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.internal_message = internal_message or code.value
        self.details = details or {}
        super().__init__(self.internal_message)

    @property
    def definition(self) -> ErrorDefinition:
        return ERROR_DEFINITIONS[self.code]

    @property
    def user_message(self) -> str:
        return self.definition.user_message

    @property
    def retryable(self) -> bool:
        return self.definition.retryable

    @property
    def http_status(self) -> int:
        return self.definition.http_status

    def to_user_response(self) -> Dict[str, Any]:
        """Payload safe to return to the caller."""
        return {
            "success": False,
            "message": self.user_message,
            "code": self.code.value,
            "retryable": self.retryable,
        }


def wrap_error(error: BaseException, fallback: CVErrorCode = CVErrorCode.INTERNAL_ERROR) -> CVError:
    """
    Map an arbitrary exception onto a ``CVError``.

    Timeouts become ``ANALYSIS_TIMEOUT``, HTTP 401/403 from an engine
    ``ENGINE_AUTH_FAILED`` and 429 ``ENGINE_RATE_LIMITED``. A ``CVError``
    is returned unchanged.
    """
    if isinstance(error, CVError):
        return error

    message = str(error)
    if isinstance(error, (TimeoutError, FutureTimeoutError)) or "timeout" in message.lower():
        return CVError(CVErrorCode.ANALYSIS_TIMEOUT, message)

    status = getattr(error, "status_code", None)
    if status in (401, 403):
        return CVError(CVErrorCode.ENGINE_AUTH_FAILED, message)
    if status == 429:
        return CVError(CVErrorCode.ENGINE_RATE_LIMITED, message)

    return CVError(fallback, message, details={"error_type": type(error).__name__})

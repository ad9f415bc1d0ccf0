"""Custom exceptions for text acquisition."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ParseError(Exception):
    """
    Base exception for text acquisition errors.

    Attributes:
        message: Human-readable error description.
        file_path: Name of the uploaded file that caused the error.
        location: Where within the file the problem was found (page, header).
        details: Additional error details.
    """
    message: str
    file_path: Optional[str] = None
    location: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.message]
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.location:
            parts.append(f"Location: {self.location}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "file_path": self.file_path,
            "location": self.location,
            "details": self.details,
        }


@dataclass
class DocumentCorruptedError(ParseError):
    """
    Raised when an upload cannot be opened at all.

    The bytes passed validation but the container is broken, encrypted, or
    not the format its extension claims.
    """

    def get_recovery_suggestions(self) -> list[str]:
        """Return suggestions for recovering from this error."""
        suggestions = [
            "Open the file in its native application to verify it is readable",
            "Remove password protection before uploading",
            "Export the document again and retry the upload",
        ]
        if self.file_path and self.file_path.lower().endswith(".pdf"):
            suggestions.append("For scanned PDFs, try uploading the page images instead")
        return suggestions


@dataclass
class UnsupportedFormatError(ParseError):
    """Raised when the declared extension is not on the allow-list."""

    def get_supported_formats(self) -> list[str]:
        """Return list of supported formats."""
        return self.details.get("supported_formats", ["pdf", "png", "jpg", "jpeg", "docx"])


@dataclass
class OCRError(ParseError):
    """
    Raised by the OCR runner when recognition fails or times out.

    Acquirers catch this and continue with the text they already have.
    """
    timed_out: bool = False

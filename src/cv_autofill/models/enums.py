"""Enumerations for the CV Auto-Fill System."""

from enum import Enum


class FileType(Enum):
    """Upload formats accepted by the format dispatcher."""
    PDF = "pdf"
    PNG = "png"
    JPG = "jpg"
    JPEG = "jpeg"
    DOCX = "docx"

    @property
    def is_image(self) -> bool:
        return self in (FileType.PNG, FileType.JPG, FileType.JPEG)


class AcquisitionMethod(Enum):
    """How the text of a document was obtained."""
    TEXT = "text"
    OCR = "ocr"


class ConfidenceLevel(Enum):
    """Coarse trust bucket attached to every extracted value."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        """Bucket a numeric confidence in [0, 1]."""
        if score >= 0.7:
            return cls.HIGH
        if score >= 0.4:
            return cls.MEDIUM
        return cls.LOW


class JobStatus(Enum):
    """Lifecycle states of an extraction job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class DetectedType(Enum):
    """Coarse type the extraction engine assigns to an unmapped segment."""
    DATE = "date"
    SKILL = "skill"
    CREDENTIAL = "credential"
    PERSONAL = "personal"
    JOB_DETAILS = "job_details"
    EDUCATION_DETAILS = "education_details"
    OTHER = "other"


class UnmappedCategory(Enum):
    """Category of an unmapped item in the final draft."""
    CONTACT = "contact"
    DATE = "date"
    TEXT = "text"
    SKILL = "skill"
    LANGUAGE = "language"
    EDUCATION = "education"
    EXPERIENCE = "experience"
    OTHER = "other"

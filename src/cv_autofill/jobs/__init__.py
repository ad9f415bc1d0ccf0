"""Extraction job service for the CV Auto-Fill System."""

from .job_service import ExtractionJobService, SubmitRequest, SubmitResult

__all__ = ["ExtractionJobService", "SubmitRequest", "SubmitResult"]

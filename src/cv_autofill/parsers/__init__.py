"""Text acquisition layer for the CV Auto-Fill System."""

from .base import FormatDispatcher, resolve_file_type, select_acquirer
from .exceptions import (
    DocumentCorruptedError,
    OCRError,
    ParseError,
    UnsupportedFormatError,
)
from .image_parser import ImageTextAcquirer
from .ocr import OCRRunner
from .pdf_parser import PDFTextAcquirer
from .scanned import detect_if_scanned, validate_page_count
from .word_parser import WordTextAcquirer

__all__ = [
    "FormatDispatcher",
    "resolve_file_type",
    "select_acquirer",
    "DocumentCorruptedError",
    "OCRError",
    "ParseError",
    "UnsupportedFormatError",
    "ImageTextAcquirer",
    "OCRRunner",
    "PDFTextAcquirer",
    "detect_if_scanned",
    "validate_page_count",
    "WordTextAcquirer",
]

"""Format dispatcher for uploaded documents."""

import logging
from typing import Dict, List, Mapping, Optional

from ..interfaces.acquirer import ITextAcquirer
from ..models.document import AcquiredText
from ..models.enums import FileType
from .exceptions import UnsupportedFormatError
from .image_parser import ImageTextAcquirer
from .ocr import OCRRunner
from .pdf_parser import PDFTextAcquirer
from .word_parser import WordTextAcquirer


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = [t.value for t in FileType]


def normalize_extension(extension: str) -> str:
    """``".PDF"`` -> ``"pdf"``."""
    return (extension or "").strip().lower().lstrip(".")


def resolve_file_type(extension: str, file_name: Optional[str] = None) -> FileType:
    """
    Map a declared extension onto the allow-list.

    Raises:
        UnsupportedFormatError: If the extension is not allowed.
    """
    normalized = normalize_extension(extension)
    try:
        return FileType(normalized)
    except ValueError:
        raise UnsupportedFormatError(
            message=f"Unsupported file format: {extension}",
            file_path=file_name,
            location="file extension",
            details={"supported_formats": SUPPORTED_EXTENSIONS},
        )


def select_acquirer(
    file_type: FileType, acquirers: Mapping[FileType, ITextAcquirer]
) -> ITextAcquirer:
    """Pick the acquisition strategy for a file type."""
    return acquirers[file_type]


class FormatDispatcher:
    """
    Routes an uploaded byte buffer to the matching text acquirer.

    Routing has no side effects; all I/O happens inside the acquirers.
    """

    def __init__(
        self,
        ocr_runner: Optional[OCRRunner] = None,
        acquirers: Optional[Dict[FileType, ITextAcquirer]] = None,
    ):
        if acquirers is None:
            ocr_runner = ocr_runner or OCRRunner()
            image_acquirer = ImageTextAcquirer(ocr_runner)
            acquirers = {
                FileType.PDF: PDFTextAcquirer(ocr_runner),
                FileType.DOCX: WordTextAcquirer(),
                FileType.PNG: image_acquirer,
                FileType.JPG: image_acquirer,
                FileType.JPEG: image_acquirer,
            }
        self._acquirers = acquirers

    def acquire(
        self,
        data: bytes,
        extension: str,
        declared_size: Optional[int] = None,
        file_name: Optional[str] = None,
    ) -> AcquiredText:
        """
        Acquire text from an upload.

        Args:
            data: Raw file bytes.
            extension: Declared extension (with or without leading dot).
            declared_size: Size the client reported, checked against the
                buffer for diagnostics only.
            file_name: Optional name for error messages.

        Raises:
            UnsupportedFormatError: If the extension is not on the allow-list.
        """
        file_type = resolve_file_type(extension, file_name)
        if declared_size is not None and declared_size != len(data):
            logger.warning(
                f"Declared size {declared_size} differs from received {len(data)} bytes"
            )
        acquirer = select_acquirer(file_type, self._acquirers)
        return acquirer.acquire(data, file_name)

    def get_supported_formats(self) -> List[str]:
        return list(SUPPORTED_EXTENSIONS)

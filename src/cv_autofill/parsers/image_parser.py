"""Image (PNG/JPEG) text acquisition."""

import logging
from typing import Optional

from ..interfaces.acquirer import ITextAcquirer
from ..models.document import AcquiredText, DocumentRepresentation
from ..models.enums import AcquisitionMethod
from .exceptions import OCRError
from .ocr import OCRRunner


logger = logging.getLogger(__name__)


class ImageTextAcquirer(ITextAcquirer):
    """Acquirer for image uploads; always goes through OCR."""

    def __init__(self, ocr_runner: Optional[OCRRunner] = None):
        self._ocr_runner = ocr_runner or OCRRunner()

    def acquire(self, data: bytes, file_name: Optional[str] = None) -> AcquiredText:
        warnings = []
        try:
            text = self._ocr_runner.image_to_text(data, file_name)
        except OCRError as e:
            logger.warning(f"OCR failed for {file_name or 'image'}: {e.message}")
            warnings.append(f"OCR failed: {e.message}")
            text = ""

        return AcquiredText(
            text=text,
            page_count=1,
            method=AcquisitionMethod.OCR,
            representation=DocumentRepresentation.from_text(text, page_count=1),
            warnings=warnings,
        )

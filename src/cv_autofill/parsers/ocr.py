"""OCR runner built on Tesseract.

Images are decoded with Pillow, PDF pages are rasterized with pdf2image, and
recognition is done by pytesseract. The whole call is bounded by a single
deadline; exceeding it raises ``OCRError(timed_out=True)``.
"""

import io
import logging
import time
from typing import List, Optional, Tuple

import pytesseract
from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image, UnidentifiedImageError

from ..performance import timed_operation
from .exceptions import OCRError


logger = logging.getLogger(__name__)

DEFAULT_OCR_LANGUAGES = "eng+deu+fra+ita"
DEFAULT_OCR_TIMEOUT_MS = 60000
DEFAULT_PDF_DPI = 300


class OCRRunner:
    """
    Run Tesseract over images or rasterized PDF pages.

    Args:
        languages: Tesseract language string.
        timeout_ms: Total time budget for one ``image_to_text`` or
            ``pdf_to_text`` call.
        dpi: Rasterization resolution for PDF pages.
    """

    def __init__(
        self,
        languages: str = DEFAULT_OCR_LANGUAGES,
        timeout_ms: int = DEFAULT_OCR_TIMEOUT_MS,
        dpi: int = DEFAULT_PDF_DPI,
    ):
        self.languages = languages
        self.timeout_ms = timeout_ms
        self.dpi = dpi

    @timed_operation("ocr_image")
    def image_to_text(self, data: bytes, file_name: Optional[str] = None) -> str:
        """Recognize text in a PNG or JPEG upload."""
        deadline = time.monotonic() + self.timeout_ms / 1000
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise OCRError(
                message="Image could not be decoded",
                file_path=file_name,
                location="image header",
                details={"original_error": str(e)},
            )
        return self._recognize(image, deadline, file_name, page_number=1)

    @timed_operation("ocr_pdf")
    def pdf_to_text(self, data: bytes, file_name: Optional[str] = None) -> Tuple[str, int]:
        """
        Rasterize every PDF page and recognize its text.

        Returns:
            Tuple of (text with pages separated by form feeds, page count).
        """
        deadline = time.monotonic() + self.timeout_ms / 1000
        try:
            images = convert_from_bytes(
                data,
                dpi=self.dpi,
                timeout=max(1, int(self._remaining(deadline, file_name))),
            )
        except PDFPopplerTimeoutError as e:
            raise OCRError(
                message="PDF rasterization timed out",
                file_path=file_name,
                details={"original_error": str(e)},
                timed_out=True,
            )
        except (
            PDFInfoNotInstalledError,
            PDFPageCountError,
            PDFSyntaxError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as e:
            # OSError covers a missing pdftoppm binary
            raise OCRError(
                message="PDF could not be rasterized for OCR",
                file_path=file_name,
                details={"original_error": str(e)},
            )

        page_texts: List[str] = []
        for page_number, image in enumerate(images, start=1):
            page_texts.append(self._recognize(image, deadline, file_name, page_number))
        return "\f".join(page_texts), len(images)

    def _recognize(
        self,
        image: Image.Image,
        deadline: float,
        file_name: Optional[str],
        page_number: int,
    ) -> str:
        remaining = self._remaining(deadline, file_name)
        try:
            text = pytesseract.image_to_string(
                image.convert("RGB"), lang=self.languages, timeout=remaining
            )
        except RuntimeError as e:
            # pytesseract signals its own timeout with a bare RuntimeError
            timed_out = "timeout" in str(e).lower()
            raise OCRError(
                message="OCR timed out" if timed_out else "OCR failed",
                file_path=file_name,
                location=f"page {page_number}",
                details={"original_error": str(e)},
                timed_out=timed_out,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as e:
            raise OCRError(
                message="OCR failed",
                file_path=file_name,
                location=f"page {page_number}",
                details={"original_error": str(e)},
            )
        logger.debug(f"OCR page {page_number}: {len(text)} characters")
        return text.strip()

    def _remaining(self, deadline: float, file_name: Optional[str]) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise OCRError(
                message="OCR timed out",
                file_path=file_name,
                details={"timeout_ms": self.timeout_ms},
                timed_out=True,
            )
        return remaining

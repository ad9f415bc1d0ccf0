"""PDF text acquisition."""

import io
import logging
from typing import List, Optional

import pdfplumber
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..interfaces.acquirer import ITextAcquirer
from ..models.document import (
    AcquiredText,
    DocumentLine,
    DocumentPage,
    DocumentRepresentation,
    DocumentTable,
)
from ..models.enums import AcquisitionMethod
from .exceptions import DocumentCorruptedError, OCRError, ParseError
from .ocr import OCRRunner
from .scanned import detect_if_scanned


logger = logging.getLogger(__name__)


class PDFTextAcquirer(ITextAcquirer):
    """
    Acquirer for PDF uploads.

    Uses PyPDF2 to validate the container and count pages, and pdfplumber
    for line and table extraction. When the text layer looks scanned, the
    same bytes are sent through OCR; OCR failures are logged and the text
    layer is kept.
    """

    def __init__(self, ocr_runner: Optional[OCRRunner] = None):
        self._ocr_runner = ocr_runner

    def acquire(self, data: bytes, file_name: Optional[str] = None) -> AcquiredText:
        page_count = self._read_page_count(data, file_name)

        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                representation = self._build_representation(pdf, page_count)
        except Exception as e:
            raise ParseError(
                message=f"Failed to read PDF content: {str(e)}",
                file_path=file_name,
                details={"original_error": str(e)},
            )

        result = AcquiredText(
            text=representation.content,
            page_count=page_count,
            method=AcquisitionMethod.TEXT,
            representation=representation,
        )

        if detect_if_scanned(result.text):
            logger.info(
                f"Text layer of {file_name or 'PDF'} looks scanned "
                f"({len(result.text.strip())} chars), trying OCR"
            )
            self._apply_ocr_fallback(data, file_name, result)

        return result

    def _read_page_count(self, data: bytes, file_name: Optional[str]) -> int:
        """Open with PyPDF2 first for validation."""
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted and not reader.decrypt(""):
                raise DocumentCorruptedError(
                    message="PDF file is encrypted",
                    file_path=file_name,
                    location="file header",
                )
            return len(reader.pages)
        except PdfReadError as e:
            raise DocumentCorruptedError(
                message="PDF file is corrupted or encrypted",
                file_path=file_name,
                location="file header",
                details={"original_error": str(e)},
            )
        except DocumentCorruptedError:
            raise
        except Exception as e:
            raise ParseError(
                message=f"Failed to open PDF: {str(e)}",
                file_path=file_name,
                details={"original_error": str(e)},
            )

    def _build_representation(
        self, pdf: pdfplumber.PDF, page_count: int
    ) -> DocumentRepresentation:
        pages: List[DocumentPage] = []
        for page_number, page in enumerate(pdf.pages, start=1):
            lines = [
                DocumentLine(
                    text=entry["text"].strip(),
                    polygon=[
                        entry["x0"], entry["top"],
                        entry["x1"], entry["top"],
                        entry["x1"], entry["bottom"],
                        entry["x0"], entry["bottom"],
                    ],
                )
                for entry in page.extract_text_lines()
                if entry.get("text", "").strip()
            ]
            tables = [
                DocumentTable(
                    page_number=page_number,
                    rows=[[cell or "" for cell in row] for row in table],
                )
                for table in page.extract_tables()
                if table
            ]
            pages.append(DocumentPage(page_number=page_number, lines=lines, tables=tables))
        return DocumentRepresentation(pages=pages, page_count=page_count)

    def _apply_ocr_fallback(
        self, data: bytes, file_name: Optional[str], result: AcquiredText
    ) -> None:
        if self._ocr_runner is None:
            result.warnings.append("OCR fallback skipped: no OCR runner configured")
            return

        try:
            ocr_text, ocr_pages = self._ocr_runner.pdf_to_text(data, file_name)
        except OCRError as e:
            logger.warning(f"OCR fallback failed for {file_name or 'PDF'}: {e.message}")
            result.warnings.append(f"OCR fallback failed: {e.message}")
            return

        if len(ocr_text.strip()) > len(result.text.strip()):
            result.text = ocr_text
            result.method = AcquisitionMethod.OCR
            result.page_count = max(result.page_count, ocr_pages)
            result.representation = DocumentRepresentation.from_text(
                ocr_text, page_count=result.page_count
            )
            logger.info(f"OCR replaced text layer ({len(ocr_text.strip())} chars)")

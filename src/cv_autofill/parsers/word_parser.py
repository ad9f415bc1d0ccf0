"""Word document (.docx) text acquisition."""

import io
import re
from typing import List, Optional
from zipfile import BadZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from ..interfaces.acquirer import ITextAcquirer
from ..models.document import (
    AcquiredText,
    DocumentLine,
    DocumentPage,
    DocumentRepresentation,
    DocumentTable,
)
from ..models.enums import AcquisitionMethod
from .exceptions import DocumentCorruptedError, ParseError

WORDS_PER_PAGE = 500


class WordTextAcquirer(ITextAcquirer):
    """
    Acquirer for Word (.docx) uploads.

    Paragraph text and table cells are collected into a single-page
    representation; the page count is an estimate from the word count.
    """

    def acquire(self, data: bytes, file_name: Optional[str] = None) -> AcquiredText:
        try:
            doc = Document(io.BytesIO(data))
        except (BadZipFile, PackageNotFoundError) as e:
            raise DocumentCorruptedError(
                message="Document is corrupted or not a valid Word file",
                file_path=file_name,
                location="file header",
                details={"original_error": str(e)},
            )
        except Exception as e:
            raise ParseError(
                message=f"Failed to open document: {str(e)}",
                file_path=file_name,
                details={"original_error": str(e)},
            )

        lines = self._extract_lines(doc)
        tables = self._extract_tables(doc)

        # Table text is appended so that the plain text stream is complete.
        table_lines = [
            DocumentLine(text=" | ".join(c for c in row if c))
            for table in tables
            for row in table.rows
            if any(row)
        ]
        page = DocumentPage(page_number=1, lines=lines + table_lines, tables=tables)
        representation = DocumentRepresentation(pages=[page], page_count=1)
        text = representation.content

        page_count = self._estimate_page_count(text)
        representation.page_count = page_count

        return AcquiredText(
            text=text,
            page_count=page_count,
            method=AcquisitionMethod.TEXT,
            representation=representation,
        )

    def _extract_lines(self, doc: Document) -> List[DocumentLine]:
        """Split paragraphs on soft line breaks; drop empty ones."""
        lines = []
        for para in doc.paragraphs:
            for part in para.text.split("\n"):
                if part.strip():
                    lines.append(DocumentLine(text=part.strip()))
        return lines

    def _extract_tables(self, doc: Document) -> List[DocumentTable]:
        tables = []
        for table in doc.tables:
            rows = []
            for row in table.rows:
                cells = []
                previous = None
                for cell in row.cells:
                    # Merged cells are reported once per grid column.
                    if previous is not None and cell._tc is previous:
                        continue
                    previous = cell._tc
                    cells.append(cell.text.strip())
                rows.append(cells)
            if rows:
                tables.append(DocumentTable(page_number=1, rows=rows))
        return tables

    def _estimate_page_count(self, text: str) -> int:
        """Rough estimate: ~500 words per page."""
        word_count = len(re.findall(r"\w+", text))
        return max(1, word_count // WORDS_PER_PAGE + 1)

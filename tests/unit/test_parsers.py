"""Unit tests for the text acquisition layer."""

import io
from unittest.mock import MagicMock, patch

import pytest
from docx import Document
from PIL import Image

from cv_autofill.models.document import AcquiredText, DocumentRepresentation
from cv_autofill.models.enums import AcquisitionMethod, FileType
from cv_autofill.parsers import (
    DocumentCorruptedError,
    FormatDispatcher,
    ImageTextAcquirer,
    OCRError,
    PDFTextAcquirer,
    UnsupportedFormatError,
    WordTextAcquirer,
    detect_if_scanned,
    resolve_file_type,
    validate_page_count,
)
from cv_autofill.parsers.ocr import OCRRunner


def _docx_bytes(paragraphs, table_rows=None) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if table_rows:
        table = doc.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, value in enumerate(row):
                table.cell(r, c).text = value
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TestScannedHeuristic:
    """Tests for detect_if_scanned and validate_page_count."""

    def test_short_text_is_scanned(self):
        """Test that a near-empty text layer is treated as a scan."""
        assert detect_if_scanned("  abc  ") is True

    def test_garbled_text_is_scanned(self):
        """Test that low word density marks text as garbled."""
        garbled = "1 2 3 4 5 6 7 8 9 0 ; ; ; . . . , , , " * 10
        assert detect_if_scanned(garbled) is True

    def test_real_text_is_not_scanned(self):
        """Test that regular prose passes the heuristic."""
        text = (
            "Max Muster ist Softwareentwickler in Zürich. Er arbeitet seit 2018 "
            "mit Python, Kubernetes und verteilten Systemen. Sprachen: Deutsch, "
            "Englisch, Französisch. Ausbildung an der ETH Zürich."
        )
        assert detect_if_scanned(text) is False

    @pytest.mark.parametrize("pages, expected", [(0, False), (1, True), (20, True), (21, False)])
    def test_page_count_policy(self, pages, expected):
        """Test the 1..20 page policy."""
        assert validate_page_count(pages) is expected

    def test_page_count_custom_limit(self):
        """Test that the page limit is configurable."""
        assert validate_page_count(5, max_pages=4) is False


class TestFormatDispatcher:
    """Tests for FormatDispatcher routing."""

    def test_resolve_file_type_normalizes_extension(self):
        """Test that extensions are case- and dot-insensitive."""
        assert resolve_file_type(".PDF") == FileType.PDF
        assert resolve_file_type("jpeg") == FileType.JPEG

    def test_unsupported_extension_raises(self):
        """Test that unknown extensions raise UnsupportedFormatError."""
        dispatcher = FormatDispatcher(acquirers={})
        with pytest.raises(UnsupportedFormatError) as exc_info:
            dispatcher.acquire(b"data", "exe", file_name="virus.exe")
        assert "pdf" in exc_info.value.get_supported_formats()

    def test_routes_to_matching_acquirer(self):
        """Test that the dispatcher delegates to the acquirer for the file type."""
        expected = AcquiredText(text="hello world text", page_count=1, method=AcquisitionMethod.TEXT)
        pdf_acquirer = MagicMock()
        pdf_acquirer.acquire.return_value = expected
        dispatcher = FormatDispatcher(acquirers={FileType.PDF: pdf_acquirer})

        result = dispatcher.acquire(b"%PDF-1.4", "pdf", file_name="cv.pdf")

        assert result is expected
        pdf_acquirer.acquire.assert_called_once_with(b"%PDF-1.4", "cv.pdf")

    def test_supported_formats(self):
        """Test the allow-list."""
        dispatcher = FormatDispatcher(acquirers={})
        assert set(dispatcher.get_supported_formats()) == {"pdf", "png", "jpg", "jpeg", "docx"}


class TestWordTextAcquirer:
    """Tests for WordTextAcquirer."""

    def test_extracts_paragraphs_and_tables(self):
        """Test that paragraphs and table rows end up in the text."""
        data = _docx_bytes(
            ["Anna Beispiel", "anna@example.ch"],
            table_rows=[["Sprache", "Niveau"], ["Deutsch", "Muttersprache"]],
        )

        result = WordTextAcquirer().acquire(data, "cv.docx")

        assert "Anna Beispiel" in result.text
        assert "Deutsch | Muttersprache" in result.text
        assert result.method == AcquisitionMethod.TEXT
        assert result.page_count == 1
        assert len(result.representation.tables) == 1

    def test_corrupted_document_raises(self):
        """Test that non-zip bytes raise DocumentCorruptedError."""
        with pytest.raises(DocumentCorruptedError):
            WordTextAcquirer().acquire(b"not a docx", "broken.docx")


class TestImageTextAcquirer:
    """Tests for ImageTextAcquirer with a mocked OCR runner."""

    def test_ocr_text_is_returned(self):
        """Test that OCR output becomes the acquired text."""
        runner = MagicMock()
        runner.image_to_text.return_value = "Max Muster\nmax@example.ch"

        result = ImageTextAcquirer(runner).acquire(b"\x89PNG", "scan.png")

        assert result.method == AcquisitionMethod.OCR
        assert result.page_count == 1
        assert result.text.startswith("Max Muster")
        assert result.warnings == []

    def test_ocr_failure_yields_empty_text(self):
        """Test that OCR errors are swallowed into a warning."""
        runner = MagicMock()
        runner.image_to_text.side_effect = OCRError(message="OCR timed out", timed_out=True)

        result = ImageTextAcquirer(runner).acquire(b"\x89PNG", "scan.png")

        assert result.text == ""
        assert result.is_empty
        assert result.warnings == ["OCR failed: OCR timed out"]


class TestPDFTextAcquirer:
    """Tests for PDFTextAcquirer."""

    def test_corrupted_pdf_raises(self):
        """Test that garbage bytes are reported as a corrupted document."""
        with pytest.raises(DocumentCorruptedError):
            PDFTextAcquirer().acquire(b"%PDF-1.4 garbage without xref", "cv.pdf")

    def test_ocr_fallback_replaces_short_text_layer(self):
        """Test that a longer OCR result replaces a scanned text layer."""
        runner = MagicMock()
        runner.pdf_to_text.return_value = ("Erkannter Text " * 20, 2)
        acquirer = PDFTextAcquirer(runner)
        result = AcquiredText(text="", page_count=1, method=AcquisitionMethod.TEXT)

        acquirer._apply_ocr_fallback(b"%PDF", "scan.pdf", result)

        assert result.method == AcquisitionMethod.OCR
        assert result.page_count == 2
        assert result.text.startswith("Erkannter Text")

    def test_ocr_fallback_failure_keeps_text_layer(self):
        """Test that OCR failure keeps the existing text and adds a warning."""
        runner = MagicMock()
        runner.pdf_to_text.side_effect = OCRError(message="OCR failed")
        acquirer = PDFTextAcquirer(runner)
        result = AcquiredText(text="short", page_count=1, method=AcquisitionMethod.TEXT)

        acquirer._apply_ocr_fallback(b"%PDF", "scan.pdf", result)

        assert result.text == "short"
        assert result.method == AcquisitionMethod.TEXT
        assert result.warnings == ["OCR fallback failed: OCR failed"]

    def test_ocr_fallback_without_runner(self):
        """Test that a missing OCR runner is reported as a warning."""
        result = AcquiredText(text="", page_count=1, method=AcquisitionMethod.TEXT)

        PDFTextAcquirer()._apply_ocr_fallback(b"%PDF", "scan.pdf", result)

        assert len(result.warnings) == 1


class TestOCRRunner:
    """Tests for OCRRunner error mapping."""

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError("pdftoppm"),
            Image.DecompressionBombError("page too large"),
        ],
    )
    def test_rasterization_errors_become_ocr_errors(self, error):
        """Test that poppler and Pillow failures surface as OCRError."""
        with patch("cv_autofill.parsers.ocr.convert_from_bytes", side_effect=error):
            with pytest.raises(OCRError) as exc_info:
                OCRRunner().pdf_to_text(b"%PDF-1.4", "scan.pdf")

        assert exc_info.value.message == "PDF could not be rasterized for OCR"

    def test_missing_poppler_is_swallowed_by_fallback(self):
        """Test that the PDF fallback keeps the text layer when poppler is missing."""
        acquirer = PDFTextAcquirer(OCRRunner())
        result = AcquiredText(text="short", page_count=1, method=AcquisitionMethod.TEXT)

        with patch("cv_autofill.parsers.ocr.convert_from_bytes", side_effect=FileNotFoundError("pdftoppm")):
            acquirer._apply_ocr_fallback(b"%PDF-1.4", "scan.pdf", result)

        assert result.text == "short"
        assert result.warnings == ["OCR fallback failed: PDF could not be rasterized for OCR"]


class TestDocumentRepresentation:
    """Tests for DocumentRepresentation helpers."""

    def test_from_text_splits_on_form_feed(self):
        """Test that form feeds become page boundaries."""
        rep = DocumentRepresentation.from_text("Seite eins\n\nZeile\fSeite zwei", page_count=1)

        assert rep.page_count == 2
        assert [p.page_number for p in rep.pages] == [1, 2]
        assert [line.text for _, _, line in rep.iter_lines()] == ["Seite eins", "Zeile", "Seite zwei"]

    def test_is_empty_threshold(self):
        """Test that text under ten characters counts as empty."""
        assert AcquiredText(text="  short  ", page_count=1, method=AcquisitionMethod.OCR).is_empty
        assert not AcquiredText(text="long enough text", page_count=1, method=AcquisitionMethod.OCR).is_empty

"""Vendor-neutral document representation and acquisition result."""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .enums import AcquisitionMethod

# Acquired text shorter than this (after strip) is treated as empty.
MIN_TEXT_LENGTH = 10


@dataclass
class DocumentLine:
    """A single line of text on a page."""
    text: str
    confidence: float = 1.0
    # Bounding polygon as flat [x0, y0, x1, y1, ...] in page units.
    polygon: Optional[List[float]] = None


@dataclass
class DocumentTable:
    """
    A 2-D grid of cell contents found on a page.

    Rows may be ragged; missing cells are represented by empty strings.
    """
    page_number: int
    rows: List[List[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def to_markdown(self) -> str:
        """Render the table as a Markdown grid."""
        if not self.rows:
            return ""
        width = self.column_count
        padded = [list(r) + [""] * (width - len(r)) for r in self.rows]
        lines = ["| " + " | ".join(c.replace("\n", " ").strip() for c in padded[0]) + " |"]
        lines.append("|" + "---|" * width)
        for row in padded[1:]:
            lines.append("| " + " | ".join(c.replace("\n", " ").strip() for c in row) + " |")
        return "\n".join(lines)


@dataclass
class DocumentPage:
    """An ordered page with its lines and tables."""
    page_number: int
    lines: List[DocumentLine] = field(default_factory=list)
    tables: List[DocumentTable] = field(default_factory=list)


@dataclass
class DocumentRepresentation:
    """
    Vendor-neutral view of a document.

    Produced once per job by the acquisition layer and consumed once by the
    packer; it is not persisted beyond the job's result.
    """
    pages: List[DocumentPage] = field(default_factory=list)
    page_count: int = 0
    detected_languages: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.page_count:
            self.page_count = len(self.pages)

    @property
    def content(self) -> str:
        """Full text, pages separated by a blank line."""
        return "\n\n".join(
            "\n".join(line.text for line in page.lines) for page in self.pages
        )

    def iter_lines(self) -> Iterator[Tuple[int, int, DocumentLine]]:
        """Yield (page_number, line_index, line) in reading order."""
        for page in self.pages:
            for index, line in enumerate(page.lines):
                yield page.page_number, index, line

    @property
    def tables(self) -> List[DocumentTable]:
        return [t for page in self.pages for t in page.tables]

    @classmethod
    def from_text(cls, text: str, page_count: int = 1) -> "DocumentRepresentation":
        """
        Build a representation from plain text.

        Form feeds or blank-line-separated page blocks are not reliable page
        markers, so all lines land on page 1 unless the text contains form
        feed characters.
        """
        chunks = text.split("\f") if "\f" in text else [text]
        pages = []
        for number, chunk in enumerate(chunks, start=1):
            lines = [DocumentLine(text=l.strip()) for l in chunk.splitlines() if l.strip()]
            pages.append(DocumentPage(page_number=number, lines=lines))
        return cls(pages=pages, page_count=max(page_count, len(pages)))


@dataclass
class AcquiredText:
    """Contract returned by every acquisition path."""
    text: str
    page_count: int
    method: AcquisitionMethod
    representation: Optional[DocumentRepresentation] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.text.strip()) < MIN_TEXT_LENGTH

    def get_representation(self) -> DocumentRepresentation:
        """Return the structured representation, deriving it from text if absent."""
        if self.representation is None:
            self.representation = DocumentRepresentation.from_text(
                self.text, page_count=self.page_count
            )
        return self.representation

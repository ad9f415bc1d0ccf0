"""Input packing for extraction engines.

Turns acquired text or a document representation into a bounded,
line-addressed ``PackedInput``: a header block, contact lines, key/value
pairs and named sections, each line carrying a stable ``p{page}_l{index}``
identifier that engines cite as evidence.
"""

import json
import logging
import math
from typing import List, Optional, Tuple

from ..models.document import DocumentRepresentation
from ..models.packed import PackedInput, PackedKeyValue, PackedLine, PackedSection
from .field_patterns import (
    detect_section,
    is_contact_line,
    parse_key_value,
    section_line_budget,
)


logger = logging.getLogger(__name__)

MAX_HEADER_LINES = 80
TEXT_HEADER_LINES = 50
MAX_CONTACT_LINES = 50
MAX_KEY_VALUE_PAIRS = 60
MAX_SECTION_LINES = 500
MAX_TOKENS = 16000
TOKEN_OVERHEAD = 500
CHARS_PER_TOKEN = 3.5
DEFAULT_SECTION = "content"


def estimate_tokens(packed: PackedInput) -> int:
    """Rough token count of the serialized input plus prompt overhead."""
    serialized = json.dumps(packed.to_dict(), ensure_ascii=False)
    return math.ceil(len(serialized) / CHARS_PER_TOKEN) + TOKEN_OVERHEAD


def _line_id(page: int, index: int) -> str:
    return f"p{page}_l{index}"


def _collect_lines(representation: DocumentRepresentation) -> List[PackedLine]:
    lines = []
    for page_number, index, line in representation.iter_lines():
        text = line.text.strip()
        if not text:
            continue
        lines.append(
            PackedLine(
                line_id=_line_id(page_number, index),
                page=page_number,
                text=text,
                confidence=line.confidence if line.confidence < 1.0 else None,
            )
        )
    return lines


def _split_sections(lines: List[PackedLine]) -> Tuple[List[PackedSection], Optional[int]]:
    """
    Group lines under the nearest preceding section header.

    Lines before the first header land in the ``content`` section. Returns
    the sections and the position of the first header (None without headers).
    """
    sections: List[PackedSection] = []
    current = PackedSection(name=DEFAULT_SECTION)
    first_header: Optional[int] = None
    total = 0

    for position, line in enumerate(lines):
        name = detect_section(line.text)
        if name is not None:
            if first_header is None:
                first_header = position
            if current.lines:
                sections.append(current)
            existing = next((s for s in sections if s.name == name), None)
            if existing is not None:
                sections.remove(existing)
                current = existing
            else:
                current = PackedSection(name=name)
            continue
        if total >= MAX_SECTION_LINES:
            continue
        current.lines.append(line)
        total += 1

    if current.lines:
        sections.append(current)
    return sections, first_header


def _build(
    lines: List[PackedLine],
    header_limit: int,
    tables: List[str],
    total_pages: int,
    detected_languages: List[str],
    header_until_first_section: bool,
) -> PackedInput:
    sections, first_header = _split_sections(lines)

    if header_until_first_section and first_header is not None:
        header_lines = lines[:min(first_header, header_limit)] or lines[:header_limit]
    else:
        header_lines = lines[:header_limit]

    contact_lines = [l for l in lines if is_contact_line(l.text)][:MAX_CONTACT_LINES]

    kvp: List[PackedKeyValue] = []
    for line in lines:
        if len(kvp) >= MAX_KEY_VALUE_PAIRS:
            break
        pair = parse_key_value(line.text)
        if pair:
            kvp.append(
                PackedKeyValue(
                    key=pair[0],
                    value=pair[1],
                    page=line.page,
                    line_id=line.line_id,
                    confidence=line.confidence if line.confidence is not None else 1.0,
                )
            )

    packed = PackedInput(
        header_lines=header_lines,
        contact_lines=contact_lines,
        kvp=kvp,
        sections=sections,
        tables=tables,
        detected_languages=list(detected_languages),
        total_pages=max(total_pages, 1),
    )
    packed.estimated_tokens = estimate_tokens(packed)
    return packed


def pack_text(raw_text: str, page_count: int = 1) -> PackedInput:
    """
    Pack plain acquired text.

    The header is the first lines of the document; the whole text is
    sectioned by recognized headers.
    """
    representation = DocumentRepresentation.from_text(raw_text or "", page_count=page_count)
    lines = _collect_lines(representation)
    packed = _build(
        lines,
        header_limit=TEXT_HEADER_LINES,
        tables=[],
        total_pages=representation.page_count,
        detected_languages=[],
        header_until_first_section=False,
    )
    logger.debug(
        f"Packed {len(lines)} lines into {len(packed.sections)} sections "
        f"(~{packed.estimated_tokens} tokens)"
    )
    return packed


def pack_document(representation: DocumentRepresentation) -> PackedInput:
    """
    Pack a structured document representation.

    Tables are rendered as markdown. When the estimate exceeds the token cap
    the sections are trimmed to their line budgets and, if still too large,
    tables are dropped.
    """
    lines = _collect_lines(representation)
    tables = [t.to_markdown() for t in representation.tables if t.row_count]
    packed = _build(
        lines,
        header_limit=MAX_HEADER_LINES,
        tables=tables,
        total_pages=representation.page_count,
        detected_languages=representation.detected_languages,
        header_until_first_section=True,
    )

    if packed.estimated_tokens > MAX_TOKENS:
        logger.info(
            f"Packed input estimated at {packed.estimated_tokens} tokens; trimming sections"
        )
        for section in packed.sections:
            section.lines = section.lines[:section_line_budget(section.name)]
        packed.estimated_tokens = estimate_tokens(packed)

    if packed.estimated_tokens > MAX_TOKENS and packed.tables:
        packed.tables = []
        packed.estimated_tokens = estimate_tokens(packed)

    if packed.estimated_tokens > MAX_TOKENS:
        logger.warning(
            f"Packed input still exceeds {MAX_TOKENS} tokens ({packed.estimated_tokens})"
        )
    return packed

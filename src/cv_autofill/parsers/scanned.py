"""Heuristics applied to an acquired text layer."""

import re

# A text layer shorter than this is assumed to be a scan.
MIN_TEXT_LAYER_LENGTH = 100
# Ratio of word matches to total characters below which text is garbled.
MIN_WORD_DENSITY = 0.08
# Distinct lower-cased characters below which text is garbled.
MIN_DISTINCT_CHARACTERS = 20
DEFAULT_MAX_PAGE_COUNT = 20

_WORD_PATTERN = re.compile(r"\b[a-zA-ZäöüßÄÖÜ]{2,}\b")


def detect_if_scanned(text: str) -> bool:
    """
    Decide whether a PDF text layer is empty or garbled.

    Each of the three checks triggers independently: short total length,
    low word density, or low character diversity.
    """
    if len(text.strip()) < MIN_TEXT_LAYER_LENGTH:
        return True

    words = _WORD_PATTERN.findall(text)
    density = len(words) / max(len(text), 1)
    if density < MIN_WORD_DENSITY:
        return True

    if len(set(text.lower())) < MIN_DISTINCT_CHARACTERS:
        return True

    return False


def validate_page_count(page_count: int, max_pages: int = DEFAULT_MAX_PAGE_COUNT) -> bool:
    """Policy check: a document must have between 1 and ``max_pages`` pages."""
    return 0 < page_count <= max_pages

"""Draft building (field mapping) for the CV Auto-Fill System."""

from .draft_builder import (
    CATEGORY_MAP,
    build_draft,
    convert_unmapped_segment,
    empty_draft,
    split_candidate_fields,
)

__all__ = [
    "CATEGORY_MAP",
    "build_draft",
    "convert_unmapped_segment",
    "empty_draft",
    "split_candidate_fields",
]

"""Value normalizers used by extraction and draft building."""

from .dates import DateParts, decompose_date, extract_month, extract_year, is_present
from .language import (
    CEFR_LEVELS,
    NATIVE_LEVEL,
    normalize_language_level,
    normalize_languages,
)
from .phone import normalize_phone, to_e164
from .skills import match_skills

__all__ = [
    "DateParts",
    "decompose_date",
    "extract_month",
    "extract_year",
    "is_present",
    "CEFR_LEVELS",
    "NATIVE_LEVEL",
    "normalize_language_level",
    "normalize_languages",
    "normalize_phone",
    "to_e164",
    "match_skills",
]

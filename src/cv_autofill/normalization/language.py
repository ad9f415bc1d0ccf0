"""Language proficiency normalization."""

import re
from typing import Any, Dict, Iterable, List, Optional

NATIVE_LEVEL = "Muttersprache"
DEFAULT_LEVEL = "B1"
CEFR_LEVELS = ("A1", "A2", "B1", "B2", "C1", "C2", NATIVE_LEVEL)

_NATIVE_KEYWORDS = ("MUTTER", "NATIVE", "FIRST", "LANGUE MATERNELLE", "MADRELINGUA")
_CEFR_PATTERN = re.compile(r"[ABC][12]")
_FLUENT_KEYWORDS = ("FLUENT", "FLIESSEND", "VERHANDLUNGSSICHER", "COURANT")
_GOOD_KEYWORDS = ("GOOD", "GUT")
_BASIC_KEYWORDS = ("BASIC", "GRUND")


def normalize_language_level(level: Optional[str]) -> str:
    """
    Map a free-text proficiency onto a CEFR code or ``Muttersprache``.

    Priority: native keywords, then an explicit CEFR code, then the fluent,
    good and basic keyword buckets, else ``B1``. The order matters when a
    code is embedded in a longer description ("fliessend (C2)" -> "C2").
    """
    if not level or not level.strip():
        return DEFAULT_LEVEL

    normalized = level.strip().upper()

    if any(keyword in normalized for keyword in _NATIVE_KEYWORDS):
        return NATIVE_LEVEL

    match = _CEFR_PATTERN.search(normalized)
    if match:
        return match.group(0)

    if any(keyword in normalized for keyword in _FLUENT_KEYWORDS):
        return "C1"
    if any(keyword in normalized for keyword in _GOOD_KEYWORDS):
        return "B2"
    if any(keyword in normalized for keyword in _BASIC_KEYWORDS):
        return "A2"

    return DEFAULT_LEVEL


def normalize_languages(entries: Iterable[Any]) -> List[Dict[str, str]]:
    """
    Normalize language entries to ``{"language", "level"}`` dicts.

    Accepts objects with ``name``/``level`` attributes or dicts. Entries
    without a name are dropped; the first occurrence of a language wins.
    """
    result: List[Dict[str, str]] = []
    seen = set()
    for entry in entries:
        if isinstance(entry, dict):
            name, level = entry.get("name") or entry.get("language"), entry.get("level")
        else:
            name, level = getattr(entry, "name", None), getattr(entry, "level", None)
        if not name or not str(name).strip():
            continue
        key = str(name).strip().lower()
        if key in seen:
            continue
        seen.add(key)
        result.append({"language": str(name).strip(), "level": normalize_language_level(level)})
    return result

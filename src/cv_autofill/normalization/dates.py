"""Date decomposition for résumé date expressions."""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

PRESENT_MARKERS = ("present", "heute", "aktuell", "current")

MONTH_NAMES = {
    "jan": "01", "januar": "01", "january": "01", "jän": "01", "jänner": "01",
    "feb": "02", "februar": "02", "february": "02",
    "mar": "03", "mär": "03", "märz": "03", "maerz": "03", "march": "03",
    "apr": "04", "april": "04",
    "mai": "05", "may": "05",
    "jun": "06", "juni": "06", "june": "06",
    "jul": "07", "juli": "07", "july": "07",
    "aug": "08", "august": "08",
    "sep": "09", "sept": "09", "september": "09",
    "okt": "10", "oct": "10", "oktober": "10", "october": "10",
    "nov": "11", "november": "11",
    "dez": "12", "dec": "12", "dezember": "12", "december": "12",
}

_ISO_MONTH = re.compile(r"\b(?:19|20)\d{2}[-/.](\d{1,2})\b")
_LEADING_MONTH = re.compile(r"(?<!\d)(\d{1,2})[/\-.]")
_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")
_WORD = re.compile(r"[a-zäöü]+")


@dataclass(frozen=True)
class DateParts:
    month: str
    year: str


def is_present(expression: Optional[str]) -> bool:
    """True for open-ended expressions such as "present" or "heute"."""
    if not expression:
        return False
    lowered = expression.lower()
    return any(marker in lowered for marker in PRESENT_MARKERS)


def extract_month(expression: Optional[str]) -> str:
    """
    Two-digit month from a date expression, or "".

    Numeric forms ("03.2021", "3/2021", "2021-03") win over month names
    ("März 2021", "Mar 2021").
    """
    if not expression:
        return ""

    iso = _ISO_MONTH.search(expression)
    if iso and 1 <= int(iso.group(1)) <= 12:
        return iso.group(1).zfill(2)

    for match in _LEADING_MONTH.finditer(expression):
        value = int(match.group(1))
        if 1 <= value <= 12:
            return match.group(1).zfill(2)

    for word in _WORD.findall(expression.lower()):
        month = MONTH_NAMES.get(word)
        if month:
            return month

    return ""


def extract_year(expression: Optional[str], today: Optional[date] = None) -> str:
    """Four-digit year in [1900, 2099]; the current year for present markers; else ""."""
    if not expression:
        return ""
    if is_present(expression):
        return str((today or date.today()).year)
    match = _YEAR.search(expression)
    return match.group(1) if match else ""


def decompose_date(expression: Optional[str], today: Optional[date] = None) -> DateParts:
    """
    Split a free-text date into month and year.

    "Present"/"heute" leaves the month empty. Never raises.
    """
    if is_present(expression):
        return DateParts(month="", year=extract_year(expression, today))
    return DateParts(month=extract_month(expression), year=extract_year(expression, today))

"""Phone number normalization."""

import logging
from typing import Iterable, Optional

import phonenumbers


logger = logging.getLogger(__name__)

# Regions tried in order when a number carries no country prefix.
DEFAULT_REGIONS = ("CH", "DE", "AT", "FR", "IT", "GB", "US")


def to_e164(raw: Optional[str], regions: Iterable[str] = DEFAULT_REGIONS) -> Optional[str]:
    """E.164 form of the first region that validates the number, else None."""
    if not raw or not raw.strip():
        return None
    for region in regions:
        try:
            parsed = phonenumbers.parse(raw.strip(), region)
        except phonenumbers.NumberParseException:
            continue
        if phonenumbers.is_valid_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    return None


def normalize_phone(raw: Optional[str], regions: Iterable[str] = DEFAULT_REGIONS) -> Optional[str]:
    """
    Return the number in E.164 form, or the stripped input when no region parses it.

    Returns None for empty input.
    """
    if not raw or not raw.strip():
        return None
    normalized = to_e164(raw, regions)
    if normalized is None:
        logger.debug("Phone number could not be validated; keeping raw value")
        return raw.strip()
    return normalized

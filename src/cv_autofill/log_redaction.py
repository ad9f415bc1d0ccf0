"""PII redaction for log records."""

import logging
import re
from typing import Any, List, Optional, Pattern, Tuple


PII_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
    (re.compile(r"\b[A-Z]{2}\d{2}(?:\s?[A-Z0-9]{4}){2,7}(?:\s?[A-Z0-9]{1,4})?\b"), "[IBAN]"),
    (re.compile(r"\b756\.\d{4}\.\d{4}\.\d{2}\b"), "[AHV]"),
    (re.compile(r"(?<![\w.])\+?\(?\d{1,4}\)?(?:[\s./-]?\d{2,4}){2,5}(?![\w])"), "[PHONE]"),
]


def redact(text: str) -> str:
    for pattern, replacement in PII_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _redact_arg(value: Any) -> Any:
    if isinstance(value, str):
        return redact(value)
    return value


class PIIRedactionFilter(logging.Filter):
    """
    Masks e-mail addresses, IBANs, Swiss AHV numbers and phone numbers.

    String arguments are redacted before formatting and the message itself
    after, so both ``logger.info(f"...")`` and ``%s`` style calls are covered.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(a) for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: _redact_arg(v) for k, v in record.args.items()}
        return True


def configure_logging(level: int = logging.INFO, stream: Optional[Any] = None) -> logging.Logger:
    """Attach a redacting stream handler to the ``cv_autofill`` logger."""
    package_logger = logging.getLogger("cv_autofill")
    package_logger.setLevel(level)

    for handler in package_logger.handlers:
        if any(isinstance(f, PIIRedactionFilter) for f in handler.filters):
            return package_logger

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    handler.addFilter(PIIRedactionFilter())
    package_logger.addHandler(handler)
    return package_logger

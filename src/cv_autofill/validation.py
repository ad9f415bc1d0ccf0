"""Upload validation: size, declared type, magic bytes and file names."""

import base64
import binascii
import re
import time
from typing import Dict, List, Optional, Tuple

from .errors import CVError, CVErrorCode


PDF_MIME = "application/pdf"
PNG_MIME = "image/png"
JPEG_MIME = "image/jpeg"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

EXTENSION_TO_MIME: Dict[str, str] = {
    "pdf": PDF_MIME,
    "png": PNG_MIME,
    "jpg": JPEG_MIME,
    "jpeg": JPEG_MIME,
    "docx": DOCX_MIME,
}

# (offset, signature) per MIME type
FILE_SIGNATURES: Dict[str, List[Tuple[int, bytes]]] = {
    PDF_MIME: [(0, b"%PDF")],
    PNG_MIME: [(0, b"\x89PNG\r\n\x1a\n")],
    JPEG_MIME: [
        (0, b"\xff\xd8\xff\xe0"),
        (0, b"\xff\xd8\xff\xe1"),
        (0, b"\xff\xd8\xff\xe2"),
        (0, b"\xff\xd8\xff\xe3"),
        (0, b"\xff\xd8\xff\xe8"),
        (0, b"\xff\xd8\xff\xdb"),
    ],
    DOCX_MIME: [(0, b"PK\x03\x04")],
}

MAX_FILENAME_LENGTH = 255

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]*;base64,", re.IGNORECASE)


def validate_file_size(size_bytes: int, max_size_mb: int) -> None:
    """
    Raises:
        CVError: FILE_TOO_LARGE if ``size_bytes`` exceeds the limit.
    """
    max_bytes = max_size_mb * 1024 * 1024
    if size_bytes > max_bytes:
        raise CVError(
            CVErrorCode.FILE_TOO_LARGE,
            f"File size {size_bytes / 1024 / 1024:.2f}MB exceeds maximum {max_size_mb}MB",
            details={"size_bytes": size_bytes, "max_size_mb": max_size_mb},
        )


def get_mime_type(extension: str) -> Optional[str]:
    return EXTENSION_TO_MIME.get((extension or "").strip().lower().lstrip("."))


def resolve_mime_type(extension: str) -> str:
    """
    Raises:
        CVError: FILE_INVALID_TYPE for an extension outside the allow-list.
    """
    mime_type = get_mime_type(extension)
    if mime_type is None:
        raise CVError(CVErrorCode.FILE_INVALID_TYPE, f"Unsupported extension: {extension}")
    return mime_type


def matches_signature(data: bytes, mime_type: str) -> bool:
    return any(
        data[offset:offset + len(signature)] == signature
        for offset, signature in FILE_SIGNATURES.get(mime_type, [])
    )


def validate_magic_bytes(data: bytes, mime_type: str) -> None:
    """
    Raises:
        CVError: FILE_INVALID_TYPE for an unknown MIME type,
            FILE_MAGIC_MISMATCH when the content does not match it.
    """
    if mime_type not in FILE_SIGNATURES:
        raise CVError(CVErrorCode.FILE_INVALID_TYPE, f"Unsupported MIME type: {mime_type}")
    if not matches_signature(data, mime_type):
        raise CVError(
            CVErrorCode.FILE_MAGIC_MISMATCH,
            "File content does not match declared type",
            details={"declared": mime_type},
        )


def detect_mime_type(data: bytes) -> Optional[str]:
    """MIME type recognised from the leading bytes, or None."""
    for mime_type in FILE_SIGNATURES:
        if matches_signature(data, mime_type):
            return mime_type
    return None


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client file name to ``[A-Za-z0-9._-]``.

    Runs of underscores collapse, leading dots are removed and the result
    is capped at 255 characters. An empty result becomes ``file_<ms>``.
    """
    sanitized = re.sub(r"[^a-zA-Z0-9._-]", "_", filename or "")
    sanitized = re.sub(r"_{2,}", "_", sanitized)
    sanitized = sanitized.lstrip(".")[:MAX_FILENAME_LENGTH]
    if not sanitized or sanitized == "_":
        return f"file_{int(time.time() * 1000)}"
    return sanitized


def decode_base64_payload(payload: str) -> bytes:
    """
    Decode a base64 upload, tolerating a ``data:<mime>;base64,`` prefix.

    Raises:
        CVError: INVALID_PAYLOAD if the payload is empty or not base64.
    """
    if not payload:
        raise CVError(CVErrorCode.INVALID_PAYLOAD, "Empty file payload")
    cleaned = _DATA_URL_PREFIX.sub("", payload.strip())
    cleaned = re.sub(r"\s+", "", cleaned)
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CVError(CVErrorCode.INVALID_PAYLOAD, f"Invalid base64 payload: {e}")
    if not data:
        raise CVError(CVErrorCode.INVALID_PAYLOAD, "Empty file payload")
    return data

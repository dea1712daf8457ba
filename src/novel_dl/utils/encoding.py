"""Encoding detection for fetched pages."""

from typing import Optional

import chardet

# Tried in order when the detected/declared encoding fails.
FALLBACK_ENCODINGS = ["utf-8", "cp1252", "latin-1"]


def detect_encoding(content: bytes) -> str:
    """Detect the encoding of byte content.

    Args:
        content: Raw bytes content

    Returns:
        Detected encoding name, ``utf-8`` when detection is inconclusive
    """
    result = chardet.detect(content)
    encoding = result.get("encoding") or "utf-8"

    # Pure ASCII pages are valid UTF-8; prefer the wider codec
    if encoding.lower() == "ascii":
        return "utf-8"

    return encoding


def decode_content(content: bytes, encoding: Optional[str] = None) -> str:
    """Decode byte content to string.

    Args:
        content: Raw bytes content
        encoding: Optional explicit encoding, auto-detect if None

    Returns:
        Decoded string content
    """
    if encoding is None:
        encoding = detect_encoding(content)

    try:
        return content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        pass

    for fallback in FALLBACK_ENCODINGS:
        if fallback.lower() != encoding.lower():
            try:
                return content.decode(fallback)
            except (UnicodeDecodeError, LookupError):
                continue

    return content.decode("utf-8", errors="ignore")

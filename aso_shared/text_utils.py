"""
Text processing utilities for ASO Report Generator.

All text pulled out of store HTML passes through these helpers before it
reaches the report prompt:
1. Tags are stripped and surrounding whitespace trimmed
2. Descriptions are capped at 1000 characters to bound prompt size
3. Numbers are parsed leniently (missing or malformed -> None)
"""

import re
from typing import Optional

# Global description limit for extracted store listings
DESCRIPTION_MAX_LENGTH = 1000
TRUNCATION_MARKER = '...'

_TAG_RE = re.compile(r'<[^>]+>')


def strip_tags(text: str) -> str:
    """
    Remove HTML tags and trim surrounding whitespace.

    Examples:
        >>> strip_tags("<b>Foo</b> Bar ")
        'Foo Bar'
    """
    if not text:
        return ''
    return _TAG_RE.sub('', text).strip()


def clean_text(text: Optional[str]) -> Optional[str]:
    """Strip tags and return None for empty results."""
    cleaned = strip_tags(text or '')
    return cleaned or None


def truncate_description(text: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """
    Truncate description to max_length characters.

    The kept part is always a prefix of the input. A trailing marker is
    appended only when something was cut.

    Examples:
        >>> truncate_description("short", 10)
        'short'

        >>> truncate_description("abcdefghij", 4)
        'abcd...'
    """
    if not text:
        return ''

    if len(text) <= max_length:
        return text

    return text[:max_length] + TRUNCATION_MARKER


def clip(text: Optional[str], max_length: int) -> str:
    """Clip text for prompt embedding, always ending with the marker."""
    if not text:
        return ''
    return text[:max_length] + TRUNCATION_MARKER


def parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a rating-like value. Returns None when missing or malformed."""
    if not value:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def parse_int(value: Optional[str]) -> Optional[int]:
    """
    Parse a count that may carry thousands separators.

    Examples:
        >>> parse_int("12,345")
        12345
    """
    if not value:
        return None
    digits = re.sub(r'[,\.\s ]', '', value)
    if not digits.isdigit():
        return None
    return int(digits)

"""
Text utilities for pasted JSON and field names.

Hand-edited JSON and Japanese field names often carry byte-order marks,
zero-width characters and full-width punctuation that are invisible on screen
but break parsing and name comparison.
"""

import re
import unicodedata
from typing import Optional
from urllib.parse import urlparse

BOM = "\ufeff"

# Zero-width space/joiners, direction marks, BOM, soft hyphen, word joiner
INVISIBLE_CHARS = frozenset("\u200b\u200c\u200d\u200e\u200f\ufeff\u00ad\u2060")

_INVISIBLE_PATTERN = re.compile("[" + "".join(sorted(INVISIBLE_CHARS)) + "]")

# Whitespace, NBSP and invisibles allowed around the JSON payload
_EDGE_CHARS = "".join(sorted(INVISIBLE_CHARS)) + "\u00a0"

_FULL_WIDTH_MAP = str.maketrans({
    "\uff08": "(",
    "\uff09": ")",
    "\uff1a": ":",
    "\u3000": " ",
})

_WHITESPACE_RUN = re.compile(r"\s+")


def strip_edges(text: str) -> str:
    """Trim whitespace, NBSP and invisible characters from both ends."""
    return text.strip().strip(_EDGE_CHARS).strip()


def remove_invisible_outside_strings(text: str) -> str:
    """
    Remove invisible characters that sit between JSON tokens.

    Characters inside string literals are left alone, since they may be part
    of the user's data.
    """
    result = []
    in_string = False
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if in_string:
            result.append(ch)
            if ch == "\\" and i + 1 < n:
                result.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            result.append(ch)
        elif ch not in INVISIBLE_CHARS:
            result.append(ch)
        i += 1

    return "".join(result)


def sanitize_json_text(text: str) -> str:
    """
    Normalize raw JSON text before parsing.

    - Leading BOM removed
    - Whitespace / NBSP / zero-width characters trimmed at both ends
    - Zero-width characters removed between tokens

    Args:
        text: Raw pasted or uploaded text

    Returns:
        Sanitized text (may be empty)
    """
    if text.startswith(BOM):
        text = text[1:]
    text = strip_edges(text)
    return remove_invisible_outside_strings(text)


def normalize_field_name(name: Optional[str]) -> str:
    """
    Canonical comparison key for a field name.

    Handles the ways the same column name gets spelled differently:
    - "ＩＤ" → "ID" (full-width alphanumerics)
    - "価格（税込）" → "価格(税込)"
    - "名前\u200b" → "名前"
    - "  first   name " → "first name"

    Idempotent: normalize_field_name(normalize_field_name(x)) == normalize_field_name(x).

    Args:
        name: Field name as typed in JSON or as stored remotely

    Returns:
        Normalized name (empty string for empty input)
    """
    if not name:
        return ""

    # Invisibles first, so NFKC sees the final character sequence
    cleaned = _INVISIBLE_PATTERN.sub("", name)
    cleaned = unicodedata.normalize("NFKC", cleaned)
    cleaned = cleaned.translate(_FULL_WIDTH_MAP)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned)

    return cleaned.strip()


def is_http_url(value: object) -> bool:
    """
    Check for an absolute http/https URL.

    Args:
        value: Candidate value (non-strings are never URLs)

    Returns:
        True if value parses with an http(s) scheme and a host
    """
    if not isinstance(value, str):
        return False

    candidate = value.strip()
    if not candidate or candidate != value or any(c.isspace() for c in candidate):
        return False

    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False

    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)

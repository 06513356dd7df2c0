"""Text cleaning applied to every field recovered from detail markup."""

from __future__ import annotations

import re
from typing import Optional

TAG_RE = re.compile(r"<[^>]*>")
BLANK_LINES_RE = re.compile(r"\n\s*\n")

# Only the escapes the detail pages actually emit; order matters, ``&amp;``
# is decoded after ``&quot;`` so ``&amp;quot;`` ends up as ``&quot;``.
ENTITY_ESCAPES: tuple[tuple[str, str], ...] = (
    ("&quot;", '"'),
    ("&amp;", "&"),
    ("&#x27;", "'"),
    ("&#34;", '"'),
)

TRUNCATION_LABEL = "See more"
COMPANY_MAX_CHARS = 100


def strip_tags(value: str) -> str:
    return TAG_RE.sub("", value)


def decode_entities(value: str) -> str:
    for escaped, plain in ENTITY_ESCAPES:
        value = value.replace(escaped, plain)
    return value


def decode_url(value: Optional[str]) -> Optional[str]:
    """URLs only need ``&amp;`` undone; they are otherwise passed through."""

    if not value:
        return None
    return value.replace("&amp;", "&")


def clean_text(value: Optional[str]) -> Optional[str]:
    """Trim, strip markup, decode entities and collapse blank lines.

    Returns ``None`` when nothing is left so callers can fall through to the
    next recognizer.
    """

    if value is None:
        return None
    cleaned = strip_tags(value.strip())
    cleaned = decode_entities(cleaned)
    cleaned = BLANK_LINES_RE.sub("\n", cleaned).strip()
    return cleaned or None


def cut_at_truncation_label(value: Optional[str], label: str = TRUNCATION_LABEL) -> Optional[str]:
    if not value:
        return None
    if label in value:
        value = value.split(label, 1)[0].strip()
    return value or None


def truncate(value: Optional[str], max_chars: int = COMPANY_MAX_CHARS) -> Optional[str]:
    # Silent: no ellipsis is appended.
    if value is None:
        return None
    return value[:max_chars]


__all__ = [
    "COMPANY_MAX_CHARS",
    "ENTITY_ESCAPES",
    "TRUNCATION_LABEL",
    "clean_text",
    "cut_at_truncation_label",
    "decode_entities",
    "decode_url",
    "strip_tags",
    "truncate",
]

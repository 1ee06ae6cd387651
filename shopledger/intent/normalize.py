"""Text normalization for deterministic intent parsing."""

from __future__ import annotations

import re

_CURRENCY_RE = re.compile(r"₹|\brs\.?(?=\s|\d|$)|\binr\b|\brupees?\b")
_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")
_NON_WORD_RE = re.compile(r"[^0-9a-z.&@\s]+")
_STRAY_DOT_RE = re.compile(r"(?<!\d)\.|\.(?!\d)")
_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize operator text for rules-based parsing.

    Normalization is intentionally conservative:
        - Lowercase.
        - Drop currency markers (`₹`, `rs`, `inr`, `rupees`).
        - Remove thousands separators inside numbers (`1,200` -> `1200`).
        - Replace punctuation with spaces, keeping decimal points, `&` and `@`.
        - Collapse whitespace.
    """

    value = (text or "").strip().lower()
    value = value.replace("—", "-").replace("–", "-")

    value = _THOUSANDS_RE.sub("", value)
    value = _CURRENCY_RE.sub(" ", value)
    value = _NON_WORD_RE.sub(" ", value)
    value = _STRAY_DOT_RE.sub(" ", value)
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value

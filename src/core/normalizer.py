# src/core/normalizer.py - v1
"""Text canonicalization and fingerprinting.

Two digest strengths:
  - ``fingerprint``: SHA-256 of the normalized text, used for persisted
    cache and relationship keys.
  - ``quick_hash``: 32-bit rolling hash, used only to find in-memory
    dedup candidates within a single request. Collisions are possible,
    so candidates must be confirmed by comparing normalized text.

Both are deterministic across processes (no seeded ``hash()``, no locale).
"""

from __future__ import annotations

import hashlib
import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")

_PUNCTUATION_TABLE = str.maketrans(
    {
        "\u00a0": " ",  # no-break space
        "\u202f": " ",  # narrow no-break space
        "\u2013": "-",  # en dash
        "\u2014": "-",  # em dash
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
    }
)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize(text: str) -> str:
    """Canonicalize text for hashing. Idempotent.

    NFC composition, typographic punctuation folded to ASCII, runs of
    whitespace collapsed to one space, ends trimmed.
    """
    text = unicodedata.normalize("NFC", text)
    text = text.translate(_PUNCTUATION_TABLE)
    return _WHITESPACE_RE.sub(" ", text).strip()


def fingerprint(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize(text).encode("utf-8")).hexdigest()


def quick_hash(text: str) -> str:
    """Cheap 32-bit rolling hash (h * 31 + c) of the normalized text, base36."""
    h = 0
    for char in normalize(text):
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 1 << 32
    return _to_base36(abs(h))[:12]


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))

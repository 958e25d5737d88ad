# src/guidelines/versioning.py - v1
"""Guideline version digest.

The digest covers the identity-relevant fields of every active guideline,
in store order, so any change to a rule payload yields a new version and
moves the cache into a fresh namespace.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence

from guidelint.core.models import GuidelineRecord

_VERSION_FIELDS = ("id", "version", "category", "rules", "updated_at")
VERSION_DIGEST_LENGTH = 16


def compute_guidelines_version(guidelines: Sequence[GuidelineRecord]) -> str:
    """Return a 16-hex-char SHA-256 digest over the guidelines' identity fields."""
    payload = [
        g.model_dump(mode="json", include=set(_VERSION_FIELDS)) for g in guidelines
    ]
    serialized = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return digest[:VERSION_DIGEST_LENGTH]

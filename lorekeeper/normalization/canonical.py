"""Canonical-name helpers.

Canonical names are the per-campaign uniqueness key for entities and the lookup
key used when reconciling extracted candidates against persisted entities.
Keep this logic centralized so extraction, matching and commit stay aligned.
"""

from __future__ import annotations

import re
from typing import Iterable, List

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

SEPARATOR = "-"


def canonicalize(name: str) -> str:
    """Lowercase ``name`` and collapse every non-alphanumeric run to a single ``-``.

    Leading and trailing separators are stripped, so the function is idempotent:
    ``canonicalize(canonicalize(x)) == canonicalize(x)``.

    Example:
        >>> canonicalize("  Grok the Bold! ")
        'grok-the-bold'
    """
    return _NON_ALNUM.sub(SEPARATOR, (name or "").lower()).strip(SEPARATOR)


def dedupe_preserving_order(values: Iterable[str]) -> List[str]:
    """Drop exact duplicates (and empty strings) while keeping first-seen order."""
    seen: set[str] = set()
    result: List[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result

"""Wiki-style cross-link helpers (``[[Target]]`` / ``[[Target|Display]]``)."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List

from pydantic import BaseModel

from lorekeeper.normalization.canonical import canonicalize, dedupe_preserving_order

_WIKILINK = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")


class WikilinkMatch(BaseModel):
    target: str
    display: str
    start: int
    end: int


def parse_wikilinks(content: str) -> List[WikilinkMatch]:
    """Return every cross-link in ``content`` in document order."""
    return [
        WikilinkMatch(
            target=match.group(1).strip(),
            display=(match.group(2) or match.group(1)).strip(),
            start=match.start(),
            end=match.end(),
        )
        for match in _WIKILINK.finditer(content or "")
    ]


def extract_entity_mentions(content: str) -> List[str]:
    """Unique link targets in first-seen order."""
    return dedupe_preserving_order(link.target for link in parse_wikilinks(content))


def title_to_slug(title: str) -> str:
    return canonicalize(title)


def link_known_names(text: str, known_names: Iterable[str], *, exclude: str = "") -> str:
    """Wrap whole-word, case-insensitive occurrences of known names in ``[[...]]``.

    All names are matched in a single pass with the longest names tried first, so
    "Shadow Guild" wins over "Shadow" and no link is ever nested inside another.
    Text already inside a ``[[...]]`` marker is left untouched. The link uses the
    casing of the known name; ``exclude`` (the entity's own name) is never linked.
    """
    by_lower: Dict[str, str] = {}
    excluded = exclude.strip().lower()
    for name in known_names:
        cleaned = (name or "").strip()
        key = cleaned.lower()
        if not cleaned or key == excluded or key in by_lower:
            continue
        by_lower[key] = cleaned

    if not text or not by_lower:
        return text

    alternation = "|".join(
        re.escape(name) for name in sorted(by_lower.values(), key=len, reverse=True)
    )
    pattern = re.compile(rf"(\[\[[^\]]*\]\])|(?<!\w)({alternation})(?!\w)", re.IGNORECASE)

    def _replace(match: re.Match[str]) -> str:
        if match.group(1):
            return match.group(1)
        found = match.group(2)
        return f"[[{by_lower.get(found.lower(), found)}]]"

    return pattern.sub(_replace, text)

"""Document chunking module.

Two chunking strategies live here:

- ``DocumentChunker`` splits raw document text into bounded, ordered pieces for
  extraction. Paragraph boundaries are preferred; over-budget chunks fall back
  to sentence boundaries; a single sentence longer than the budget is kept whole.
- ``chunk_entity_content`` splits generated entity markdown by headers and then
  into overlapping windows, for search-index embedding.
"""

from __future__ import annotations

import re
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from lorekeeper.utils.config import ExtractionConfig

_PARAGRAPH_SPLIT = re.compile(r"\n\n+")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_HEADER = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)


class ContentChunk(BaseModel):
    """A window of entity content with its header path."""

    text: str
    index: int
    headers: List[str] = Field(default_factory=list)


class DocumentChunker:
    """Split document text into ordered chunks bounded by a character budget.

    Example:
        >>> chunker = DocumentChunker(max_chunk_size=45)
        >>> chunker.chunk("Para one.\\n\\nPara two.")
        ['Para one.\\n\\nPara two.']
    """

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        *,
        max_chunk_size: Optional[int] = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self.max_chunk_size = max_chunk_size or self.config.chunk_size
        if self.max_chunk_size < 1:
            raise ValueError("max_chunk_size must be at least 1")

    def chunk(self, text: str) -> List[str]:
        """Return the ordered, non-empty chunks of ``text``."""
        if not text or not text.strip():
            return []

        budget = self.max_chunk_size
        paragraph_chunks = self._accumulate(_PARAGRAPH_SPLIT.split(text), "\n\n")

        chunks: List[str] = []
        for chunk in paragraph_chunks:
            if len(chunk) <= budget:
                chunks.append(chunk)
                continue
            chunks.extend(self._accumulate(_SENTENCE_SPLIT.split(chunk), " "))

        if not chunks:
            # No usable structure at all; emergency truncation.
            logger.warning("No chunk boundaries found; truncating to {} chars", budget)
            return [text[:budget]]

        logger.debug("Split {} chars into {} chunks (budget={})", len(text), len(chunks), budget)
        return chunks

    def _accumulate(self, pieces: List[str], joiner: str) -> List[str]:
        """Greedily pack pieces into chunks until the next one would exceed the budget."""
        chunks: List[str] = []
        current = ""
        for raw in pieces:
            piece = raw.strip()
            if not piece:
                continue
            if current and len(current) + len(joiner) + len(piece) > self.max_chunk_size:
                chunks.append(current)
                current = piece
            else:
                current = f"{current}{joiner}{piece}" if current else piece
        if current:
            chunks.append(current)
        return chunks


def chunk_document(text: str, max_chunk_size: int = 6000) -> List[str]:
    """Convenience wrapper around :class:`DocumentChunker`."""
    return DocumentChunker(max_chunk_size=max_chunk_size).chunk(text)


def chunk_entity_content(
    content: str,
    title: str,
    *,
    target_size: int = 1000,
    overlap: int = 100,
) -> List[ContentChunk]:
    """Split entity markdown into header-scoped, overlapping windows.

    The title is prepended as a level-1 header so every window carries context.
    Sections are cut at the last paragraph break (or sentence break) past the
    window midpoint when one exists, otherwise at ``target_size``.
    """
    if overlap >= target_size:
        raise ValueError("overlap must be smaller than target_size")

    document = f"# {title}\n\n{content}"
    sections: List[tuple[List[str], str]] = []
    headers: List[str] = []
    last_index = 0

    for match in _HEADER.finditer(document):
        if match.start() > last_index:
            section_text = document[last_index : match.start()].strip()
            if section_text:
                sections.append((list(headers), section_text))
        level = len(match.group(1))
        headers = headers[: level - 1] + [match.group(2)]
        last_index = match.start()

    remaining = document[last_index:].strip()
    if remaining:
        sections.append((list(headers), remaining))
    if not sections:
        sections.append(([title], document))

    chunks: List[ContentChunk] = []
    for section_headers, text in sections:
        if len(text) <= target_size:
            chunks.append(ContentChunk(text=text, index=len(chunks), headers=section_headers))
            continue

        start = 0
        while start < len(text):
            end = start + target_size
            if end < len(text):
                paragraph_break = text.rfind("\n\n", start, end)
                if paragraph_break > start + target_size // 2:
                    end = paragraph_break
                else:
                    sentence_break = text.rfind(". ", start, end)
                    if sentence_break > start + target_size // 2:
                        end = sentence_break + 1
            window = text[start:end].strip()
            if window:
                chunks.append(
                    ContentChunk(text=window, index=len(chunks), headers=section_headers)
                )
            if end >= len(text):
                break
            start = max(end - overlap, start + 1)

    return chunks

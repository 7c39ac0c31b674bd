from __future__ import annotations

import re

import pytest

from lorekeeper.ingestion.chunker import (
    DocumentChunker,
    chunk_document,
    chunk_entity_content,
)
from lorekeeper.utils.config import ExtractionConfig

PARA_1 = "Grok guards the gate of the old keep...."
PARA_2 = "Mira sells maps in the harbor market...."

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")

MIXED_TEXT = (
    "The caravan left at dawn. Dust rose behind the wagons!\n\n"
    "Mira counted the crates twice. Were any missing? Two, perhaps.\n\n"
    "A lone unbroken sentence rambling about the salt roads far past small budgets\n\n"
    "End."
)


@pytest.mark.parametrize("budget", [1, 5, 45, 200])
def test_chunks_fit_budget_or_are_single_sentences(budget: int) -> None:
    chunks = chunk_document(MIXED_TEXT, max_chunk_size=budget)

    assert chunks
    for chunk in chunks:
        assert chunk == chunk.strip() and chunk
        assert len(chunk) <= budget or not SENTENCE_BOUNDARY.search(chunk)
    assert " ".join(chunks).split() == MIXED_TEXT.split()


def test_paragraphs_split_at_blank_line() -> None:
    assert len(PARA_1) == 40 and len(PARA_2) == 40

    chunks = chunk_document(f"{PARA_1}\n\n{PARA_2}", max_chunk_size=45)

    assert chunks == [PARA_1, PARA_2]
    assert all(len(c) <= 45 for c in chunks)


def test_small_paragraphs_are_packed_together() -> None:
    text = "One.\n\nTwo.\n\n\n\nThree."

    assert chunk_document(text, max_chunk_size=100) == ["One.\n\nTwo.\n\nThree."]


def test_oversized_paragraph_falls_back_to_sentences() -> None:
    paragraph = "The bridge collapsed. The party fell into the river. Nobody drowned."

    chunks = chunk_document(paragraph, max_chunk_size=40)

    assert chunks == [
        "The bridge collapsed.",
        "The party fell into the river.",
        "Nobody drowned.",
    ]


def test_sentence_longer_than_budget_is_kept_whole() -> None:
    sentence = "A" * 120

    chunks = chunk_document(f"Short intro.\n\n{sentence}", max_chunk_size=50)

    assert chunks == ["Short intro.", sentence]


@pytest.mark.parametrize("text", ["", "   ", "\n\n\n"])
def test_empty_input_yields_no_chunks(text: str) -> None:
    assert chunk_document(text) == []


def test_order_and_content_are_preserved() -> None:
    paragraphs = [f"Paragraph number {i} talks about the realm." for i in range(12)]

    chunks = DocumentChunker(ExtractionConfig(chunk_size=120)).chunk("\n\n".join(paragraphs))

    assert all(len(c) <= 120 for c in chunks)
    rejoined = "\n\n".join(chunks)
    assert rejoined == "\n\n".join(paragraphs)


def test_chunker_uses_config_chunk_size_by_default() -> None:
    assert DocumentChunker(ExtractionConfig(chunk_size=321)).max_chunk_size == 321
    assert DocumentChunker(max_chunk_size=10).max_chunk_size == 10


def test_entity_content_chunks_carry_header_path() -> None:
    content = "Intro text.\n\n## Connections\n\n- **Lives in:** [[Tavern]]"

    chunks = chunk_entity_content(content, "Grok", target_size=200, overlap=20)

    assert [c.index for c in chunks] == [0, 1]
    assert chunks[0].headers == ["Grok"]
    assert chunks[0].text.startswith("# Grok")
    assert chunks[1].headers == ["Grok", "Connections"]
    assert "[[Tavern]]" in chunks[1].text


def test_entity_content_long_section_uses_overlapping_windows() -> None:
    content = " ".join(f"Sentence {i} is here." for i in range(60))

    chunks = chunk_entity_content(content, "Lore", target_size=200, overlap=40)

    assert len(chunks) > 1
    assert all(len(c.text) <= 200 for c in chunks)


def test_entity_content_rejects_overlap_not_smaller_than_target() -> None:
    with pytest.raises(ValueError):
        chunk_entity_content("text", "T", target_size=100, overlap=100)

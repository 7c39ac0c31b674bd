"""Ingestion module for document chunking."""

from lorekeeper.ingestion.chunker import (
    ContentChunk,
    DocumentChunker,
    chunk_document,
    chunk_entity_content,
)

__all__ = ["ContentChunk", "DocumentChunker", "chunk_document", "chunk_entity_content"]

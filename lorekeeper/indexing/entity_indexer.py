"""Keep the vector index in sync with persisted entity content.

``sync_entity`` replaces every indexed chunk of one entity: old points are
deleted, the content is split with :func:`chunk_entity_content`, embedded and
upserted with the wikilink targets each chunk mentions. Embedding and index
calls are blocking, so they run in a worker thread.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from loguru import logger

from lorekeeper.extraction.wikilinks import extract_entity_mentions
from lorekeeper.ingestion.chunker import chunk_entity_content
from lorekeeper.storage.qdrant_manager import QdrantIndex
from lorekeeper.storage.schemas import Entity
from lorekeeper.utils.config import IndexingConfig
from lorekeeper.utils.embeddings import EmbeddingGenerator


def chunk_point_id(entity_id: str, chunk_index: int) -> str:
    """Deterministic point id so re-indexing overwrites instead of duplicating."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"entity_chunk:{entity_id}:{chunk_index}"))


class EntityIndexer:
    """Chunk, embed and upsert entity content into the search index."""

    def __init__(
        self,
        index: QdrantIndex,
        embedder: EmbeddingGenerator,
        config: Optional[IndexingConfig] = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.config = config or IndexingConfig()

    async def sync_entity(self, entity: Entity) -> int:
        """Re-index one entity; returns the number of chunks written."""
        return await asyncio.to_thread(self._sync_blocking, entity)

    def _sync_blocking(self, entity: Entity) -> int:
        self.index.delete_entity(entity.id)

        chunks = chunk_entity_content(
            entity.content,
            entity.name,
            target_size=self.config.target_chunk_size,
            overlap=self.config.chunk_overlap,
        )
        if not chunks:
            return 0

        vectors = self.embedder.generate([chunk.text for chunk in chunks])
        payloads: List[Dict[str, Any]] = [
            {
                "entity_id": entity.id,
                "campaign_id": entity.campaign_id,
                "entity_name": entity.name,
                "entity_type": entity.entity_type,
                "chunk_index": chunk.index,
                "content": chunk.text,
                "headers": chunk.headers,
                "mentions": extract_entity_mentions(chunk.text),
                "is_dm_only": entity.is_dm_only,
            }
            for chunk in chunks
        ]
        point_ids = [chunk_point_id(entity.id, chunk.index) for chunk in chunks]
        written = self.index.upsert_chunks(point_ids, payloads, vectors)
        logger.debug("Indexed entity {} ({} chunks)", entity.name, written)
        return written

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

from lorekeeper.indexing.entity_indexer import EntityIndexer, chunk_point_id
from lorekeeper.storage.schemas import Entity
from lorekeeper.utils.config import IndexingConfig


class _FakeIndex:
    def __init__(self) -> None:
        self.deleted: List[str] = []
        self.point_ids: List[str] = []
        self.payloads: List[Dict[str, Any]] = []

    def delete_entity(self, entity_id: str) -> None:
        self.deleted.append(entity_id)

    def upsert_chunks(self, point_ids, payloads, vectors) -> int:
        assert len(vectors) == len(payloads)
        self.point_ids.extend(point_ids)
        self.payloads.extend(payloads)
        return len(payloads)


class _FakeEmbedder:
    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def generate(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [[0.1, 0.2] for _ in texts]


def test_sync_entity_replaces_chunks_with_payload() -> None:
    index, embedder = _FakeIndex(), _FakeEmbedder()
    indexer = EntityIndexer(index, embedder, IndexingConfig(target_chunk_size=500))
    entity = Entity(
        id="e1",
        campaign_id="c1",
        name="Grok",
        entity_type="npc",
        content="A bouncer at [[Rusty Anchor]].\n\n## Connections\n\n- **Knows:** [[Mira]]",
        is_dm_only=True,
    )

    written = asyncio.run(indexer.sync_entity(entity))

    assert written == 2
    assert index.deleted == ["e1"]
    assert index.point_ids == [chunk_point_id("e1", 0), chunk_point_id("e1", 1)]
    first, second = index.payloads
    assert first["mentions"] == ["Rusty Anchor"]
    assert second["mentions"] == ["Mira"]
    assert second["headers"] == ["Grok", "Connections"]
    assert all(p["campaign_id"] == "c1" and p["is_dm_only"] for p in index.payloads)
    assert len(embedder.calls) == 1


def test_point_ids_are_deterministic() -> None:
    assert chunk_point_id("e1", 0) == chunk_point_id("e1", 0)
    assert chunk_point_id("e1", 0) != chunk_point_id("e1", 1)
    assert chunk_point_id("e1", 0) != chunk_point_id("e2", 0)

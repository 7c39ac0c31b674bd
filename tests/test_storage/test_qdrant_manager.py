"""Tests for the Qdrant entity chunk index.

Uses Qdrant's local in-memory mode so no server is required.
"""

import random
from typing import Any, Dict, List

import pytest

from lorekeeper.indexing.entity_indexer import chunk_point_id
from lorekeeper.storage.qdrant_manager import QdrantIndex
from lorekeeper.utils.config import DatabaseConfig

DIMENSION = 16


@pytest.fixture
def db_config() -> DatabaseConfig:
    """Create test database configuration."""
    return DatabaseConfig(qdrant_location=":memory:", embedding_dimension=DIMENSION)


@pytest.fixture
def index(db_config: DatabaseConfig) -> QdrantIndex:
    """Create an index with a fresh collection."""
    index = QdrantIndex(config=db_config, collection="test_entity_chunks")
    index.create_collection(recreate=True)
    yield index
    index.close()


def _vectors(count: int, seed: int = 42) -> List[List[float]]:
    rng = random.Random(seed)
    vectors = []
    for _ in range(count):
        vector = [rng.random() for _ in range(DIMENSION)]
        magnitude = sum(x**2 for x in vector) ** 0.5
        vectors.append([x / magnitude for x in vector])
    return vectors


def _payloads(entity_id: str, campaign_id: str, count: int) -> List[Dict[str, Any]]:
    return [
        {
            "entity_id": entity_id,
            "campaign_id": campaign_id,
            "chunk_index": i,
            "content": f"Chunk {i} of {entity_id}",
            "headers": [entity_id],
            "mentions": [],
        }
        for i in range(count)
    ]


def _point_ids(entity_id: str, count: int) -> List[str]:
    return [chunk_point_id(entity_id, i) for i in range(count)]


class TestCollectionManagement:
    """Tests for collection creation."""

    def test_create_collection(self, index: QdrantIndex) -> None:
        assert index.collection_exists() is True

    def test_recreate_collection(self, index: QdrantIndex) -> None:
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), _vectors(2))

        index.create_collection(recreate=True)

        assert index.collection_exists() is True
        assert index.search("c1", _vectors(1)[0]) == []

    def test_health_check(self, index: QdrantIndex) -> None:
        is_healthy, message = index.health_check()
        assert is_healthy is True
        assert message == "ok"


class TestChunkOperations:
    """Tests for upsert, delete and search."""

    def test_upsert_chunks(self, index: QdrantIndex) -> None:
        count = index.upsert_chunks(_point_ids("e1", 3), _payloads("e1", "c1", 3), _vectors(3))
        assert count == 3

    def test_upsert_mismatched_lengths(self, index: QdrantIndex) -> None:
        with pytest.raises(ValueError, match="must match"):
            index.upsert_chunks(_point_ids("e1", 3), _payloads("e1", "c1", 3), _vectors(2))

    def test_upsert_empty(self, index: QdrantIndex) -> None:
        assert index.upsert_chunks([], [], []) == 0

    def test_reupsert_overwrites_points(self, index: QdrantIndex) -> None:
        vectors = _vectors(2)
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), vectors)
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), vectors)

        results = index.search("c1", vectors[0], top_k=10)

        assert len(results) == 2

    def test_search_is_campaign_scoped(self, index: QdrantIndex) -> None:
        vectors = _vectors(4)
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), vectors[:2])
        index.upsert_chunks(_point_ids("e2", 2), _payloads("e2", "c2", 2), vectors[2:])

        results = index.search("c1", vectors[0], top_k=10)

        assert {r["payload"]["campaign_id"] for r in results} == {"c1"}
        assert results[0]["payload"]["chunk_index"] == 0
        assert results[0]["score"] == pytest.approx(1.0, abs=1e-4)

    def test_delete_entity_removes_only_its_chunks(self, index: QdrantIndex) -> None:
        vectors = _vectors(4)
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), vectors[:2])
        index.upsert_chunks(_point_ids("e2", 2), _payloads("e2", "c1", 2), vectors[2:])

        index.delete_entity("e1")

        results = index.search("c1", vectors[0], top_k=10)
        assert {r["payload"]["entity_id"] for r in results} == {"e2"}

    def test_delete_campaign(self, index: QdrantIndex) -> None:
        vectors = _vectors(4)
        index.upsert_chunks(_point_ids("e1", 2), _payloads("e1", "c1", 2), vectors[:2])
        index.upsert_chunks(_point_ids("e2", 2), _payloads("e2", "c2", 2), vectors[2:])

        index.delete_campaign("c1")

        assert index.search("c1", vectors[0], top_k=10) == []
        assert len(index.search("c2", vectors[2], top_k=10)) == 2

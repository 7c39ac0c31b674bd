"""Qdrant vector index for entity content chunks.

Each persisted entity is split into header-aware chunks; every chunk is stored
as one point whose payload carries the entity id, campaign id, chunk text, the
header path and the wikilink mentions found in the chunk.

Features:
    - Collection creation with HNSW indexing and payload indexes
    - Per-entity replace (delete by entity_id, then upsert)
    - Campaign-scoped similarity search
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from qdrant_client import QdrantClient
from qdrant_client.http import models
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    HnswConfigDiff,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from lorekeeper.utils.config import DatabaseConfig

logger = logging.getLogger(__name__)


class QdrantIndex:
    """Wrapper around the Qdrant client for the entity chunk collection.

    Attributes:
        client: Qdrant client instance
        config: Database configuration
        collection: Name of the entity chunk collection
    """

    def __init__(
        self,
        config: DatabaseConfig,
        collection: str = "entity_chunks",
        client: Optional[QdrantClient] = None,
    ) -> None:
        """Initialize the index.

        Args:
            config: Database configuration with Qdrant connection details
            collection: Collection name for entity chunks
            client: Pre-built client (skips connection setup)

        Raises:
            ConnectionError: If unable to connect to Qdrant
        """
        self.config = config
        self.collection = collection

        if client is not None:
            self.client = client
            return

        try:
            # Local/in-memory mode (used by unit tests, no server required)
            if config.qdrant_location:
                self.client = QdrantClient(
                    location=config.qdrant_location,
                    api_key=config.qdrant_api_key or None,
                    timeout=30.0,
                    prefer_grpc=False,
                )
                logger.info(f"Connected to Qdrant in local mode at {config.qdrant_location}")
            else:
                kwargs: Dict[str, Any] = {
                    "host": config.qdrant_host,
                    "port": config.qdrant_port,
                    "timeout": 30.0,
                }
                if config.qdrant_api_key:
                    kwargs["api_key"] = config.qdrant_api_key
                self.client = QdrantClient(**kwargs)
                logger.info(f"Connected to Qdrant at {config.qdrant_host}:{config.qdrant_port}")

            self.client.get_collections()

        except Exception as e:
            logger.error(f"Failed to connect to Qdrant: {e}")
            raise ConnectionError(f"Unable to connect to Qdrant: {e}") from e

    def collection_exists(self) -> bool:
        try:
            collections = self.client.get_collections().collections
            return any(col.name == self.collection for col in collections)
        except Exception as e:
            logger.error(f"Error checking collection existence: {e}")
            return False

    def create_collection(
        self, recreate: bool = False, hnsw_m: int = 16, hnsw_ef_construct: int = 100
    ) -> None:
        """Create the entity chunk collection with cosine distance and payload indexes.

        Payload schema:
        - entity_id: UUID of the entity
        - campaign_id: Owning campaign
        - chunk_index: Position of the chunk within the entity content
        - content: Chunk text
        - headers: Markdown header path of the chunk
        - mentions: Wikilink targets found in the chunk
        """
        if recreate and self.collection_exists():
            self.client.delete_collection(self.collection)
            logger.info(f"Deleted collection: {self.collection}")

        if self.collection_exists():
            return

        self.client.create_collection(
            collection_name=self.collection,
            vectors_config=VectorParams(
                size=self.config.embedding_dimension,
                distance=Distance.COSINE,
                hnsw_config=HnswConfigDiff(
                    m=hnsw_m,
                    ef_construct=hnsw_ef_construct,
                    full_scan_threshold=10000,
                ),
            ),
            on_disk_payload=False,
        )
        for field_name in ("entity_id", "campaign_id"):
            self.client.create_payload_index(
                collection_name=self.collection,
                field_name=field_name,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.info(f"Created collection: {self.collection}")

    def upsert_chunks(
        self,
        point_ids: Sequence[str],
        payloads: Sequence[Dict[str, Any]],
        vectors: Sequence[Sequence[float]],
        batch_size: int = 100,
    ) -> int:
        """Upsert entity chunks with their embeddings.

        Raises:
            ValueError: If payloads and vectors lengths don't match
        """
        if not (len(point_ids) == len(payloads) == len(vectors)):
            raise ValueError(
                f"Payload count ({len(payloads)}) must match vector count ({len(vectors)})"
            )
        if not payloads:
            return 0

        total = 0
        for i in range(0, len(payloads), batch_size):
            points = [
                PointStruct(
                    id=str(point_id), vector=[float(x) for x in vector], payload=dict(payload)
                )
                for point_id, payload, vector in zip(
                    point_ids[i : i + batch_size],
                    payloads[i : i + batch_size],
                    vectors[i : i + batch_size],
                )
            ]
            self.client.upsert(collection_name=self.collection, points=points, wait=True)
            total += len(points)

        logger.info(f"Upserted {total} chunks to {self.collection}")
        return total

    def delete_entity(self, entity_id: str) -> None:
        """Delete all chunks belonging to an entity."""
        self.client.delete(
            collection_name=self.collection,
            points_selector=models.FilterSelector(
                filter=Filter(
                    must=[FieldCondition(key="entity_id", match=MatchValue(value=str(entity_id)))]
                )
            ),
        )
        logger.debug(f"Deleted chunks for entity {entity_id}")

    def delete_campaign(self, campaign_id: str) -> None:
        """Delete every chunk of a campaign."""
        self.client.delete(
            collection_name=self.collection,
            points_selector=models.FilterSelector(
                filter=Filter(
                    must=[FieldCondition(key="campaign_id", match=MatchValue(value=campaign_id))]
                )
            ),
        )
        logger.info(f"Deleted chunks for campaign {campaign_id}")

    def search(
        self,
        campaign_id: str,
        query_vector: Sequence[float],
        top_k: int = 10,
        score_threshold: float = 0.0,
    ) -> List[Dict[str, Any]]:
        """Search chunks of one campaign by vector similarity."""
        resp = self.client.query_points(
            collection_name=self.collection,
            query=[float(x) for x in query_vector],
            limit=top_k,
            score_threshold=score_threshold,
            query_filter=Filter(
                must=[FieldCondition(key="campaign_id", match=MatchValue(value=campaign_id))]
            ),
            with_payload=True,
            with_vectors=False,
        )
        return [
            {"point_id": point.id, "score": point.score, "payload": point.payload}
            for point in getattr(resp, "points", []) or []
        ]

    def health_check(self) -> Tuple[bool, str]:
        try:
            self.client.get_collections()
            return True, "ok"
        except Exception as e:
            return False, str(e)

    def close(self) -> None:
        try:
            self.client.close()
            logger.info("Closed Qdrant client connection")
        except Exception as e:
            logger.warning(f"Error closing Qdrant client: {e}")

    def __enter__(self) -> "QdrantIndex":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

"""Neo4j graph store for campaign documents, entities and relationships."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from neo4j import GraphDatabase, Session
from neo4j.exceptions import ConstraintError, Neo4jError

from lorekeeper.errors import (
    DuplicateEntityError,
    DuplicateRelationshipError,
    StorageError,
)
from lorekeeper.normalization.canonical import canonicalize
from lorekeeper.storage.base import GraphStore
from lorekeeper.storage.schemas import (
    Document,
    Entity,
    EntitySource,
    Note,
    NoteLink,
    Relationship,
)
from lorekeeper.utils.config import DatabaseConfig

logger = logging.getLogger(__name__)

# Entity types are open string tags, so every entity shares one label and the
# type lives in a property.
ENTITY_LABEL = "Entity"
RELATIONSHIP_TYPE = "RELATES_TO"


class Neo4jGraphStore(GraphStore):
    """GraphStore backed by a Neo4j database.

    Handles connection pooling, schema creation and campaign-scoped CRUD for
    documents, entities, provenance, relationships and legacy notes.

    Attributes:
        uri: Neo4j connection URI
        user: Neo4j username
        password: Neo4j password
        database: Neo4j database name
        driver: Neo4j driver instance
    """

    def __init__(self, config: DatabaseConfig):
        self.uri = config.neo4j_uri
        self.user = config.neo4j_user
        self.password = config.neo4j_password
        self.database = config.neo4j_database
        self.driver = None
        self._connected = False

    def connect(self) -> None:
        """Establish connection to Neo4j database.

        Raises:
            Neo4jError: If connection fails
        """
        try:
            self.driver = GraphDatabase.driver(
                self.uri, auth=(self.user, self.password), max_connection_pool_size=50
            )
            self.driver.verify_connectivity()
            self._connected = True
            logger.info(f"Connected to Neo4j at {self.uri}")
        except Neo4jError as e:
            logger.error(f"Failed to connect to Neo4j: {e}")
            raise

    def close(self) -> None:
        """Close connection to Neo4j database."""
        if self.driver:
            self.driver.close()
            self._connected = False
            logger.info("Closed Neo4j connection")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for Neo4j session.

        Raises:
            RuntimeError: If not connected to database
        """
        if not self._connected or not self.driver:
            raise RuntimeError("Not connected to Neo4j. Call connect() first.")

        session = self.driver.session(database=self.database)
        try:
            yield session
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create uniqueness constraints and lookup indexes.

        Creates:
        - Uniqueness on entity, document and note ids
        - Uniqueness on (campaign_id, canonical_name) for entities
        - Indexes on campaign_id for campaign-scoped listing
        """
        statements = [
            (
                "entity_id_unique",
                f"CREATE CONSTRAINT entity_id_unique IF NOT EXISTS "
                f"FOR (n:{ENTITY_LABEL}) REQUIRE n.id IS UNIQUE",
            ),
            (
                "entity_canonical_unique",
                f"CREATE CONSTRAINT entity_canonical_unique IF NOT EXISTS "
                f"FOR (n:{ENTITY_LABEL}) REQUIRE (n.campaign_id, n.canonical_name) IS UNIQUE",
            ),
            (
                "document_id_unique",
                "CREATE CONSTRAINT document_id_unique IF NOT EXISTS "
                "FOR (d:Document) REQUIRE d.id IS UNIQUE",
            ),
            (
                "note_id_unique",
                "CREATE CONSTRAINT note_id_unique IF NOT EXISTS "
                "FOR (n:Note) REQUIRE n.id IS UNIQUE",
            ),
            (
                "entity_campaign_idx",
                f"CREATE INDEX entity_campaign_idx IF NOT EXISTS "
                f"FOR (n:{ENTITY_LABEL}) ON (n.campaign_id)",
            ),
            (
                "note_campaign_idx",
                "CREATE INDEX note_campaign_idx IF NOT EXISTS FOR (n:Note) ON (n.campaign_id)",
            ),
        ]
        with self.session() as session:
            for name, statement in statements:
                try:
                    session.run(statement)
                    logger.info(f"Created {name}")
                except Neo4jError as e:
                    logger.warning(f"Could not create {name}: {e}")
            logger.info("Neo4j schema creation completed")

    # Documents

    def create_document(self, document: Document) -> str:
        props = document.model_dump()
        props["created_at"] = document.created_at.isoformat()
        with self.session() as session:
            session.run("CREATE (d:Document $props)", props=props)
        logger.debug(f"Created document {document.id}")
        return document.id

    # Entity CRUD Operations

    def create_entity(self, entity: Entity) -> str:
        """Create an entity node.

        Raises:
            DuplicateEntityError: canonical name already used in the campaign
        """
        if self.get_entity_by_canonical_name(entity.campaign_id, entity.canonical_name):
            raise DuplicateEntityError(entity.campaign_id, entity.canonical_name)
        with self.session() as session:
            try:
                result = session.run(
                    f"CREATE (n:{ENTITY_LABEL} $props) RETURN n.id as id",
                    props=entity.to_neo4j_dict(),
                )
                entity_id = result.single()["id"]
            except ConstraintError as e:
                raise DuplicateEntityError(entity.campaign_id, entity.canonical_name) from e
        logger.debug(f"Created entity {entity_id} of type {entity.entity_type}")
        return entity_id

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        with self.session() as session:
            record = session.run(
                f"MATCH (n:{ENTITY_LABEL} {{id: $entity_id}}) RETURN n", entity_id=entity_id
            ).single()
            return Entity(**dict(record["n"])) if record else None

    def get_entity_by_canonical_name(
        self, campaign_id: str, canonical_name: str
    ) -> Optional[Entity]:
        with self.session() as session:
            record = session.run(
                f"""
                MATCH (n:{ENTITY_LABEL} {{campaign_id: $campaign_id, canonical_name: $canonical_name}})
                RETURN n
                LIMIT 1
                """,
                campaign_id=campaign_id,
                canonical_name=canonical_name,
            ).single()
            return Entity(**dict(record["n"])) if record else None

    def list_entities(self, campaign_id: str) -> List[Entity]:
        with self.session() as session:
            result = session.run(
                f"""
                MATCH (n:{ENTITY_LABEL} {{campaign_id: $campaign_id}})
                RETURN n
                ORDER BY n.canonical_name
                """,
                campaign_id=campaign_id,
            )
            return [Entity(**dict(record["n"])) for record in result]

    def update_entity(self, entity_id: str, properties: Dict[str, Any]) -> bool:
        """Update entity properties.

        Returns:
            True if entity was updated, False if not found
        """
        updates = dict(properties)
        if "name" in updates:
            updates["canonical_name"] = canonicalize(updates["name"])
        with self.session() as session:
            try:
                record = session.run(
                    f"""
                    MATCH (n:{ENTITY_LABEL} {{id: $entity_id}})
                    SET n += $properties, n.updated_at = toString(localdatetime())
                    RETURN n.id as id, n.campaign_id as campaign_id
                    """,
                    entity_id=entity_id,
                    properties=updates,
                ).single()
            except ConstraintError as e:
                raise DuplicateEntityError("", updates.get("canonical_name", "")) from e
        if record:
            logger.debug(f"Updated entity {entity_id}")
            return True
        return False

    def add_entity_source(self, source: EntitySource) -> bool:
        with self.session() as session:
            record = session.run(
                f"""
                MATCH (n:{ENTITY_LABEL} {{id: $entity_id}})
                MATCH (d:Document {{id: $document_id}})
                OPTIONAL MATCH (n)-[existing:SOURCED_FROM]->(d)
                WITH n, d, existing
                WHERE existing IS NULL
                CREATE (n)-[s:SOURCED_FROM {{excerpt: $excerpt, confidence: $confidence}}]->(d)
                RETURN count(s) as created
                """,
                entity_id=source.entity_id,
                document_id=source.document_id,
                excerpt=source.excerpt,
                confidence=source.confidence,
            ).single()
        return bool(record and record["created"])

    # Relationship Operations

    def create_relationship(
        self, relationship: Relationship, *, ignore_conflicts: bool = False
    ) -> bool:
        """Create a relationship between two entities.

        Raises:
            DuplicateRelationshipError: the edge exists and ``ignore_conflicts`` is False
            StorageError: source or target entity not found
        """
        with self.session() as session:
            record = session.run(
                f"""
                MATCH (source:{ENTITY_LABEL} {{id: $source_id}})
                MATCH (target:{ENTITY_LABEL} {{id: $target_id}})
                OPTIONAL MATCH (source)-[existing:{RELATIONSHIP_TYPE} {{relationship_type: $rel_type}}]->(target)
                RETURN existing IS NOT NULL as exists
                """,
                source_id=relationship.source_entity_id,
                target_id=relationship.target_entity_id,
                rel_type=relationship.relationship_type,
            ).single()
            if record is None:
                raise StorageError(
                    f"Could not create relationship: source or target entity not found "
                    f"({relationship.source_entity_id} -> {relationship.target_entity_id})"
                )
            if record["exists"]:
                if ignore_conflicts:
                    return False
                raise DuplicateRelationshipError(
                    f"Relationship {relationship.unique_key} already exists"
                )

            session.run(
                f"""
                MATCH (source:{ENTITY_LABEL} {{id: $source_id}})
                MATCH (target:{ENTITY_LABEL} {{id: $target_id}})
                CREATE (source)-[r:{RELATIONSHIP_TYPE} $props]->(target)
                """,
                source_id=relationship.source_entity_id,
                target_id=relationship.target_entity_id,
                props=relationship.to_neo4j_dict(),
            )
        logger.debug(
            f"Created relationship {relationship.relationship_type} "
            f"({relationship.source_entity_id} -> {relationship.target_entity_id})"
        )
        return True

    def list_relationships(self, campaign_id: str) -> List[Relationship]:
        with self.session() as session:
            result = session.run(
                f"""
                MATCH (:{ENTITY_LABEL})-[r:{RELATIONSHIP_TYPE} {{campaign_id: $campaign_id}}]->(:{ENTITY_LABEL})
                RETURN r
                """,
                campaign_id=campaign_id,
            )
            return [Relationship(**dict(record["r"])) for record in result]

    # Legacy notes

    def list_notes(self, campaign_id: str) -> List[Note]:
        with self.session() as session:
            result = session.run(
                "MATCH (n:Note {campaign_id: $campaign_id}) RETURN n", campaign_id=campaign_id
            )
            return [Note(**dict(record["n"])) for record in result]

    def list_note_links(self, campaign_id: str) -> List[NoteLink]:
        with self.session() as session:
            result = session.run(
                """
                MATCH (s:Note {campaign_id: $campaign_id})-[:LINKS_TO]->(t:Note)
                RETURN s.id as source_id, t.id as target_id
                """,
                campaign_id=campaign_id,
            )
            return [
                NoteLink(
                    campaign_id=campaign_id,
                    source_note_id=record["source_id"],
                    target_note_id=record["target_id"],
                )
                for record in result
            ]

    # Utility Methods

    def health_check(self) -> bool:
        """Check if Neo4j connection is healthy."""
        try:
            with self.session() as session:
                result = session.run("RETURN 1")
                return result.single() is not None
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    def clear_campaign(self, campaign_id: str) -> None:
        """Delete every node of a campaign (use with caution)."""
        with self.session() as session:
            session.run(
                "MATCH (n {campaign_id: $campaign_id}) DETACH DELETE n", campaign_id=campaign_id
            )
        logger.warning(f"Cleared campaign {campaign_id} from Neo4j")

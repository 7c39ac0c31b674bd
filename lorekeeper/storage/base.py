"""Abstract graph store interface.

Every campaign-scoped persistence operation used by the commit step, the
extraction stream and the graph query goes through this contract, so the
Neo4j backend and the in-memory backend are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from lorekeeper.storage.schemas import (
    Document,
    Entity,
    EntitySource,
    Note,
    NoteLink,
    Relationship,
)


class GraphStore(ABC):
    """Campaign-scoped storage for documents, entities and relationships."""

    # Documents -------------------------------------------------------
    @abstractmethod
    def create_document(self, document: Document) -> str:
        """Persist a document and return its id."""

    # Entities --------------------------------------------------------
    @abstractmethod
    def create_entity(self, entity: Entity) -> str:
        """Insert a new entity.

        Raises:
            DuplicateEntityError: canonical name already used in the campaign.
        """

    @abstractmethod
    def get_entity(self, entity_id: str) -> Optional[Entity]:
        ...

    @abstractmethod
    def get_entity_by_canonical_name(
        self, campaign_id: str, canonical_name: str
    ) -> Optional[Entity]:
        ...

    @abstractmethod
    def list_entities(self, campaign_id: str) -> List[Entity]:
        ...

    @abstractmethod
    def update_entity(self, entity_id: str, properties: Dict[str, Any]) -> bool:
        """Update selected fields; returns False when the entity does not exist."""

    @abstractmethod
    def add_entity_source(self, source: EntitySource) -> bool:
        """Record provenance; returns False when the (entity, document) pair exists."""

    # Relationships ---------------------------------------------------
    @abstractmethod
    def create_relationship(
        self, relationship: Relationship, *, ignore_conflicts: bool = False
    ) -> bool:
        """Insert a relationship; returns True when a new row was written.

        Raises:
            DuplicateRelationshipError: (source, target, type) exists and
                ``ignore_conflicts`` is False.
        """

    @abstractmethod
    def list_relationships(self, campaign_id: str) -> List[Relationship]:
        ...

    # Legacy notes ----------------------------------------------------
    @abstractmethod
    def list_notes(self, campaign_id: str) -> List[Note]:
        ...

    @abstractmethod
    def list_note_links(self, campaign_id: str) -> List[NoteLink]:
        ...

    # Convenience -----------------------------------------------------
    def list_entity_names(self, campaign_id: str) -> List[str]:
        return [entity.name for entity in self.list_entities(campaign_id)]

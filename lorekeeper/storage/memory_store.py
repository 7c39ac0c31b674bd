"""In-process GraphStore used for tests, dry runs and single-user tooling."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from lorekeeper.errors import DuplicateEntityError, DuplicateRelationshipError
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

_UPDATABLE_FIELDS = {"name", "content", "aliases", "tags", "entity_type", "is_dm_only"}


class InMemoryGraphStore(GraphStore):
    """Dictionary-backed store enforcing the same uniqueness rules as the database."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.documents: Dict[str, Document] = {}
        self.entities: Dict[str, Entity] = {}
        self.entity_sources: Dict[tuple[str, str], EntitySource] = {}
        self.relationships: Dict[str, Relationship] = {}
        self.notes: Dict[str, Note] = {}
        self.note_links: List[NoteLink] = []

    def create_document(self, document: Document) -> str:
        with self._lock:
            self.documents[document.id] = document
        return document.id

    def create_entity(self, entity: Entity) -> str:
        with self._lock:
            if self._find_canonical(entity.campaign_id, entity.canonical_name):
                raise DuplicateEntityError(entity.campaign_id, entity.canonical_name)
            self.entities[entity.id] = entity.model_copy(deep=True)
        logger.debug("Created entity {} ({})", entity.name, entity.id)
        return entity.id

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        entity = self.entities.get(entity_id)
        return entity.model_copy(deep=True) if entity else None

    def get_entity_by_canonical_name(
        self, campaign_id: str, canonical_name: str
    ) -> Optional[Entity]:
        entity = self._find_canonical(campaign_id, canonical_name)
        return entity.model_copy(deep=True) if entity else None

    def list_entities(self, campaign_id: str) -> List[Entity]:
        return [
            e.model_copy(deep=True) for e in self.entities.values() if e.campaign_id == campaign_id
        ]

    def update_entity(self, entity_id: str, properties: Dict[str, Any]) -> bool:
        unknown = set(properties) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update entity fields: {sorted(unknown)}")
        with self._lock:
            entity = self.entities.get(entity_id)
            if entity is None:
                return False
            updates = dict(properties)
            if "name" in updates:
                updates["canonical_name"] = canonicalize(updates["name"])
                clash = self._find_canonical(entity.campaign_id, updates["canonical_name"])
                if clash and clash.id != entity_id:
                    raise DuplicateEntityError(entity.campaign_id, updates["canonical_name"])
            updates["updated_at"] = datetime.now()
            self.entities[entity_id] = entity.model_copy(update=updates)
        return True

    def add_entity_source(self, source: EntitySource) -> bool:
        key = (source.entity_id, source.document_id)
        with self._lock:
            if key in self.entity_sources:
                return False
            self.entity_sources[key] = source
        return True

    def create_relationship(
        self, relationship: Relationship, *, ignore_conflicts: bool = False
    ) -> bool:
        with self._lock:
            for existing in self.relationships.values():
                if (
                    existing.campaign_id == relationship.campaign_id
                    and existing.unique_key == relationship.unique_key
                ):
                    if ignore_conflicts:
                        return False
                    raise DuplicateRelationshipError(
                        f"Relationship {relationship.unique_key} already exists"
                    )
            self.relationships[relationship.id] = relationship
        return True

    def list_relationships(self, campaign_id: str) -> List[Relationship]:
        return [r for r in self.relationships.values() if r.campaign_id == campaign_id]

    def add_note(self, note: Note) -> str:
        self.notes[note.id] = note
        return note.id

    def add_note_link(self, link: NoteLink) -> None:
        self.note_links.append(link)

    def list_notes(self, campaign_id: str) -> List[Note]:
        return [n for n in self.notes.values() if n.campaign_id == campaign_id]

    def list_note_links(self, campaign_id: str) -> List[NoteLink]:
        return [link for link in self.note_links if link.campaign_id == campaign_id]

    def _find_canonical(self, campaign_id: str, canonical_name: str) -> Optional[Entity]:
        for entity in self.entities.values():
            if entity.campaign_id == campaign_id and entity.canonical_name == canonical_name:
                return entity
        return None

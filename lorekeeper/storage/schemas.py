"""Pydantic models for persisted campaign knowledge (entities, relationships, sources)."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from lorekeeper.normalization.canonical import canonicalize


def _new_id() -> str:
    return str(uuid4())


class Document(BaseModel):
    """An uploaded source document."""

    id: str = Field(default_factory=_new_id, description="Unique document identifier")
    campaign_id: str = Field(..., description="Owning campaign")
    name: str = Field(..., description="Display name (usually the file name)")
    content: str = Field(default="", description="Plain-text content")
    file_type: str = Field(default="text/plain", description="MIME type of the source")
    uploaded_by: Optional[str] = Field(default=None, description="Uploader user id")
    created_at: datetime = Field(default_factory=datetime.now)


class Entity(BaseModel):
    """A persisted wiki entity.

    ``entity_type`` is an open string tag; the extraction model may invent new
    types, so it is never checked against a fixed list.
    """

    id: str = Field(default_factory=_new_id, description="Unique entity identifier")
    campaign_id: str = Field(..., description="Owning campaign")
    name: str = Field(..., description="Display name")
    canonical_name: str = Field(default="", description="Unique (per campaign) normalized name")
    entity_type: str = Field(default="freeform", description="Open type tag")
    content: str = Field(default="", description="Markdown wiki content")
    aliases: List[str] = Field(default_factory=list, description="Alternative names")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    is_dm_only: bool = Field(default=False, description="Hidden from players")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Entity name cannot be empty")
        return v.strip()

    def model_post_init(self, __context: Any) -> None:
        if not self.canonical_name:
            self.canonical_name = canonicalize(self.name)

    def to_neo4j_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


class Relationship(BaseModel):
    """A typed, directed edge between two persisted entities."""

    id: str = Field(default_factory=_new_id, description="Unique relationship identifier")
    campaign_id: str = Field(..., description="Owning campaign")
    source_entity_id: str = Field(..., description="Source entity id")
    target_entity_id: str = Field(..., description="Target entity id")
    relationship_type: str = Field(..., description="Relationship type tag")
    reverse_label: Optional[str] = Field(default=None, description="Label when read backwards")
    document_id: Optional[str] = Field(default=None, description="Document it was extracted from")
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def unique_key(self) -> tuple[str, str, str]:
        return (self.source_entity_id, self.target_entity_id, self.relationship_type)

    def to_neo4j_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["created_at"] = self.created_at.isoformat()
        return data


class EntitySource(BaseModel):
    """Provenance link between an entity and a document it was found in."""

    entity_id: str
    document_id: str
    excerpt: str = ""
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class Note(BaseModel):
    """Legacy free-form note (pre-entity wiki)."""

    id: str = Field(default_factory=_new_id)
    campaign_id: str
    title: str
    slug: str = ""
    note_type: str = "freeform"
    content: str = ""
    is_dm_only: bool = False

    def model_post_init(self, __context: Any) -> None:
        if not self.slug:
            self.slug = canonicalize(self.title)


class NoteLink(BaseModel):
    """Legacy wikilink edge between two notes."""

    campaign_id: str
    source_note_id: str
    target_note_id: str

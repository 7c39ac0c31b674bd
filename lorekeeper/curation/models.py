"""Review-stage models: staged candidates, existing-entity matches and commit payloads."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lorekeeper.normalization.canonical import canonicalize


def new_temp_id() -> str:
    return str(uuid4())


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDITED = "edited"


COMMITTABLE_STATUSES = frozenset({ReviewStatus.APPROVED, ReviewStatus.EDITED})


class CamelModel(BaseModel):
    """Serialises with camelCase keys under ``by_alias=True``; accepts either form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StagedEntity(CamelModel):
    """An extraction candidate awaiting a reviewer decision."""

    temp_id: str = Field(default_factory=new_temp_id)
    name: str
    canonical_name: str = ""
    entity_type: str = "freeform"
    content: str = ""
    aliases: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    excerpt: str = ""
    is_dm_only: bool = False
    status: ReviewStatus = ReviewStatus.PENDING
    merge_target_id: Optional[str] = None

    def model_post_init(self, __context: object) -> None:
        if not self.canonical_name:
            self.canonical_name = canonicalize(self.name)

    @property
    def is_committable(self) -> bool:
        return self.status in COMMITTABLE_STATUSES


class StagedRelationship(CamelModel):
    """A relationship between two staged entities, referenced by temp id."""

    temp_id: str = Field(default_factory=new_temp_id)
    source_temp_id: str
    target_temp_id: str
    source_name: str = ""
    target_name: str = ""
    relationship_type: str
    reverse_label: Optional[str] = None
    excerpt: str = ""


class ExistingEntitySummary(CamelModel):
    id: str
    name: str
    entity_type: str
    aliases: List[str] = Field(default_factory=list)
    canonical_name: str


class EntityMatch(CamelModel):
    """Advisory link between a staged entity and an already persisted one."""

    staged_temp_id: str
    existing_entity: ExistingEntitySummary
    match_type: Literal["exact", "alias"]
    confidence: float


class BatchCommitRequest(CamelModel):
    document_name: str
    document_content: str = ""
    entities: List[StagedEntity] = Field(default_factory=list)
    relationships: List[StagedRelationship] = Field(default_factory=list)
    uploaded_by: Optional[str] = None


class CommittedEntity(CamelModel):
    temp_id: str
    id: str
    name: str


class EmbeddingsStatus(CamelModel):
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    pending: int = 0


class BatchCommitResponse(CamelModel):
    document_id: str
    created_entities: List[CommittedEntity] = Field(default_factory=list)
    merged_entities: List[CommittedEntity] = Field(default_factory=list)
    failed_entities: List[str] = Field(default_factory=list)
    created_relationships: int = 0
    embeddings_status: EmbeddingsStatus = Field(default_factory=EmbeddingsStatus)

    @property
    def summary(self) -> str:
        return (
            f"{len(self.created_entities)} created, {len(self.merged_entities)} merged, "
            f"{len(self.failed_entities)} failed"
        )

"""Shared data models for extraction modules."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def clamp_confidence(value: Any) -> float:
    """Coerce ``value`` to a float in [0, 1]; unparseable values become 0.0."""
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(score, 1.0))


class EntityMention(BaseModel):
    """One entity as reported by a single model call.

    ``type`` is an open tag: the model may invent new types, so it is never
    validated against a fixed list.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    type: str
    aliases: List[str] = Field(default_factory=list)
    description: str = ""
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_confidence(v)

    @field_validator("aliases", mode="before")
    @classmethod
    def _coerce_aliases(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v.strip()] if v.strip() else []
        return [str(a).strip() for a in v if str(a).strip()]


class RelationshipMention(BaseModel):
    """A typed edge between two entity names, as reported by a model call."""

    model_config = ConfigDict(extra="ignore")

    source_entity: str
    target_entity: str
    relationship_type: str
    reverse_label: Optional[str] = None
    excerpt: str = ""


class ChunkExtraction(BaseModel):
    """Atomic output of one model call over one chunk."""

    entities: List[EntityMention] = Field(default_factory=list)
    relationships: List[RelationshipMention] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "ChunkExtraction":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.entities and not self.relationships


class ExtractedEntity(BaseModel):
    """A deduplicated entity produced by the cross-chunk merger."""

    name: str
    canonical_name: str
    type: str
    content: str
    aliases: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    relationships: List[RelationshipMention] = Field(default_factory=list)


class ExtractionProgress(BaseModel):
    """Progress report emitted while a document is being extracted."""

    stage: str
    current: int
    total: int
    message: str


class ExtractionResult(BaseModel):
    """Final output of the extraction pipeline for one document."""

    entities: List[ExtractedEntity] = Field(default_factory=list)
    relationships: List[RelationshipMention] = Field(default_factory=list)
    summary: str = ""

"""In-memory review state for one extraction preview.

Status transitions per staged entity:

- ``pending`` -> ``approved`` / ``rejected`` through :meth:`ReviewSession.approve`
  and :meth:`ReviewSession.reject`; approved and rejected toggle the same way.
- Any edit sets ``edited``, which commits like ``approved``.
- Assigning a merge target forces ``approved``.
- Bulk approve/reject only touch ``pending`` entities; :meth:`ReviewSession.reset_all`
  returns everything to ``pending`` and clears merge targets.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from loguru import logger

from lorekeeper.curation.models import (
    BatchCommitRequest,
    ReviewStatus,
    StagedEntity,
    StagedRelationship,
)
from lorekeeper.errors import UnknownCandidateError
from lorekeeper.extraction.models import ExtractionResult
from lorekeeper.normalization.canonical import canonicalize, dedupe_preserving_order

EDITABLE_FIELDS = frozenset(
    {"name", "canonical_name", "entity_type", "content", "aliases", "tags", "is_dm_only"}
)


def stage_extraction(
    result: ExtractionResult,
    default_dm_only: bool = False,
    *,
    dm_only_entity_types: Iterable[str] = (),
    confidence: float = 0.8,
    excerpt_length: int = 300,
) -> Tuple[List[StagedEntity], List[StagedRelationship]]:
    """Turn merged extraction output into staged entities and relationships.

    Relationship endpoints are resolved through a lowercase name/alias -> temp id
    map; relationships with an unresolvable endpoint are skipped.
    """
    private_types = {t.lower() for t in dm_only_entity_types}
    staged_entities = [
        StagedEntity(
            name=entity.name,
            canonical_name=entity.canonical_name,
            entity_type=entity.type,
            content=entity.content,
            aliases=list(entity.aliases),
            tags=list(entity.tags),
            confidence=confidence,
            excerpt=entity.content[:excerpt_length],
            is_dm_only=default_dm_only or entity.type.lower() in private_types,
        )
        for entity in result.entities
    ]

    name_to_temp_id: Dict[str, str] = {}
    for staged in staged_entities:
        name_to_temp_id[staged.name.lower()] = staged.temp_id
        for alias in staged.aliases:
            name_to_temp_id[alias.lower()] = staged.temp_id

    staged_relationships: List[StagedRelationship] = []
    for rel in result.relationships:
        source_id = name_to_temp_id.get(rel.source_entity.lower())
        target_id = name_to_temp_id.get(rel.target_entity.lower())
        if not source_id or not target_id:
            continue
        staged_relationships.append(
            StagedRelationship(
                source_temp_id=source_id,
                target_temp_id=target_id,
                source_name=rel.source_entity,
                target_name=rel.target_entity,
                relationship_type=rel.relationship_type,
                reverse_label=rel.reverse_label,
                excerpt=rel.excerpt or "",
            )
        )

    return staged_entities, staged_relationships


class ReviewSession:
    """Reviewer decisions over a set of staged entities and relationships."""

    def __init__(
        self,
        entities: Sequence[StagedEntity],
        relationships: Sequence[StagedRelationship] = (),
    ) -> None:
        self._entities: Dict[str, StagedEntity] = {e.temp_id: e for e in entities}
        self._relationships: List[StagedRelationship] = list(relationships)

    @classmethod
    def from_extraction(cls, result: ExtractionResult, **kwargs: Any) -> "ReviewSession":
        entities, relationships = stage_extraction(result, **kwargs)
        return cls(entities, relationships)

    # Accessors ------------------------------------------------------
    @property
    def entities(self) -> List[StagedEntity]:
        return list(self._entities.values())

    @property
    def relationships(self) -> List[StagedRelationship]:
        return list(self._relationships)

    def get(self, temp_id: str) -> StagedEntity:
        try:
            return self._entities[temp_id]
        except KeyError:
            raise UnknownCandidateError(temp_id) from None

    # Single-entity transitions ---------------------------------------
    def approve(self, temp_id: str) -> StagedEntity:
        entity = self.get(temp_id)
        if entity.status != ReviewStatus.EDITED:
            entity.status = ReviewStatus.APPROVED
        return entity

    def reject(self, temp_id: str) -> StagedEntity:
        entity = self.get(temp_id)
        entity.status = ReviewStatus.REJECTED
        return entity

    def edit(self, temp_id: str, **updates: Any) -> StagedEntity:
        """Apply field edits; the entity becomes ``edited``.

        Raises:
            ValueError: an update names a field that is not editable
            pydantic.ValidationError: an updated value has the wrong type
        """
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")

        entity = self.get(temp_id)
        if "name" in updates and "canonical_name" not in updates:
            updates["canonical_name"] = canonicalize(updates["name"])
        validated = StagedEntity.model_validate({**entity.model_dump(), **updates})

        for field in updates:
            value = getattr(validated, field)
            if field in ("aliases", "tags"):
                value = dedupe_preserving_order(value)
            setattr(entity, field, value)
        entity.status = ReviewStatus.EDITED
        return entity

    def set_merge_target(self, temp_id: str, entity_id: str) -> StagedEntity:
        entity = self.get(temp_id)
        entity.merge_target_id = entity_id
        entity.status = ReviewStatus.APPROVED
        return entity

    def clear_merge_target(self, temp_id: str) -> StagedEntity:
        entity = self.get(temp_id)
        entity.merge_target_id = None
        return entity

    # Bulk operations -------------------------------------------------
    def approve_all_pending(self) -> int:
        return self._set_pending(ReviewStatus.APPROVED)

    def reject_all_pending(self) -> int:
        return self._set_pending(ReviewStatus.REJECTED)

    def reset_all(self) -> None:
        for entity in self._entities.values():
            entity.status = ReviewStatus.PENDING
            entity.merge_target_id = None

    def _set_pending(self, status: ReviewStatus) -> int:
        changed = 0
        for entity in self._entities.values():
            if entity.status == ReviewStatus.PENDING:
                entity.status = status
                changed += 1
        return changed

    # Views -----------------------------------------------------------
    def counts(self) -> Dict[str, int]:
        tally = Counter(e.status.value for e in self._entities.values())
        counts = {status.value: tally.get(status.value, 0) for status in ReviewStatus}
        counts["total"] = len(self._entities)
        return counts

    def approved_entities(self) -> List[StagedEntity]:
        return [e for e in self._entities.values() if e.is_committable]

    def approved_relationships(self) -> List[StagedRelationship]:
        approved = {e.temp_id for e in self.approved_entities()}
        return [
            r
            for r in self._relationships
            if r.source_temp_id in approved and r.target_temp_id in approved
        ]

    def build_commit_request(
        self, document_name: str, document_content: str = ""
    ) -> BatchCommitRequest:
        request = BatchCommitRequest(
            document_name=document_name,
            document_content=document_content,
            entities=[e.model_copy(deep=True) for e in self.approved_entities()],
            relationships=[r.model_copy() for r in self.approved_relationships()],
        )
        logger.info(
            "Built commit request",
            document=document_name,
            entities=len(request.entities),
            relationships=len(request.relationships),
        )
        return request

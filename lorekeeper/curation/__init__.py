"""Curation package: staging, duplicate matching and batch commit."""

from lorekeeper.curation.batch_commit import BatchCommitService, sanitize_text
from lorekeeper.curation.entity_service import EntityService
from lorekeeper.curation.matcher import ExistingEntityMatcher, find_existing_matches
from lorekeeper.curation.models import (
    BatchCommitRequest,
    BatchCommitResponse,
    CommittedEntity,
    EmbeddingsStatus,
    EntityMatch,
    ExistingEntitySummary,
    ReviewStatus,
    StagedEntity,
    StagedRelationship,
)
from lorekeeper.curation.review_session import ReviewSession, stage_extraction

__all__ = [
    "BatchCommitRequest",
    "BatchCommitResponse",
    "BatchCommitService",
    "CommittedEntity",
    "EmbeddingsStatus",
    "EntityMatch",
    "EntityService",
    "ExistingEntityMatcher",
    "ExistingEntitySummary",
    "ReviewSession",
    "ReviewStatus",
    "StagedEntity",
    "StagedRelationship",
    "find_existing_matches",
    "sanitize_text",
    "stage_extraction",
]

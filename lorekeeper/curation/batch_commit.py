"""Commit reviewer-approved candidates to the graph store.

Writes are sequential and isolated per item: a failing entity or relationship
is logged and skipped, the rest of the batch still commits. Search-index
post-processing is spawned per created entity and joined under one timeout;
tasks still running at the deadline are left alone and reported as pending.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from lorekeeper.curation.models import (
    BatchCommitRequest,
    BatchCommitResponse,
    CommittedEntity,
    EmbeddingsStatus,
    StagedEntity,
)
from lorekeeper.errors import EmptyCommitError
from lorekeeper.normalization.canonical import dedupe_preserving_order
from lorekeeper.storage.base import GraphStore
from lorekeeper.storage.schemas import Document, Entity, EntitySource, Relationship
from lorekeeper.utils.config import CurationConfig

# NUL and C0 control characters other than tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

IndexFn = Callable[[Entity], Awaitable[Any]]


def sanitize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _CONTROL_CHARS.sub("", text)


class BatchCommitService:
    """Persist an approved batch: document, entities (create or merge), relationships."""

    def __init__(
        self,
        store: GraphStore,
        config: Optional[CurationConfig] = None,
        *,
        index_entity: Optional[IndexFn] = None,
    ) -> None:
        self.store = store
        self.config = config or CurationConfig()
        self.index_entity = index_entity
        # Holds references to index tasks that outlive a commit call.
        self._background: Set[asyncio.Task] = set()

    async def commit(self, campaign_id: str, request: BatchCommitRequest) -> BatchCommitResponse:
        """Commit ``request`` into ``campaign_id``.

        Raises:
            EmptyCommitError: the request carries no approved or edited entities
        """
        if not any(e.is_committable for e in request.entities):
            raise EmptyCommitError("No approved entities to commit")

        document = Document(
            campaign_id=campaign_id,
            name=sanitize_text(request.document_name),
            content=sanitize_text(request.document_content),
            uploaded_by=request.uploaded_by,
        )
        self.store.create_document(document)

        response = BatchCommitResponse(document_id=document.id)
        temp_to_real: Dict[str, str] = {}
        index_tasks: List[asyncio.Task] = []

        for staged in request.entities:
            if not staged.is_committable:
                logger.debug("Skipping entity {}: status {}", staged.temp_id, staged.status.value)
                continue
            try:
                if staged.merge_target_id and self._merge(
                    campaign_id, staged, document.id, temp_to_real, response
                ):
                    continue
                entity = self._create(campaign_id, staged, document.id)
            except Exception as e:
                logger.error("Failed to commit entity {}: {}", staged.name, e)
                response.failed_entities.append(staged.name)
                continue

            temp_to_real[staged.temp_id] = entity.id
            response.created_entities.append(
                CommittedEntity(temp_id=staged.temp_id, id=entity.id, name=entity.name)
            )
            if self.index_entity is not None:
                index_tasks.append(self._spawn_index(entity))

        for rel in request.relationships:
            source_id = temp_to_real.get(rel.source_temp_id)
            target_id = temp_to_real.get(rel.target_temp_id)
            if not source_id or not target_id:
                logger.debug("Skipping relationship {}: missing entity mapping", rel.temp_id)
                continue
            try:
                created = self.store.create_relationship(
                    Relationship(
                        campaign_id=campaign_id,
                        source_entity_id=source_id,
                        target_entity_id=target_id,
                        relationship_type=rel.relationship_type,
                        reverse_label=rel.reverse_label,
                        document_id=document.id,
                    ),
                    ignore_conflicts=True,
                )
            except Exception as e:
                logger.error("Failed to create relationship {}: {}", rel.temp_id, e)
                continue
            if created:
                response.created_relationships += 1

        response.embeddings_status = await self._await_index(index_tasks)
        logger.info(
            "Committed batch",
            campaign_id=campaign_id,
            document_id=document.id,
            created=len(response.created_entities),
            merged=len(response.merged_entities),
            failed=len(response.failed_entities),
            relationships=response.created_relationships,
        )
        return response

    def _merge(
        self,
        campaign_id: str,
        staged: StagedEntity,
        document_id: str,
        temp_to_real: Dict[str, str],
        response: BatchCommitResponse,
    ) -> bool:
        """Fold ``staged`` into its merge target; False when the target is unusable."""
        target = self.store.get_entity(staged.merge_target_id)
        if target is None or target.campaign_id != campaign_id:
            logger.warning(
                "Merge target {} not found in campaign; creating {} instead",
                staged.merge_target_id,
                staged.name,
            )
            return False

        aliases = dedupe_preserving_order(
            [*target.aliases, *(sanitize_text(a) for a in staged.aliases)]
        )
        self.store.update_entity(target.id, {"aliases": aliases})
        self.store.add_entity_source(
            EntitySource(
                entity_id=target.id,
                document_id=document_id,
                excerpt=staged.content[: self.config.source_excerpt_length],
                confidence=self.config.merge_source_confidence,
            )
        )
        temp_to_real[staged.temp_id] = target.id
        response.merged_entities.append(
            CommittedEntity(temp_id=staged.temp_id, id=target.id, name=target.name)
        )
        return True

    def _create(self, campaign_id: str, staged: StagedEntity, document_id: str) -> Entity:
        content = sanitize_text(staged.content)
        entity = Entity(
            campaign_id=campaign_id,
            name=sanitize_text(staged.name),
            canonical_name=staged.canonical_name,
            entity_type=staged.entity_type,
            content=content,
            aliases=[a for a in (sanitize_text(a) for a in staged.aliases) if a],
            tags=[t for t in (sanitize_text(t) for t in staged.tags) if t],
            is_dm_only=staged.is_dm_only,
        )
        self.store.create_entity(entity)
        self.store.add_entity_source(
            EntitySource(
                entity_id=entity.id,
                document_id=document_id,
                excerpt=content[: self.config.source_excerpt_length],
                confidence=1.0,
            )
        )
        return entity

    def _spawn_index(self, entity: Entity) -> asyncio.Task:
        task = asyncio.create_task(self.index_entity(entity), name=f"index:{entity.id}")
        self._background.add(task)
        task.add_done_callback(self._on_index_done)
        return task

    def _on_index_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Index sync failed for {}: {}", task.get_name(), task.exception())

    async def _await_index(self, tasks: List[asyncio.Task]) -> EmbeddingsStatus:
        status = EmbeddingsStatus(total=len(tasks))
        if not tasks:
            return status

        done, pending = await asyncio.wait(tasks, timeout=self.config.index_timeout)
        for task in done:
            if task.cancelled() or task.exception() is not None:
                status.failed += 1
            else:
                status.succeeded += 1
        status.pending = len(pending)
        if pending:
            logger.warning(
                "{} index task(s) still running after {}s", len(pending), self.config.index_timeout
            )
        return status

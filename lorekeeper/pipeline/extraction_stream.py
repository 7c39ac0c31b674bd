"""Streaming extraction preview for interactive upload flows.

:class:`ExtractionStream` yields named events while a document is extracted:

- ``progress``: coarse stage changes (``parsed``, ``loading``, ``starting``, ...)
- ``extraction``: per-batch orchestrator progress (stage, current, total)
- ``entity``: a new candidate name/type as soon as a chunk reports it
- ``error``: terminal failure (empty content, overall timeout, ...)
- ``complete``: the :class:`ExtractPreviewResponse` with staged candidates and
  existing-entity matches

The interactive path uses tighter limits than batch extraction (fewer chunks,
sequential calls, one overall deadline).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Set
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field

from lorekeeper.curation.matcher import ExistingEntityMatcher
from lorekeeper.curation.models import CamelModel, EntityMatch, StagedEntity, StagedRelationship
from lorekeeper.curation.review_session import stage_extraction
from lorekeeper.errors import ExtractionTimeoutError
from lorekeeper.extraction.models import EntityMention, ExtractionProgress, ExtractionResult
from lorekeeper.extraction.orchestrator import ChunkExtractFn
from lorekeeper.normalization.canonical import canonicalize
from lorekeeper.pipeline.extraction_pipeline import run_extraction
from lorekeeper.storage.base import GraphStore
from lorekeeper.utils.config import (
    CurationConfig,
    ExtractionConfig,
    LLMConfig,
    PromptsConfig,
    StreamingConfig,
    VisibilityConfig,
)

EventName = Literal["progress", "extraction", "entity", "error", "complete"]


class StreamEvent(BaseModel):
    event: EventName
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Server-sent-events wire format."""
        return f"event: {self.event}\ndata: {json.dumps(self.data, default=str)}\n\n"


class ExtractPreviewResponse(CamelModel):
    success: bool = True
    document_id: str = Field(default_factory=lambda: str(uuid4()))
    file_name: str
    summary: str = ""
    extracted_entities: List[StagedEntity] = Field(default_factory=list)
    extracted_relationships: List[StagedRelationship] = Field(default_factory=list)
    existing_entity_matches: List[EntityMatch] = Field(default_factory=list)


def _progress(stage: str, message: str, **extra: Any) -> StreamEvent:
    return StreamEvent(event="progress", data={"stage": stage, "message": message, **extra})


def _error(message: str) -> StreamEvent:
    return StreamEvent(event="error", data={"message": message})


class ExtractionStream:
    """Produce the event sequence for one document preview."""

    def __init__(
        self,
        store: GraphStore,
        *,
        extraction: Optional[ExtractionConfig] = None,
        streaming: Optional[StreamingConfig] = None,
        visibility: Optional[VisibilityConfig] = None,
        curation: Optional[CurationConfig] = None,
        llm_config: Optional[LLMConfig] = None,
        custom_prompts: Optional[PromptsConfig] = None,
        extractor: Optional[ChunkExtractFn] = None,
    ) -> None:
        self.store = store
        self.extraction = extraction or ExtractionConfig()
        self.streaming = streaming or StreamingConfig()
        self.visibility = visibility or VisibilityConfig()
        self.curation = curation or CurationConfig()
        self.llm_config = llm_config
        self.custom_prompts = custom_prompts
        self.extractor = extractor

    async def stream(
        self, campaign_id: str, file_name: str, content: str, language: str = "en"
    ) -> AsyncIterator[StreamEvent]:
        try:
            async for event in self._stream(campaign_id, file_name, content, language):
                yield event
        except Exception as e:
            logger.exception("Extraction stream failed for {}", file_name)
            yield _error(str(e) or "Extraction failed")

    async def _stream(
        self, campaign_id: str, file_name: str, content: str, language: str
    ) -> AsyncIterator[StreamEvent]:
        content = (content or "").strip()
        if not content:
            yield _error("No content extracted from file")
            return

        yield _progress(
            "parsed", f"Parsed {len(content):,} characters", contentLength=len(content)
        )

        yield _progress("loading", "Loading existing entities...")
        existing_names = self.store.list_entity_names(campaign_id)
        yield _progress(
            "loaded",
            f"Found {len(existing_names)} existing entities",
            existingCount=len(existing_names),
        )

        settings = self.extraction.model_copy(
            update={
                "max_chunks": self.streaming.max_chunks,
                "parallel_batch_size": self.streaming.parallel_batch_size,
            }
        )
        yield _progress(
            "starting",
            f"Starting AI extraction ({settings.aggressiveness} mode)...",
            mode=settings.aggressiveness,
        )

        queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        announced: Set[str] = {name.lower() for name in existing_names} | {
            canonicalize(name) for name in existing_names
        }

        def on_progress(progress: ExtractionProgress) -> None:
            queue.put_nowait(StreamEvent(event="extraction", data=progress.model_dump()))

        def on_entity(mention: EntityMention) -> None:
            key = mention.name.lower()
            if key in announced or canonicalize(mention.name) in announced:
                return
            announced.add(key)
            queue.put_nowait(
                StreamEvent(event="entity", data={"name": mention.name, "type": mention.type})
            )

        task = asyncio.create_task(
            run_extraction(
                content,
                file_name,
                existing_names,
                language,
                on_progress,
                settings,
                extractor=self.extractor,
                on_entity=on_entity,
                llm_config=self.llm_config,
                custom_prompts=self.custom_prompts,
                timeout=self.streaming.pipeline_timeout,
            )
        )
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield getter.result()
                    continue
                getter.cancel()
                break
            while not queue.empty():
                yield queue.get_nowait()
        finally:
            if not task.done():
                task.cancel()

        try:
            result: ExtractionResult = task.result()
        except ExtractionTimeoutError as e:
            yield _error(str(e))
            return

        for event in self._preview_events(campaign_id, file_name, result):
            yield event

    def _preview_events(
        self, campaign_id: str, file_name: str, result: ExtractionResult
    ) -> List[StreamEvent]:
        events = [
            _progress(
                "processing",
                f"Processing {len(result.entities)} entities...",
                entityCount=len(result.entities),
            )
        ]

        staged_entities, staged_relationships = stage_extraction(
            result,
            self.visibility.default_dm_only,
            dm_only_entity_types=self.visibility.dm_only_entity_types,
            confidence=self.curation.staged_confidence,
            excerpt_length=self.curation.excerpt_length,
        )
        events.append(
            _progress(
                "entities",
                f"Found {len(staged_entities)} entities",
                entityCount=len(staged_entities),
            )
        )
        events.append(
            _progress(
                "relationships",
                f"Found {len(staged_relationships)} relationships",
                relationshipCount=len(staged_relationships),
            )
        )

        events.append(_progress("duplicates", "Checking for duplicates..."))
        matches = ExistingEntityMatcher(self.store.list_entities(campaign_id)).match(
            staged_entities
        )
        if matches:
            events.append(
                _progress(
                    "duplicates",
                    f"Found {len(matches)} potential duplicates",
                    duplicateCount=len(matches),
                )
            )

        response = ExtractPreviewResponse(
            file_name=file_name,
            summary=result.summary,
            extracted_entities=staged_entities,
            extracted_relationships=staged_relationships,
            existing_entity_matches=matches,
        )
        payload = response.model_dump(mode="json", by_alias=True)
        events.append(StreamEvent(event="complete", data=payload))
        return events


async def collect_events(stream: AsyncIterator[StreamEvent]) -> List[StreamEvent]:
    """Drain an event stream into a list."""
    return [event async for event in stream]

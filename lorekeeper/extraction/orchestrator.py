"""Bounded-concurrency orchestration of per-chunk extraction calls.

Chunks are processed in sequential batches; the calls inside one batch run
concurrently and are joined before the next batch starts. Every call races its
own timeout, and a timed-out or failing call contributes an empty extraction,
so one bad chunk never fails the document.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from lorekeeper.errors import ExtractionTimeoutError
from lorekeeper.extraction.models import ChunkExtraction, EntityMention, ExtractionProgress
from lorekeeper.utils.config import ExtractionConfig

ChunkExtractFn = Callable[[str, int, int], Awaitable[ChunkExtraction]]
ProgressCallback = Callable[[ExtractionProgress], None]
EntityCallback = Callable[[EntityMention], None]


class ExtractionOrchestrator:
    """Run chunk extraction in parallel batches with per-chunk timeouts.

    Example:
        >>> orchestrator = ExtractionOrchestrator(ExtractionConfig(parallel_batch_size=2))
        >>> extractions = await orchestrator.run(chunks, extractor)
    """

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_entity: Optional[EntityCallback] = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self.on_progress = on_progress
        self.on_entity = on_entity

    async def run(self, chunks: Sequence[str], extract_fn: ChunkExtractFn) -> List[ChunkExtraction]:
        """Extract every chunk; the result list is aligned with ``chunks``."""
        total = len(chunks)
        batch_size = max(1, self.config.parallel_batch_size)
        extractions: List[ChunkExtraction] = []

        for batch_start in range(0, total, batch_size):
            batch_end = min(batch_start + batch_size, total)
            self._report(
                "extracting",
                batch_start + 1,
                total,
                f"Extracting entities from chunks {batch_start + 1}-{batch_end}/{total}",
            )

            results = await asyncio.gather(
                *(
                    self._extract_one(chunks[idx], idx, total, extract_fn)
                    for idx in range(batch_start, batch_end)
                )
            )
            extractions.extend(results)

            self._report(
                "extracted",
                batch_end,
                total,
                f"Processed {batch_end}/{total} chunks",
            )

        return extractions

    async def run_with_timeout(
        self,
        chunks: Sequence[str],
        extract_fn: ChunkExtractFn,
        timeout: Optional[float] = None,
    ) -> List[ChunkExtraction]:
        """Like :meth:`run`, but abandon everything if the whole run exceeds ``timeout``.

        Raises:
            ExtractionTimeoutError: The deadline passed; partial results are discarded.
        """
        deadline = timeout or self.config.pipeline_timeout
        try:
            return await asyncio.wait_for(self.run(chunks, extract_fn), timeout=deadline)
        except asyncio.TimeoutError as exc:
            logger.error("Extraction exceeded overall timeout of {}s", deadline)
            raise ExtractionTimeoutError("Extraction timed out - try a smaller file") from exc

    async def _extract_one(
        self, chunk: str, index: int, total: int, extract_fn: ChunkExtractFn
    ) -> ChunkExtraction:
        try:
            extraction = await asyncio.wait_for(
                extract_fn(chunk, index, total), timeout=self.config.chunk_timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Chunk {} timed out after {}s", index + 1, self.config.chunk_timeout)
            return ChunkExtraction.empty()
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to process chunk {}: {}", index + 1, exc)
            return ChunkExtraction.empty()

        if extraction is None:
            return ChunkExtraction.empty()
        return self._filter(extraction)

    def _filter(self, extraction: ChunkExtraction) -> ChunkExtraction:
        threshold = self.config.confidence_threshold
        entities = [e for e in extraction.entities if e.confidence >= threshold]
        relationships = extraction.relationships if self.config.enable_relationships else []

        if self.on_entity:
            for entity in entities:
                self.on_entity(entity)

        return ChunkExtraction(entities=entities, relationships=list(relationships))

    def _report(self, stage: str, current: int, total: int, message: str) -> None:
        logger.debug(message)
        if self.on_progress:
            self.on_progress(
                ExtractionProgress(stage=stage, current=current, total=total, message=message)
            )

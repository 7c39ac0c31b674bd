"""Document extraction pipeline: chunk, extract per chunk, merge.

``run_extraction`` is the single entry point used by scripts and by the
streaming preview. It applies settings defaults, bounds the number of chunks,
reports progress and returns merged entities plus a one-line summary.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

from loguru import logger
from pydantic.alias_generators import to_snake

from lorekeeper.extraction.entity_merger import CrossChunkMerger
from lorekeeper.extraction.llm_extractor import LLMExtractor
from lorekeeper.extraction.models import ExtractionProgress, ExtractionResult
from lorekeeper.extraction.orchestrator import (
    ChunkExtractFn,
    EntityCallback,
    ExtractionOrchestrator,
    ProgressCallback,
)
from lorekeeper.ingestion.chunker import DocumentChunker
from lorekeeper.utils.config import ExtractionConfig, LLMConfig, PromptsConfig

SettingsLike = Union[ExtractionConfig, Mapping[str, Any], None]


def coerce_extraction_settings(settings: SettingsLike) -> ExtractionConfig:
    """Build an :class:`ExtractionConfig` from a config, a partial mapping or ``None``.

    Mapping keys may be snake_case or camelCase (``chunkSize``); ``None`` values
    keep the default.
    """
    if settings is None:
        return ExtractionConfig()
    if isinstance(settings, ExtractionConfig):
        return settings
    overrides = {to_snake(key): value for key, value in settings.items() if value is not None}
    unknown = set(overrides) - set(ExtractionConfig.model_fields)
    if unknown:
        logger.warning("Ignoring unknown extraction settings: {}", sorted(unknown))
    return ExtractionConfig(
        **{k: v for k, v in overrides.items() if k in ExtractionConfig.model_fields}
    )


async def run_extraction(
    content: str,
    source_label: str,
    existing_names: Iterable[str],
    language: str = "en",
    on_progress: Optional[ProgressCallback] = None,
    settings: SettingsLike = None,
    *,
    extractor: Optional[ChunkExtractFn] = None,
    on_entity: Optional[EntityCallback] = None,
    llm_config: Optional[LLMConfig] = None,
    custom_prompts: Optional[PromptsConfig] = None,
    timeout: Optional[float] = None,
) -> ExtractionResult:
    """Extract a knowledge-graph fragment from one document.

    Args:
        content: Plain-text document
        source_label: Name used in logs and in the summary (usually the file name)
        existing_names: Entity names already in the campaign; never re-extracted
        language: Output language code for generated descriptions
        on_progress: Receives ``chunking`` / ``extracting`` / ``extracted`` events
        settings: :class:`ExtractionConfig` or a partial mapping of its fields
        extractor: Per-chunk extraction callable; defaults to an :class:`LLMExtractor`
        on_entity: Called for every entity that passes the confidence filter
        timeout: Overall deadline for the chunk extraction phase

    Raises:
        ExtractionTimeoutError: ``timeout`` expired; no partial result is returned

    Returns:
        Merged entities and relationships with a summary line
    """
    config = coerce_extraction_settings(settings)
    existing = list(existing_names)

    logger.info(
        "Starting extraction pipeline",
        source=source_label,
        content_length=len(content),
        language=language,
        chunk_size=config.chunk_size,
        aggressiveness=config.aggressiveness,
        confidence_threshold=config.confidence_threshold,
        max_chunks=config.max_chunks,
        existing_entities=len(existing),
    )

    if extractor is None:
        extractor = LLMExtractor(
            llm_config,
            config.prompts_file,
            aggressiveness=config.aggressiveness,
            language=language,
            custom_prompts=custom_prompts,
        )

    chunks = DocumentChunker(config).chunk(content)
    logger.info("Split {} into {} chunks", source_label, len(chunks))
    if len(chunks) > config.max_chunks:
        logger.warning("Limiting to {} chunks (was {})", config.max_chunks, len(chunks))
        chunks = chunks[: config.max_chunks]

    if on_progress:
        on_progress(
            ExtractionProgress(
                stage="chunking",
                current=0,
                total=len(chunks),
                message=f"Split document into {len(chunks)} chunks",
            )
        )

    orchestrator = ExtractionOrchestrator(config, on_progress=on_progress, on_entity=on_entity)
    if timeout is not None:
        extractions = await orchestrator.run_with_timeout(chunks, extractor, timeout)
    else:
        extractions = await orchestrator.run(chunks, extractor)

    merged = CrossChunkMerger().merge(extractions, existing)
    summary = (
        f"Extracted {len(merged.entities)} entities and "
        f"{len(merged.relationships)} relationships from {source_label}"
    )
    logger.info(summary)
    return ExtractionResult(
        entities=merged.entities, relationships=merged.relationships, summary=summary
    )

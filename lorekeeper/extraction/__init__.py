"""Extraction package exports."""

from lorekeeper.extraction.entity_merger import CrossChunkMerger, MergeResult, merge_extractions
from lorekeeper.extraction.llm_extractor import LLMExtractor
from lorekeeper.extraction.models import (
    ChunkExtraction,
    EntityMention,
    ExtractedEntity,
    ExtractionProgress,
    ExtractionResult,
    RelationshipMention,
)
from lorekeeper.extraction.orchestrator import ExtractionOrchestrator

__all__ = [
    "ChunkExtraction",
    "CrossChunkMerger",
    "EntityMention",
    "ExtractedEntity",
    "ExtractionOrchestrator",
    "ExtractionProgress",
    "ExtractionResult",
    "LLMExtractor",
    "MergeResult",
    "RelationshipMention",
    "merge_extractions",
]

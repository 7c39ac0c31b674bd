"""Extraction pipeline entry points."""

from lorekeeper.pipeline.extraction_pipeline import coerce_extraction_settings, run_extraction
from lorekeeper.pipeline.extraction_stream import (
    ExtractionStream,
    ExtractPreviewResponse,
    StreamEvent,
    collect_events,
)

__all__ = [
    "ExtractPreviewResponse",
    "ExtractionStream",
    "StreamEvent",
    "coerce_extraction_settings",
    "collect_events",
    "run_extraction",
]

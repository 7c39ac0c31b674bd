"""Search-index post-processing for committed entities."""

from lorekeeper.indexing.entity_indexer import EntityIndexer

__all__ = ["EntityIndexer"]

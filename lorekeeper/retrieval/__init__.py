"""Graph retrieval: assembling visualization payloads from stored entities."""

from lorekeeper.retrieval.entity_styles import (
    format_entity_type,
    get_type_color,
    get_type_group,
    get_type_icon,
)
from lorekeeper.retrieval.graph_assembler import (
    GraphAssembler,
    GraphQuery,
    GraphQueryService,
    GraphResponse,
    GraphSource,
    NotesGraphResponse,
    build_notes_graph,
)

__all__ = [
    "GraphAssembler",
    "GraphQuery",
    "GraphQueryService",
    "GraphResponse",
    "GraphSource",
    "NotesGraphResponse",
    "build_notes_graph",
    "format_entity_type",
    "get_type_color",
    "get_type_group",
    "get_type_icon",
]

"""Assemble D3-ready graph payloads from persisted entities and relationships.

The assembler is pure: it filters by visibility and type, prunes dangling
edges, optionally expands a neighbourhood around a center entity, and formats
nodes, links and per-type counts. :class:`GraphQueryService` loads a campaign
from a :class:`GraphStore` and dispatches between the entity graph and the
legacy notes graph.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lorekeeper.retrieval.entity_styles import get_type_group
from lorekeeper.storage.base import GraphStore
from lorekeeper.storage.schemas import Entity, Note, NoteLink, Relationship


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GraphSource(str, Enum):
    ENTITIES = "entities"
    LEGACY_NOTES = "legacy-notes"


class GraphQuery(_CamelModel):
    """Graph query parameters."""

    source: GraphSource = GraphSource.ENTITIES
    center: Optional[str] = None
    depth: int = Field(default=2, ge=0)
    type: Optional[str] = None


class GraphNode(_CamelModel):
    id: str
    name: str
    canonical_name: str
    type: str
    group: int


class GraphLink(_CamelModel):
    id: str
    source: str
    target: str
    type: str
    label: str
    reverse_label: Optional[str] = None


class GraphStats(_CamelModel):
    total_nodes: int = 0
    total_links: int = 0
    nodes_by_type: Dict[str, int] = Field(default_factory=dict)
    links_by_type: Dict[str, int] = Field(default_factory=dict)


class GraphData(_CamelModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    links: List[GraphLink] = Field(default_factory=list)


class GraphResponse(_CamelModel):
    graph_data: GraphData
    stats: GraphStats
    is_dm: bool = False
    source: GraphSource = GraphSource.ENTITIES

    def node_ids(self) -> Set[str]:
        return {node.id for node in self.graph_data.nodes}


class NoteNode(_CamelModel):
    id: str
    title: str
    slug: str
    note_type: str


class NoteEdge(_CamelModel):
    source: str
    target: str


class NotesGraphData(_CamelModel):
    nodes: List[NoteNode] = Field(default_factory=list)
    links: List[NoteEdge] = Field(default_factory=list)


class NotesGraphResponse(_CamelModel):
    graph_data: NotesGraphData
    is_dm: bool = False
    source: GraphSource = GraphSource.LEGACY_NOTES


def relationship_display_label(relationship_type: str) -> str:
    return relationship_type.replace("_", " ")


def expand_neighbourhood(
    center_id: str, relationships: Sequence[Relationship], depth: int
) -> Set[str]:
    """Undirected breadth-first expansion of ``depth`` hops from ``center_id``."""
    included = {center_id}
    frontier = {center_id}
    for _ in range(depth):
        next_frontier: Set[str] = set()
        for rel in relationships:
            if rel.source_entity_id in frontier:
                next_frontier.add(rel.target_entity_id)
                included.add(rel.target_entity_id)
            if rel.target_entity_id in frontier:
                next_frontier.add(rel.source_entity_id)
                included.add(rel.source_entity_id)
        frontier = next_frontier
    return included


class GraphAssembler:
    """Turn entity and relationship sets into a graph payload."""

    def build(
        self,
        entities: Sequence[Entity],
        relationships: Sequence[Relationship],
        *,
        include_private: bool,
        entity_type: Optional[str] = None,
        center_id: Optional[str] = None,
        depth: int = 2,
        max_nodes: Optional[int] = None,
    ) -> GraphResponse:
        if depth < 0:
            raise ValueError("depth must be >= 0")

        visible = [e for e in entities if include_private or not e.is_dm_only]
        if entity_type:
            visible = [e for e in visible if e.entity_type == entity_type]

        visible_ids = {e.id for e in visible}
        edges = [
            r
            for r in relationships
            if r.source_entity_id in visible_ids and r.target_entity_id in visible_ids
        ]

        if center_id:
            included = expand_neighbourhood(center_id, edges, depth)
            visible = [e for e in visible if e.id in included]
            edges = [
                r
                for r in edges
                if r.source_entity_id in included and r.target_entity_id in included
            ]
            if depth == 0:
                # Only the center node; a self-loop is still an edge.
                edges = []

        if max_nodes is not None and len(visible) > max_nodes:
            logger.info("Graph truncated", total=len(visible), max_nodes=max_nodes)
            visible = sorted(visible, key=lambda e: e.id != center_id)[:max_nodes]
            kept = {e.id for e in visible}
            edges = [r for r in edges if r.source_entity_id in kept and r.target_entity_id in kept]

        nodes = [
            GraphNode(
                id=e.id,
                name=e.name,
                canonical_name=e.canonical_name,
                type=e.entity_type,
                group=get_type_group(e.entity_type),
            )
            for e in visible
        ]
        links = [
            GraphLink(
                id=r.id,
                source=r.source_entity_id,
                target=r.target_entity_id,
                type=r.relationship_type,
                label=relationship_display_label(r.relationship_type),
                reverse_label=r.reverse_label,
            )
            for r in edges
        ]
        stats = GraphStats(
            total_nodes=len(nodes),
            total_links=len(links),
            nodes_by_type=dict(Counter(n.type for n in nodes)),
            links_by_type=dict(Counter(link.type for link in links)),
        )
        return GraphResponse(
            graph_data=GraphData(nodes=nodes, links=links),
            stats=stats,
            is_dm=include_private,
        )


def build_notes_graph(
    notes: Sequence[Note], links: Sequence[NoteLink], include_private: bool
) -> NotesGraphResponse:
    """Legacy notes graph: visible notes and the links between them."""
    visible = [n for n in notes if include_private or not n.is_dm_only]
    visible_ids = {n.id for n in visible}
    return NotesGraphResponse(
        graph_data=NotesGraphData(
            nodes=[
                NoteNode(id=n.id, title=n.title, slug=n.slug, note_type=n.note_type)
                for n in visible
            ],
            links=[
                NoteEdge(source=link.source_note_id, target=link.target_note_id)
                for link in links
                if link.source_note_id in visible_ids and link.target_note_id in visible_ids
            ],
        ),
        is_dm=include_private,
    )


class GraphQueryService:
    """Load a campaign's graph from storage and assemble the requested view."""

    def __init__(
        self,
        store: GraphStore,
        assembler: Optional[GraphAssembler] = None,
        *,
        max_nodes: Optional[int] = None,
    ) -> None:
        self.store = store
        self.assembler = assembler or GraphAssembler()
        self.max_nodes = max_nodes

    def query(
        self, campaign_id: str, query: GraphQuery, include_private: bool
    ) -> Union[GraphResponse, NotesGraphResponse]:
        if query.source == GraphSource.ENTITIES:
            try:
                return self.assembler.build(
                    self.store.list_entities(campaign_id),
                    self.store.list_relationships(campaign_id),
                    include_private=include_private,
                    entity_type=query.type,
                    center_id=query.center,
                    depth=query.depth,
                    max_nodes=self.max_nodes,
                )
            except Exception as e:
                logger.error("Entity graph failed, falling back to notes: {}", e)
        return build_notes_graph(
            self.store.list_notes(campaign_id),
            self.store.list_note_links(campaign_id),
            include_private,
        )

from __future__ import annotations

from typing import List

import pytest

from lorekeeper.retrieval.entity_styles import get_type_color, get_type_group, get_type_icon
from lorekeeper.retrieval.graph_assembler import (
    GraphAssembler,
    GraphQuery,
    GraphQueryService,
    GraphResponse,
    NotesGraphResponse,
    expand_neighbourhood,
)
from lorekeeper.storage import InMemoryGraphStore
from lorekeeper.storage.schemas import Entity, Note, NoteLink, Relationship


def _entity(entity_id: str, entity_type: str = "npc", dm_only: bool = False) -> Entity:
    return Entity(
        id=entity_id, campaign_id="c1", name=entity_id, entity_type=entity_type, is_dm_only=dm_only
    )


def _rel(source: str, target: str, rel_type: str = "knows") -> Relationship:
    return Relationship(
        id=f"{source}-{target}",
        campaign_id="c1",
        source_entity_id=source,
        target_entity_id=target,
        relationship_type=rel_type,
    )


@pytest.fixture
def chain() -> tuple[List[Entity], List[Relationship]]:
    entities = [_entity("A"), _entity("B"), _entity("C", "location"), _entity("D")]
    relationships = [_rel("A", "B"), _rel("B", "C", "lives_in"), _rel("C", "D")]
    return entities, relationships


@pytest.mark.parametrize(
    "depth, expected",
    [(0, {"A"}), (1, {"A", "B"}), (2, {"A", "B", "C"}), (3, {"A", "B", "C", "D"})],
)
def test_neighbourhood_depth(chain, depth: int, expected: set) -> None:
    entities, relationships = chain

    response = GraphAssembler().build(
        entities, relationships, include_private=True, center_id="A", depth=depth
    )

    assert response.node_ids() == expected
    for link in response.graph_data.links:
        assert link.source in expected and link.target in expected


def test_depth_zero_has_no_edges_even_with_self_loop(chain) -> None:
    entities, relationships = chain

    response = GraphAssembler().build(
        entities, [*relationships, _rel("A", "A")], include_private=True, center_id="A", depth=0
    )

    assert response.node_ids() == {"A"}
    assert response.graph_data.links == []
    assert response.stats.total_links == 0


def test_expansion_is_undirected(chain) -> None:
    _, relationships = chain

    assert expand_neighbourhood("D", relationships, 1) == {"C", "D"}


def test_negative_depth_is_rejected(chain) -> None:
    entities, relationships = chain
    with pytest.raises(ValueError):
        GraphAssembler().build(entities, relationships, include_private=True, depth=-1)


def test_private_entities_and_their_edges_are_hidden(chain) -> None:
    entities, relationships = chain
    entities[1] = _entity("B", dm_only=True)

    player_view = GraphAssembler().build(entities, relationships, include_private=False)
    dm_view = GraphAssembler().build(entities, relationships, include_private=True)

    assert player_view.node_ids() == {"A", "C", "D"}
    assert [link.id for link in player_view.graph_data.links] == ["C-D"]
    assert player_view.is_dm is False
    assert dm_view.node_ids() == {"A", "B", "C", "D"}
    assert dm_view.is_dm is True


def test_type_filter_prunes_dangling_edges(chain) -> None:
    entities, relationships = chain

    response = GraphAssembler().build(
        entities, relationships, include_private=True, entity_type="npc"
    )

    assert response.node_ids() == {"A", "B", "D"}
    assert [link.id for link in response.graph_data.links] == ["A-B"]


def test_stats_and_link_formatting(chain) -> None:
    entities, relationships = chain

    response = GraphAssembler().build(entities, relationships, include_private=True)

    assert response.stats.total_nodes == 4
    assert response.stats.total_links == 3
    assert response.stats.nodes_by_type == {"npc": 3, "location": 1}
    assert response.stats.links_by_type == {"knows": 2, "lives_in": 1}
    lives_in = next(link for link in response.graph_data.links if link.type == "lives_in")
    assert lives_in.label == "lives in"
    node_c = next(node for node in response.graph_data.nodes if node.id == "C")
    assert node_c.group == get_type_group("location")

    payload = response.model_dump(by_alias=True)
    assert "graphData" in payload
    assert payload["stats"]["nodesByType"]["npc"] == 3


def test_max_nodes_keeps_center(chain) -> None:
    entities, relationships = chain

    response = GraphAssembler().build(
        entities, relationships, include_private=True, center_id="C", depth=3, max_nodes=2
    )

    assert "C" in response.node_ids()
    assert response.stats.total_nodes == 2


def test_query_service_entity_graph(chain) -> None:
    store = InMemoryGraphStore()
    entities, relationships = chain
    for entity in entities:
        store.create_entity(entity)
    for rel in relationships:
        store.create_relationship(rel)

    query = GraphQuery.model_validate({"center": "A", "depth": 1})
    response = GraphQueryService(store).query("c1", query, include_private=True)

    assert isinstance(response, GraphResponse)
    assert response.node_ids() == {"A", "B"}


def test_query_service_falls_back_to_notes(monkeypatch) -> None:
    store = InMemoryGraphStore()
    first = Note(campaign_id="c1", title="Session One")
    second = Note(campaign_id="c1", title="Secret Plans", is_dm_only=True)
    store.add_note(first)
    store.add_note(second)
    store.add_note_link(
        NoteLink(campaign_id="c1", source_note_id=first.id, target_note_id=second.id)
    )

    def broken(campaign_id: str):
        raise RuntimeError("entities table missing")

    monkeypatch.setattr(store, "list_entities", broken)

    response = GraphQueryService(store).query("c1", GraphQuery(), include_private=False)

    assert isinstance(response, NotesGraphResponse)
    assert [n.slug for n in response.graph_data.nodes] == ["session-one"]
    assert response.graph_data.links == []


def test_legacy_notes_source_is_explicit() -> None:
    store = InMemoryGraphStore()
    store.add_note(Note(campaign_id="c1", title="Old Note"))

    response = GraphQueryService(store).query(
        "c1", GraphQuery(source="legacy-notes"), include_private=True
    )

    assert isinstance(response, NotesGraphResponse)
    assert response.model_dump(by_alias=True)["source"] == "legacy-notes"


def test_type_styles_fall_back_for_unknown_types() -> None:
    assert get_type_icon("npc") != get_type_icon("made_up_type")
    assert get_type_color("made_up_type") == get_type_color("made_up_type")
    assert get_type_color("made_up_type").startswith("#")

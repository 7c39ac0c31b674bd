from __future__ import annotations

import asyncio
from typing import List

import pytest

from lorekeeper.curation.batch_commit import BatchCommitService, sanitize_text
from lorekeeper.curation.models import (
    BatchCommitRequest,
    ReviewStatus,
    StagedEntity,
    StagedRelationship,
)
from lorekeeper.errors import EmptyCommitError, StorageError
from lorekeeper.storage import InMemoryGraphStore
from lorekeeper.storage.schemas import Entity
from lorekeeper.utils.config import CurationConfig


def _staged(temp_id: str, name: str, **kwargs) -> StagedEntity:
    kwargs.setdefault("status", ReviewStatus.APPROVED)
    return StagedEntity(temp_id=temp_id, name=name, content=f"# {name}", **kwargs)


def _rel(temp_id: str, source: str, target: str, rel_type: str = "lives_in") -> StagedRelationship:
    return StagedRelationship(
        temp_id=temp_id, source_temp_id=source, target_temp_id=target, relationship_type=rel_type
    )


@pytest.fixture
def store() -> InMemoryGraphStore:
    store = InMemoryGraphStore()
    store.create_entity(
        Entity(id="existing-grok", campaign_id="c1", name="Grok", aliases=["Big G"])
    )
    return store


def test_commit_creates_and_merges(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="session-1.md",
        document_content="Grok met Mira at the Tavern.",
        entities=[
            _staged(
                "t1", "Grok", aliases=["Grok the Bold", "Big G"], merge_target_id="existing-grok"
            ),
            _staged("t2", "Mira", entity_type="npc"),
            _staged("t3", "Tavern", entity_type="location"),
        ],
        relationships=[_rel("r1", "t2", "t3"), _rel("r2", "t1", "t2", "knows")],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert len(response.created_entities) == 2
    assert len(response.merged_entities) == 1
    assert response.failed_entities == []
    assert response.summary == "2 created, 1 merged, 0 failed"
    assert response.document_id in store.documents

    merged = store.get_entity("existing-grok")
    assert merged.aliases == ["Big G", "Grok the Bold"]
    assert response.merged_entities[0].id == "existing-grok"

    assert response.created_relationships == 2
    mira_id = next(e.id for e in response.created_entities if e.temp_id == "t2")
    tavern_id = next(e.id for e in response.created_entities if e.temp_id == "t3")
    pairs = {
        (r.source_entity_id, r.target_entity_id, r.relationship_type)
        for r in store.list_relationships("c1")
    }
    assert pairs == {(mira_id, tavern_id, "lives_in"), ("existing-grok", mira_id, "knows")}
    assert all(r.document_id == response.document_id for r in store.list_relationships("c1"))


def test_sources_record_provenance(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[
            _staged("t1", "Grok", merge_target_id="existing-grok"),
            _staged("t2", "Mira"),
        ],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    doc_id = response.document_id
    merged_source = store.entity_sources[("existing-grok", doc_id)]
    created_source = store.entity_sources[(response.created_entities[0].id, doc_id)]
    assert merged_source.confidence == 0.9
    assert created_source.confidence == 1.0
    assert created_source.excerpt == "# Mira"


def test_foreign_or_missing_merge_target_falls_back_to_create(store: InMemoryGraphStore) -> None:
    store.create_entity(Entity(id="other-campaign", campaign_id="c2", name="Orb"))
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[
            _staged("t1", "Orb", merge_target_id="other-campaign"),
            _staged("t2", "Mira", merge_target_id="does-not-exist"),
        ],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert [e.name for e in response.created_entities] == ["Orb", "Mira"]
    assert response.merged_entities == []


def test_failing_entity_does_not_abort_batch(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[_staged("t1", "grok"), _staged("t2", "Mira"), _staged("t3", "Tavern")],
        relationships=[_rel("r1", "t1", "t2"), _rel("r2", "t2", "t3")],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert response.failed_entities == ["grok"]
    assert [e.name for e in response.created_entities] == ["Mira", "Tavern"]
    assert response.created_relationships == 1
    assert response.summary == "2 created, 0 merged, 1 failed"


def test_duplicate_relationships_are_not_counted(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[_staged("t1", "Mira"), _staged("t2", "Tavern")],
        relationships=[_rel("r1", "t1", "t2"), _rel("r2", "t1", "t2")],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert response.created_relationships == 1
    assert len(store.list_relationships("c1")) == 1


def test_relationship_storage_error_is_skipped(store: InMemoryGraphStore, monkeypatch) -> None:
    def broken(relationship, *, ignore_conflicts=False):
        raise StorageError("write failed")

    monkeypatch.setattr(store, "create_relationship", broken)
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[_staged("t1", "Mira"), _staged("t2", "Tavern")],
        relationships=[_rel("r1", "t1", "t2")],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert len(response.created_entities) == 2
    assert response.created_relationships == 0


def test_empty_request_is_rejected(store: InMemoryGraphStore) -> None:
    with pytest.raises(EmptyCommitError):
        asyncio.run(
            BatchCommitService(store).commit("c1", BatchCommitRequest(document_name="doc.md"))
        )
    assert store.documents == {}


def test_only_approved_or_edited_entities_are_committed(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[
            _staged("t1", "Alpha"),
            _staged("t2", "Beta", status=ReviewStatus.EDITED),
            StagedEntity(temp_id="t3", name="Rejected", status=ReviewStatus.REJECTED),
            StagedEntity(temp_id="t4", name="Pending"),
        ],
        relationships=[_rel("r1", "t1", "t3"), _rel("r2", "t4", "t2"), _rel("r3", "t1", "t2")],
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    assert [e.name for e in response.created_entities] == ["Alpha", "Beta"]
    assert response.failed_entities == []
    assert response.created_relationships == 1
    assert store.get_entity_by_canonical_name("c1", "rejected") is None
    assert store.get_entity_by_canonical_name("c1", "pending") is None


def test_request_without_approved_entities_is_rejected(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest(
        document_name="doc.md",
        entities=[StagedEntity(temp_id="t1", name="Mira", status=ReviewStatus.REJECTED)],
    )

    with pytest.raises(EmptyCommitError):
        asyncio.run(BatchCommitService(store).commit("c1", request))
    assert store.documents == {}


def test_index_status_counts_succeeded_failed_and_pending(store: InMemoryGraphStore) -> None:
    indexed: List[str] = []
    release = None

    async def index_entity(entity: Entity) -> None:
        if entity.name == "Slow":
            await release.wait()
        if entity.name == "Broken":
            raise RuntimeError("embedding failed")
        indexed.append(entity.name)

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        service = BatchCommitService(
            store, CurationConfig(index_timeout=0.05), index_entity=index_entity
        )
        request = BatchCommitRequest(
            document_name="doc.md",
            entities=[_staged("t1", "Fast"), _staged("t2", "Slow"), _staged("t3", "Broken")],
        )
        response = await service.commit("c1", request)
        # Pending work keeps running after the commit returns.
        release.set()
        await asyncio.sleep(0.01)
        return response

    response = asyncio.run(scenario())

    status = response.embeddings_status
    assert (status.total, status.succeeded, status.failed, status.pending) == (3, 1, 1, 1)
    assert len(response.created_entities) == 3
    assert indexed == ["Fast", "Slow"]


def test_request_and_response_use_camel_case_on_the_wire(store: InMemoryGraphStore) -> None:
    request = BatchCommitRequest.model_validate(
        {
            "documentName": "doc.md",
            "entities": [
                {"tempId": "t1", "name": "Mira", "entityType": "npc", "status": "approved"},
                {"tempId": "t2", "name": "Tavern", "entityType": "location", "status": "edited"},
            ],
            "relationships": [
                {
                    "tempId": "r1",
                    "sourceTempId": "t1",
                    "targetTempId": "t2",
                    "relationshipType": "lives_in",
                }
            ],
        }
    )

    response = asyncio.run(BatchCommitService(store).commit("c1", request))
    payload = response.model_dump(mode="json", by_alias=True)

    assert [e["tempId"] for e in payload["createdEntities"]] == ["t1", "t2"]
    assert payload["createdRelationships"] == 1
    assert payload["embeddingsStatus"] == {"total": 0, "succeeded": 0, "failed": 0, "pending": 0}


def test_control_characters_are_stripped(store: InMemoryGraphStore) -> None:
    assert sanitize_text("Gr\x00ok\x07\tthe\nBold\r") == "Grok\tthe\nBold\r"
    assert sanitize_text(None) == ""

    request = BatchCommitRequest(
        document_name="doc\x00.md",
        entities=[_staged("t1", "Mi\x1bra", aliases=["\x00"], tags=["npc\x0b"])],
    )
    response = asyncio.run(BatchCommitService(store).commit("c1", request))

    created = store.get_entity(response.created_entities[0].id)
    assert created.name == "Mira"
    assert created.aliases == []
    assert created.tags == ["npc"]
    assert store.documents[response.document_id].name == "doc.md"

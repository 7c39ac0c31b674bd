from __future__ import annotations

import pytest
from pydantic import ValidationError

from lorekeeper.curation.models import ReviewStatus, StagedEntity, StagedRelationship
from lorekeeper.curation.review_session import ReviewSession, stage_extraction
from lorekeeper.errors import UnknownCandidateError
from lorekeeper.extraction.models import ExtractedEntity, ExtractionResult, RelationshipMention


@pytest.fixture
def session() -> ReviewSession:
    grok = StagedEntity(temp_id="t-grok", name="Grok", entity_type="npc")
    tavern = StagedEntity(temp_id="t-tavern", name="Tavern", entity_type="location")
    orb = StagedEntity(temp_id="t-orb", name="Orb", entity_type="item")
    rels = [
        StagedRelationship(
            temp_id="r1",
            source_temp_id="t-grok",
            target_temp_id="t-tavern",
            relationship_type="lives_in",
        ),
        StagedRelationship(
            temp_id="r2", source_temp_id="t-grok", target_temp_id="t-orb", relationship_type="owns"
        ),
    ]
    return ReviewSession([grok, tavern, orb], rels)


def _result() -> ExtractionResult:
    return ExtractionResult(
        entities=[
            ExtractedEntity(
                name="Grok",
                canonical_name="grok",
                type="npc",
                content="# Grok\n\nA bouncer.",
                aliases=["Big G"],
                tags=["npc"],
            ),
            ExtractedEntity(
                name="Vault", canonical_name="vault", type="secret", content="# Vault"
            ),
        ],
        relationships=[
            RelationshipMention(
                source_entity="big g", target_entity="VAULT", relationship_type="guards"
            ),
            RelationshipMention(
                source_entity="Grok", target_entity="Nobody", relationship_type="knows"
            ),
        ],
    )


def test_stage_extraction_resolves_endpoints_by_name_and_alias() -> None:
    entities, relationships = stage_extraction(_result(), excerpt_length=8)

    grok, vault = entities
    assert all(e.status == ReviewStatus.PENDING for e in entities)
    assert grok.confidence == 0.8
    assert grok.excerpt == "# Grok\n\n"
    assert len(relationships) == 1
    assert relationships[0].source_temp_id == grok.temp_id
    assert relationships[0].target_temp_id == vault.temp_id
    assert relationships[0].relationship_type == "guards"


def test_stage_extraction_visibility_defaults() -> None:
    entities, _ = stage_extraction(_result(), dm_only_entity_types=["Secret"])
    assert [e.is_dm_only for e in entities] == [False, True]

    entities, _ = stage_extraction(_result(), default_dm_only=True)
    assert all(e.is_dm_only for e in entities)


def test_approve_reject_toggle(session: ReviewSession) -> None:
    assert session.approve("t-grok").status == ReviewStatus.APPROVED
    assert session.reject("t-grok").status == ReviewStatus.REJECTED
    assert session.approve("t-grok").status == ReviewStatus.APPROVED


def test_edit_sets_edited_and_recanonicalizes(session: ReviewSession) -> None:
    session.reject("t-grok")

    edited = session.edit("t-grok", name="Grok the Bold", aliases=["G", "G", "Bold"])

    assert edited.status == ReviewStatus.EDITED
    assert edited.canonical_name == "grok-the-bold"
    assert edited.aliases == ["G", "Bold"]
    assert edited.is_committable
    assert session.approve("t-grok").status == ReviewStatus.EDITED


def test_edit_rejects_unknown_fields(session: ReviewSession) -> None:
    with pytest.raises(ValueError, match="not editable"):
        session.edit("t-grok", status="approved")
    assert session.get("t-grok").status == ReviewStatus.PENDING


def test_edit_validates_values_before_applying(session: ReviewSession) -> None:
    with pytest.raises(ValidationError):
        session.edit("t-grok", name="Grok the Bold", aliases="Big G")

    grok = session.get("t-grok")
    assert grok.name == "Grok"
    assert grok.aliases == []
    assert grok.status == ReviewStatus.PENDING


def test_unknown_temp_id_raises(session: ReviewSession) -> None:
    with pytest.raises(UnknownCandidateError):
        session.approve("missing")


def test_merge_target_forces_approved(session: ReviewSession) -> None:
    session.reject("t-orb")

    entity = session.set_merge_target("t-orb", "existing-42")

    assert entity.status == ReviewStatus.APPROVED
    assert entity.merge_target_id == "existing-42"
    assert session.clear_merge_target("t-orb").merge_target_id is None


def test_bulk_operations_only_touch_pending(session: ReviewSession) -> None:
    session.reject("t-orb")

    assert session.approve_all_pending() == 2
    assert session.get("t-orb").status == ReviewStatus.REJECTED
    assert session.reject_all_pending() == 0

    counts = session.counts()
    assert counts == {"pending": 0, "approved": 2, "rejected": 1, "edited": 0, "total": 3}


def test_reset_all_clears_decisions_and_merge_targets(session: ReviewSession) -> None:
    session.set_merge_target("t-grok", "existing-1")
    session.edit("t-tavern", content="Updated")
    session.reject("t-orb")

    session.reset_all()

    assert all(e.status == ReviewStatus.PENDING for e in session.entities)
    assert session.get("t-grok").merge_target_id is None


def test_approved_relationships_need_both_endpoints(session: ReviewSession) -> None:
    session.approve("t-grok")
    session.edit("t-tavern", content="Edited")
    session.reject("t-orb")

    assert [r.temp_id for r in session.approved_relationships()] == ["r1"]


def test_build_commit_request_copies_approved(session: ReviewSession) -> None:
    session.approve("t-grok")
    session.approve("t-tavern")

    request = session.build_commit_request("notes.md", "raw text")

    assert request.document_name == "notes.md"
    assert [e.temp_id for e in request.entities] == ["t-grok", "t-tavern"]
    assert [r.temp_id for r in request.relationships] == ["r1"]
    request.entities[0].name = "Changed"
    assert session.get("t-grok").name == "Grok"


def test_from_extraction_builds_session() -> None:
    session = ReviewSession.from_extraction(_result(), confidence=0.5)

    assert len(session.entities) == 2
    assert len(session.relationships) == 1
    assert all(e.confidence == 0.5 for e in session.entities)

"""Merge per-chunk extractions into deduplicated entities with wiki content.

Merging is keyed on the lowercase entity name across *all* chunks of a document:

- Mentions whose name (lowercased or canonicalized) already exists in the
  campaign are dropped; they are not new entities.
- Repeated mentions union their aliases (first-seen order, no duplicates) and
  append descriptions unless the new text is already contained. The first
  mention keeps its name casing and type.
- Relationships are deduplicated on (lower source, type, lower target); the
  first occurrence wins.

Each surviving entity gets markdown content: title, aliases, a cross-linked
description, a grouped "Connections" section and a "Mentioned By" section.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from lorekeeper.extraction.models import (
    ChunkExtraction,
    EntityMention,
    ExtractedEntity,
    RelationshipMention,
)
from lorekeeper.extraction.wikilinks import link_known_names
from lorekeeper.normalization.canonical import canonicalize

TYPE_LABELS: Mapping[str, str] = {
    "npc": "Character",
    "location": "Location",
    "item": "Item",
    "quest": "Quest",
    "faction": "Faction",
    "lore": "Lore",
    "session": "Session",
    "player_character": "Player Character",
    "freeform": "Entry",
}

RELATIONSHIP_LABELS: Mapping[str, str] = {
    "lives_in": "Lives in",
    "member_of": "Member of",
    "owns": "Owns",
    "created": "Created",
    "enemy_of": "Enemy of",
    "ally_of": "Ally of",
    "located_in": "Located in",
    "participated_in": "Participated in",
    "mentioned_in": "Mentioned in",
    "related_to": "Related to",
    "knows": "Knows",
    "serves": "Serves",
    "rules": "Rules over",
    "guards": "Guards",
    "seeks": "Seeks",
    "fears": "Fears",
    "loves": "Loves",
    "hates": "Hates",
    "works_for": "Works for",
    "parent_of": "Parent of",
    "child_of": "Child of",
    "sibling_of": "Sibling of",
    "married_to": "Married to",
    "worships": "Worships",
    "leads": "Leads",
    "follows": "Follows",
    "created_by": "Created by",
    "contains": "Contains",
    "part_of": "Part of",
    "killed_by": "Killed by",
    "visited": "Visited",
    "hired_by": "Hired by",
}


def type_label(entity_type: str) -> str:
    return TYPE_LABELS.get(entity_type, "Entry")


def relationship_label(relationship_type: str) -> str:
    return RELATIONSHIP_LABELS.get(relationship_type, relationship_type.replace("_", " "))


class MergeResult(BaseModel):
    """Output of :class:`CrossChunkMerger`."""

    entities: List[ExtractedEntity] = Field(default_factory=list)
    relationships: List[RelationshipMention] = Field(default_factory=list)


class _EntityAccumulator:
    """Internal accumulator for mentions sharing a lowercase name."""

    def __init__(self, mention: EntityMention) -> None:
        self.name = mention.name
        self.type = mention.type
        self.description = mention.description
        self.aliases: List[str] = []
        self.add_aliases(mention.aliases)

    def add(self, mention: EntityMention) -> None:
        self.add_aliases(mention.aliases)
        if mention.description and mention.description not in self.description:
            self.description = (
                f"{self.description} {mention.description}"
                if self.description
                else mention.description
            )

    def add_aliases(self, aliases: Iterable[str]) -> None:
        for alias in aliases:
            if alias and alias not in self.aliases:
                self.aliases.append(alias)


class CrossChunkMerger:
    """Combine chunk extractions into candidate entities and relationships."""

    def merge(
        self,
        extractions: Sequence[ChunkExtraction],
        existing_names: Optional[Iterable[str]] = None,
    ) -> MergeResult:
        existing = [name for name in (existing_names or []) if name]
        existing_keys = {name.lower() for name in existing} | {
            canonicalize(name) for name in existing
        }

        accumulators: Dict[str, _EntityAccumulator] = {}
        all_relationships: List[RelationshipMention] = []
        skipped_existing = 0

        for extraction in extractions:
            for mention in extraction.entities:
                key = mention.name.lower()
                if key in existing_keys or canonicalize(mention.name) in existing_keys:
                    skipped_existing += 1
                    continue
                if key in accumulators:
                    accumulators[key].add(mention)
                else:
                    accumulators[key] = _EntityAccumulator(mention)
            all_relationships.extend(extraction.relationships)

        relationships = self._dedupe_relationships(all_relationships)

        known_names: List[str] = [acc.name for acc in accumulators.values()]
        known_names.extend(existing)

        entities: List[ExtractedEntity] = []
        for key, acc in accumulators.items():
            outgoing = [r for r in relationships if r.source_entity.lower() == key]
            incoming = [r for r in relationships if r.target_entity.lower() == key]
            entities.append(
                ExtractedEntity(
                    name=acc.name,
                    canonical_name=canonicalize(acc.name),
                    type=acc.type,
                    content=self.render_content(acc, outgoing, incoming, known_names),
                    aliases=list(acc.aliases),
                    tags=[acc.type],
                    relationships=[
                        RelationshipMention(
                            source_entity=acc.name,
                            target_entity=r.target_entity,
                            relationship_type=r.relationship_type,
                            reverse_label=r.reverse_label,
                            excerpt=r.excerpt or "",
                        )
                        for r in outgoing
                    ],
                )
            )

        logger.debug(
            "Merged extractions",
            entities=len(entities),
            relationships=len(relationships),
            skipped_existing=skipped_existing,
        )
        return MergeResult(entities=entities, relationships=relationships)

    @staticmethod
    def _dedupe_relationships(
        relationships: Iterable[RelationshipMention],
    ) -> List[RelationshipMention]:
        seen: set[tuple[str, str, str]] = set()
        unique: List[RelationshipMention] = []
        for rel in relationships:
            key = (rel.source_entity.lower(), rel.relationship_type, rel.target_entity.lower())
            if key in seen:
                continue
            seen.add(key)
            unique.append(rel)
        return unique

    def render_content(
        self,
        acc: _EntityAccumulator,
        outgoing: Sequence[RelationshipMention],
        incoming: Sequence[RelationshipMention],
        known_names: Iterable[str],
    ) -> str:
        label = type_label(acc.type)
        description = acc.description or f"A {label.lower()} mentioned in the campaign."
        description = link_known_names(description, known_names, exclude=acc.name)

        lines: List[str] = [f"# {acc.name}", ""]
        if acc.aliases:
            lines.extend([f"*Also known as: {', '.join(acc.aliases)}*", ""])
        lines.extend([description, ""])

        if outgoing:
            grouped: Dict[str, List[str]] = {}
            for rel in outgoing:
                grouped.setdefault(relationship_label(rel.relationship_type), []).append(
                    f"[[{rel.target_entity}]]"
                )
            lines.extend(["## Connections", ""])
            lines.extend(
                f"- **{rel_label}:** {', '.join(targets)}" for rel_label, targets in grouped.items()
            )
            lines.append("")

        backlinks = list(dict.fromkeys(r.source_entity for r in incoming))
        if backlinks:
            lines.extend(["## Mentioned By", ""])
            lines.extend(f"- [[{name}]]" for name in backlinks)
            lines.append("")

        return "\n".join(lines)


def merge_extractions(
    extractions: Sequence[ChunkExtraction], existing_names: Optional[Iterable[str]] = None
) -> MergeResult:
    """Functional shortcut for ``CrossChunkMerger().merge``."""
    return CrossChunkMerger().merge(extractions, existing_names)

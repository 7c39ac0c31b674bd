"""Flag staged candidates that probably duplicate an already persisted entity."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from loguru import logger

from lorekeeper.curation.models import EntityMatch, ExistingEntitySummary, StagedEntity
from lorekeeper.normalization.canonical import canonicalize
from lorekeeper.storage.schemas import Entity

EXACT_MATCH_CONFIDENCE = 1.0
ALIAS_MATCH_CONFIDENCE = 0.8


class ExistingEntityMatcher:
    """Match staged entities against a campaign's persisted entities.

    A canonical-name hit is an ``exact`` match. Otherwise each alias is
    canonicalized in order and the first hit is recorded as an ``alias`` match.
    Matches only annotate candidates; nothing is blocked.
    """

    def __init__(self, existing: Iterable[Entity]) -> None:
        self._by_canonical: Dict[str, Entity] = {}
        for entity in existing:
            self._by_canonical.setdefault(entity.canonical_name.lower(), entity)

    def match_one(self, staged: StagedEntity) -> Optional[EntityMatch]:
        exact = self._by_canonical.get(staged.canonical_name.lower())
        if exact is not None:
            return self._build(staged, exact, "exact", EXACT_MATCH_CONFIDENCE)

        for alias in staged.aliases:
            hit = self._by_canonical.get(canonicalize(alias))
            if hit is not None:
                return self._build(staged, hit, "alias", ALIAS_MATCH_CONFIDENCE)
        return None

    def match(self, staged_entities: Iterable[StagedEntity]) -> List[EntityMatch]:
        matches = [m for m in (self.match_one(s) for s in staged_entities) if m is not None]
        if matches:
            logger.info("Found {} potential duplicates", len(matches))
        return matches

    @staticmethod
    def _build(
        staged: StagedEntity, entity: Entity, match_type: str, confidence: float
    ) -> EntityMatch:
        return EntityMatch(
            staged_temp_id=staged.temp_id,
            existing_entity=ExistingEntitySummary(
                id=entity.id,
                name=entity.name,
                entity_type=entity.entity_type,
                aliases=list(entity.aliases or []),
                canonical_name=entity.canonical_name,
            ),
            match_type=match_type,
            confidence=confidence,
        )


def find_existing_matches(
    staged_entities: Iterable[StagedEntity], existing: Iterable[Entity]
) -> List[EntityMatch]:
    return ExistingEntityMatcher(existing).match(staged_entities)

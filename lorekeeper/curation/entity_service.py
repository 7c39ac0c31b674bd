"""Manual entity creation and editing outside the extraction flow."""

from __future__ import annotations

from typing import List, Optional

from loguru import logger

from lorekeeper.errors import DuplicateEntityError, EntityNotFoundError
from lorekeeper.normalization.canonical import canonicalize, dedupe_preserving_order
from lorekeeper.storage.base import GraphStore
from lorekeeper.storage.schemas import Entity


class EntityService:
    """Validated create/rename operations on persisted entities."""

    def __init__(self, store: GraphStore) -> None:
        self.store = store

    def create_entity(
        self,
        campaign_id: str,
        name: str,
        *,
        entity_type: str = "freeform",
        content: str = "",
        aliases: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        is_dm_only: bool = False,
    ) -> Entity:
        """Create an entity, rejecting canonical-name collisions before any write.

        Raises:
            DuplicateEntityError: the campaign already has an entity with this
                canonical name
            ValueError: the name is empty
        """
        canonical_name = canonicalize(name)
        if not canonical_name:
            raise ValueError("Entity name cannot be empty")
        if self.store.get_entity_by_canonical_name(campaign_id, canonical_name):
            raise DuplicateEntityError(campaign_id, canonical_name)

        entity = Entity(
            campaign_id=campaign_id,
            name=name,
            canonical_name=canonical_name,
            entity_type=entity_type,
            content=content,
            aliases=dedupe_preserving_order(aliases or []),
            tags=dedupe_preserving_order(tags or []),
            is_dm_only=is_dm_only,
        )
        self.store.create_entity(entity)
        logger.info("Created entity", name=entity.name, entity_type=entity_type)
        return entity

    def rename_entity(self, campaign_id: str, entity_id: str, new_name: str) -> Entity:
        """Rename an entity, keeping the canonical name unique within the campaign.

        Raises:
            EntityNotFoundError: no such entity in the campaign
            DuplicateEntityError: another entity already owns the new canonical name
        """
        entity = self.store.get_entity(entity_id)
        if entity is None or entity.campaign_id != campaign_id:
            raise EntityNotFoundError(entity_id)

        canonical_name = canonicalize(new_name)
        clash = self.store.get_entity_by_canonical_name(campaign_id, canonical_name)
        if clash and clash.id != entity_id:
            raise DuplicateEntityError(campaign_id, canonical_name)

        self.store.update_entity(entity_id, {"name": new_name})
        return self.store.get_entity(entity_id)

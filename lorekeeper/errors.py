"""Exception hierarchy shared across lorekeeper packages."""

from __future__ import annotations


class LorekeeperError(Exception):
    """Base class for all lorekeeper errors."""


class ExtractionTimeoutError(LorekeeperError):
    """The overall extraction run did not finish before its deadline."""


class ProviderError(LorekeeperError):
    """The model provider could not be called or returned nothing usable."""


class StorageError(LorekeeperError):
    """Base class for persistence failures."""


class DuplicateEntityError(StorageError):
    """An entity with the same canonical name already exists in the campaign."""

    def __init__(self, campaign_id: str, canonical_name: str) -> None:
        super().__init__("An entity with this name already exists")
        self.campaign_id = campaign_id
        self.canonical_name = canonical_name


class DuplicateRelationshipError(StorageError):
    """A relationship with the same (source, target, type) already exists."""


class EntityNotFoundError(StorageError):
    """Referenced entity does not exist (or belongs to another campaign)."""


class CurationError(LorekeeperError):
    """Base class for review/commit failures."""


class UnknownCandidateError(CurationError, KeyError):
    """A temp id does not refer to a staged entity in the review session."""


class EmptyCommitError(CurationError, ValueError):
    """A commit request carried no entities."""

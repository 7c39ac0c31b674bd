"""Storage package: graph store interface, backends and the entity vector index."""

from lorekeeper.storage.base import GraphStore
from lorekeeper.storage.memory_store import InMemoryGraphStore
from lorekeeper.storage.schemas import (
    Document,
    Entity,
    EntitySource,
    Note,
    NoteLink,
    Relationship,
)

__all__ = [
    "Document",
    "Entity",
    "EntitySource",
    "GraphStore",
    "InMemoryGraphStore",
    "Note",
    "NoteLink",
    "Relationship",
]

"""Normalization package."""

from lorekeeper.normalization.canonical import canonicalize, dedupe_preserving_order

__all__ = ["canonicalize", "dedupe_preserving_order"]

"""Document model, reference tokens and persistence for the studio."""

from __future__ import annotations

from .backing import BackingStore, InMemoryBackingStore, SqlBackingStore  # noqa: F401
from .entities import Asset, AssetType, Chapter, ItemKind, ItemLocation, Page, Project  # noqa: F401
from .errors import InvalidUpdateError, ItemNotFoundError, PersistenceError  # noqa: F401
from .store import DocumentStore  # noqa: F401

__all__ = [
    "Asset",
    "AssetType",
    "BackingStore",
    "Chapter",
    "DocumentStore",
    "InMemoryBackingStore",
    "InvalidUpdateError",
    "ItemKind",
    "ItemLocation",
    "ItemNotFoundError",
    "Page",
    "PersistenceError",
    "Project",
    "SqlBackingStore",
]

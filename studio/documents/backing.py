"""Durable persistence behind the document store.

The contract is whole-collection: every read returns the complete list and
every write replaces it. There is no transactional guarantee, so callers own
read-modify-write correctness.
"""
from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .entities import (
    Asset,
    AssetType,
    Project,
    asset_from_dict,
    asset_to_dict,
    project_from_dict,
    project_to_dict,
    utcnow,
)
from .errors import PersistenceError

LOGGER = logging.getLogger(__name__)

PROJECTS_KEY = "projects"
ASSETS_KEY = "assets"


def seed_data(now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Return the starter library written on first run."""

    stamp = (now or utcnow()).isoformat()
    character_id = "asset-1"
    return {
        PROJECTS_KEY: [
            {
                "id": "proj-1",
                "title": "The Crimson Cipher",
                "description": "A sci-fi thriller set in neo-kyoto.",
                "isPublished": True,
                "createdAt": stamp,
                "updatedAt": stamp,
                "chapters": [
                    {
                        "id": "chap-1",
                        "title": "The Silent Signal",
                        "createdAt": stamp,
                        "updatedAt": stamp,
                        "pages": [
                            {
                                "id": "page-1",
                                "title": "First Encounter",
                                "content": (
                                    "The rain fell in sheets, blurring the neon signs into a watercolor mess. "
                                    f"[[asset:{character_id}:Kael]] adjusted his collar, the synthetic fabric "
                                    "doing little to ward off the chill. He was waiting for a ghost."
                                ),
                                "createdAt": stamp,
                                "updatedAt": stamp,
                            }
                        ],
                    }
                ],
            }
        ],
        ASSETS_KEY: [
            {
                "id": character_id,
                "type": AssetType.CHARACTER.value,
                "name": "Kael",
                "description": "A grizzled cyber-detective haunted by his past.",
                "data": {},
                "createdAt": stamp,
                "updatedAt": stamp,
            }
        ],
    }


class BackingStore(ABC):
    """Whole-collection persistence for projects and assets."""

    @abstractmethod
    def load_projects(self) -> List[Project]:
        raise NotImplementedError

    @abstractmethod
    def load_assets(self) -> List[Asset]:
        raise NotImplementedError

    @abstractmethod
    def save_projects(self, projects: Sequence[Project]) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_assets(self, assets: Sequence[Asset]) -> None:
        raise NotImplementedError

    @abstractmethod
    def seed_if_empty(self) -> bool:
        """Write the starter library when nothing is stored; return whether it did."""
        raise NotImplementedError


class InMemoryBackingStore(BackingStore):
    """Keeps serialized collections in a dictionary.

    Payloads are stored in their wire form and deep-copied on every read and
    write, the same way a key-value store would round-trip them.
    """

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._collections: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(initial or {})
        self.project_writes = 0
        self.asset_writes = 0

    def load_projects(self) -> List[Project]:
        return [project_from_dict(item) for item in copy.deepcopy(self._collections.get(PROJECTS_KEY, []))]

    def load_assets(self) -> List[Asset]:
        return [asset_from_dict(item) for item in copy.deepcopy(self._collections.get(ASSETS_KEY, []))]

    def save_projects(self, projects: Sequence[Project]) -> None:
        self._collections[PROJECTS_KEY] = [project_to_dict(project) for project in projects]
        self.project_writes += 1

    def save_assets(self, assets: Sequence[Asset]) -> None:
        self._collections[ASSETS_KEY] = [asset_to_dict(asset) for asset in assets]
        self.asset_writes += 1

    def seed_if_empty(self) -> bool:
        seeded = False
        defaults = seed_data()
        for key in (PROJECTS_KEY, ASSETS_KEY):
            if key not in self._collections:
                self._collections[key] = defaults[key]
                seeded = True
        return seeded

    def raw(self, key: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._collections.get(key, []))


class SqlBackingStore(BackingStore):
    """Stores each collection as one JSON document in ``stored_collections``.

    Must be used inside an application context.
    """

    def __init__(self, db) -> None:
        self._db = db

    def _read(self, key: str) -> Optional[List[Dict[str, Any]]]:
        from ..models import StoredCollection

        try:
            row = self._db.session.get(StoredCollection, key)
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to read the %s collection", key)
            raise PersistenceError(f"Unable to read {key}: {exc}") from exc
        if row is None:
            return None
        try:
            payload = json.loads(row.payload or "[]")
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Stored {key} collection is not valid JSON: {exc.msg}") from exc
        if not isinstance(payload, list):
            raise PersistenceError(f"Stored {key} collection must be a JSON array.")
        return payload

    def _write(self, key: str, payload: List[Dict[str, Any]]) -> None:
        from ..models import StoredCollection

        try:
            row = self._db.session.get(StoredCollection, key)
            if row is None:
                row = StoredCollection(key=key)
                self._db.session.add(row)
            row.payload = json.dumps(payload, ensure_ascii=False)
            self._db.session.commit()
        except SQLAlchemyError as exc:
            self._db.session.rollback()
            LOGGER.exception("Failed to write the %s collection", key)
            raise PersistenceError(f"Unable to save {key}: {exc}") from exc
        LOGGER.debug("Stored %d %s", len(payload), key)

    def load_projects(self) -> List[Project]:
        return [project_from_dict(item) for item in self._read(PROJECTS_KEY) or []]

    def load_assets(self) -> List[Asset]:
        return [asset_from_dict(item) for item in self._read(ASSETS_KEY) or []]

    def save_projects(self, projects: Sequence[Project]) -> None:
        self._write(PROJECTS_KEY, [project_to_dict(project) for project in projects])

    def save_assets(self, assets: Sequence[Asset]) -> None:
        self._write(ASSETS_KEY, [asset_to_dict(asset) for asset in assets])

    def seed_if_empty(self) -> bool:
        seeded = False
        defaults = seed_data()
        for key in (PROJECTS_KEY, ASSETS_KEY):
            if self._read(key) is None:
                self._write(key, defaults[key])
                seeded = True
        if seeded:
            LOGGER.info("Seeded the library with the starter project.")
        return seeded


__all__ = [
    "ASSETS_KEY",
    "BackingStore",
    "InMemoryBackingStore",
    "PROJECTS_KEY",
    "SqlBackingStore",
    "seed_data",
]

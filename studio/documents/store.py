"""In-memory document tree with write-through persistence.

:class:`DocumentStore` is the single owner of the project hierarchy and the
asset catalog for one application. Readers always receive complete snapshots
(tuples of frozen entities); every mutation swaps in a new tree, bumps
:attr:`DocumentStore.revision`, notifies subscribers and then writes the whole
collection to the backing store.

The in-memory swap happens before the durable write. If the backing store
fails, the :class:`~studio.documents.errors.PersistenceError` propagates to
the caller and memory stays ahead of storage; nothing is rolled back.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .backing import BackingStore
from .entities import (
    ASSET_EDITABLE_FIELDS,
    EDITABLE_FIELDS,
    Asset,
    AssetType,
    Chapter,
    Clock,
    ItemKind,
    ItemLocation,
    Page,
    Project,
    utcnow,
)
from .errors import InvalidUpdateError, ItemNotFoundError

LOGGER = logging.getLogger(__name__)

Listener = Callable[["DocumentStore"], None]


class DocumentStore:
    def __init__(self, backing: BackingStore, *, clock: Clock = utcnow) -> None:
        self._backing = backing
        self._clock = clock
        self._lock = threading.RLock()
        self._projects: Tuple[Project, ...] = ()
        self._assets: Tuple[Asset, ...] = ()
        self._listeners: List[Listener] = []
        self.revision = 0

    # ------------------------------------------------------------------
    # loading and observation
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, backing: BackingStore, *, clock: Clock = utcnow) -> "DocumentStore":
        store = cls(backing, clock=clock)
        store.reload()
        return store

    def reload(self) -> None:
        """Replace memory with whatever the backing store holds."""

        projects = tuple(self._backing.load_projects())
        assets = tuple(self._backing.load_assets())
        with self._lock:
            self._projects = projects
            self._assets = assets
            self.revision += 1
        LOGGER.debug("Loaded %d projects and %d assets", len(projects), len(assets))
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every change; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self)

    @property
    def backing(self) -> BackingStore:
        return self._backing

    @property
    def projects(self) -> Tuple[Project, ...]:
        return self._projects

    @property
    def assets(self) -> Tuple[Asset, ...]:
        return self._assets

    def asset_catalog(self) -> Dict[str, Asset]:
        return {asset.id: asset for asset in self._assets}

    # ------------------------------------------------------------------
    # lookup
    # ------------------------------------------------------------------
    def find_item(self, item_id: str) -> ItemLocation:
        """Return the owning chain for ``item_id`` or an empty location."""

        for project in self._projects:
            if project.id == item_id:
                return ItemLocation(kind=ItemKind.PROJECT, project=project)
            for chapter in project.chapters:
                if chapter.id == item_id:
                    return ItemLocation(kind=ItemKind.CHAPTER, project=project, chapter=chapter)
                for page in chapter.pages:
                    if page.id == item_id:
                        return ItemLocation(kind=ItemKind.PAGE, project=project, chapter=chapter, page=page)
        return ItemLocation()

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        for asset in self._assets:
            if asset.id == asset_id:
                return asset
        return None

    def published_projects(self) -> List[Project]:
        return [project for project in self._projects if project.is_published]

    def get_published_project(self, project_id: str) -> Optional[Project]:
        for project in self._projects:
            if project.id == project_id:
                return project if project.is_published else None
        return None

    # ------------------------------------------------------------------
    # mutation
    # ------------------------------------------------------------------
    def _commit_projects(self, projects: Iterable[Project]) -> Tuple[Project, ...]:
        snapshot = tuple(projects)
        with self._lock:
            self._projects = snapshot
            self.revision += 1
        self._notify()
        self._backing.save_projects(snapshot)
        return snapshot

    def _commit_assets(self, assets: Iterable[Asset]) -> Tuple[Asset, ...]:
        snapshot = tuple(assets)
        with self._lock:
            self._assets = snapshot
            self.revision += 1
        self._notify()
        self._backing.save_assets(snapshot)
        return snapshot

    def replace_all(self, projects: Iterable[Project]) -> Tuple[Project, ...]:
        """Install ``projects`` as the whole tree and persist it."""

        return self._commit_projects(projects)

    def update_item(self, item_id: str, changes: Mapping[str, Any]):
        """Merge ``changes`` into the entity with ``item_id`` and return the new entity.

        The entity kind comes from where the id sits in the tree, and only the
        fields that kind owns are accepted. ``updated_at`` is refreshed on that
        entity alone; parents and siblings keep their timestamps.
        """

        if not changes:
            raise InvalidUpdateError("An update needs at least one field.")

        with self._lock:
            location = self.find_item(item_id)
            if not location.found:
                raise ItemNotFoundError(item_id)

            allowed = EDITABLE_FIELDS[location.kind]
            unknown = sorted(set(changes) - allowed)
            if unknown:
                raise InvalidUpdateError(
                    f"A {location.kind.value} cannot update: {', '.join(unknown)}."
                )
            cleaned = _coerce_fields(changes)
            updated = replace(location.item, **cleaned, updated_at=self._stamp(location.item.updated_at))
            projects = [_swap(project, location, updated) for project in self._projects]

        self._commit_projects(projects)
        return updated

    def add_project(self, project: Project) -> Project:
        with self._lock:
            projects = list(self._projects) + [project]
        self._commit_projects(projects)
        return project

    def add_chapter(self, project_id: str, chapter: Chapter) -> Chapter:
        with self._lock:
            location = self.find_item(project_id)
            if location.kind is not ItemKind.PROJECT:
                raise ItemNotFoundError(project_id, "project")
            target = location.project
            grown = replace(target, chapters=target.chapters + (chapter,))
            projects = [grown if project.id == target.id else project for project in self._projects]
        self._commit_projects(projects)
        return chapter

    def add_page(self, project_id: str, chapter_id: str, page: Page) -> Page:
        with self._lock:
            location = self.find_item(chapter_id)
            if location.kind is not ItemKind.CHAPTER or location.project.id != project_id:
                raise ItemNotFoundError(chapter_id, "chapter")
            grown_chapter = replace(location.chapter, pages=location.chapter.pages + (page,))
            grown_project = replace(
                location.project,
                chapters=tuple(
                    grown_chapter if chapter.id == chapter_id else chapter
                    for chapter in location.project.chapters
                ),
            )
            projects = [grown_project if project.id == project_id else project for project in self._projects]
        self._commit_projects(projects)
        return page

    def add_asset(self, asset: Asset) -> Asset:
        with self._lock:
            assets = list(self._assets) + [asset]
        self._commit_assets(assets)
        return asset

    def update_asset(self, asset_id: str, changes: Mapping[str, Any]) -> Asset:
        if not changes:
            raise InvalidUpdateError("An update needs at least one field.")
        unknown = sorted(set(changes) - ASSET_EDITABLE_FIELDS)
        if unknown:
            raise InvalidUpdateError(f"An asset cannot update: {', '.join(unknown)}.")

        with self._lock:
            current = self.get_asset(asset_id)
            if current is None:
                raise ItemNotFoundError(asset_id, "asset")
            cleaned: Dict[str, Any] = dict(changes)
            if "type" in cleaned:
                cleaned["type"] = AssetType.parse(cleaned["type"])
            if "data" in cleaned:
                cleaned["data"] = dict(cleaned["data"] or {})
            updated = replace(current, **cleaned, updated_at=self._stamp(current.updated_at))
            assets = [updated if asset.id == asset_id else asset for asset in self._assets]
        self._commit_assets(assets)
        return updated

    def _stamp(self, previous):
        now = self._clock()
        # Never move a timestamp backwards, even if the wall clock does.
        return now if now >= previous else previous


def _coerce_fields(changes: Mapping[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in changes.items():
        if key == "is_published":
            cleaned[key] = bool(value)
        else:
            cleaned[key] = "" if value is None else str(value)
    return cleaned


def _swap(project: Project, location: ItemLocation, updated) -> Project:
    """Return ``project`` with the located entity replaced by ``updated``."""

    if project.id != location.project.id:
        return project
    if location.kind is ItemKind.PROJECT:
        return updated

    chapters = []
    for chapter in project.chapters:
        if chapter.id != location.chapter.id:
            chapters.append(chapter)
        elif location.kind is ItemKind.CHAPTER:
            chapters.append(updated)
        else:
            pages = tuple(updated if page.id == updated.id else page for page in chapter.pages)
            chapters.append(replace(chapter, pages=pages))
    return replace(project, chapters=tuple(chapters))


__all__ = ["DocumentStore"]

"""Debounced autosave for the item open in the editor.

States run ``idle -> unsaved -> saving -> saved -> idle``:

* every keystroke moves to ``unsaved`` at once and restarts the debounce timer;
* when the timer fires while still ``unsaved`` the controller enters
  ``saving`` and writes the debounced content through the document store, but
  only if it differs from what the store already holds;
* ``saved`` follows unconditionally and means "in sync with the latest
  edit", then falls back to ``idle`` after a short display interval.

Binding a different item cancels every pending timer. An edit made less than
one debounce interval before switching away is therefore dropped; returning to
the item shows its last persisted content again.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from ..documents.entities import ItemKind
from ..documents.errors import InvalidUpdateError, PersistenceError
from ..documents.store import DocumentStore
from .scheduler import DeferredScheduler, TimerHandle

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.5
DEFAULT_SAVED_DISPLAY_SECONDS = 2.0


class SaveStatus(str, Enum):
    IDLE = "idle"
    UNSAVED = "unsaved"
    SAVING = "saving"
    SAVED = "saved"


class AutosaveController:
    def __init__(
        self,
        store: DocumentStore,
        scheduler: DeferredScheduler,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        saved_display_seconds: float = DEFAULT_SAVED_DISPLAY_SECONDS,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self.debounce_seconds = debounce_seconds
        self.saved_display_seconds = saved_display_seconds

        self.item_id: Optional[str] = None
        self.kind: Optional[ItemKind] = None
        self.content = ""
        self.status = SaveStatus.IDLE
        self.revision = 0
        self.writes = 0
        self.last_error: Optional[PersistenceError] = None
        self._debounce: Optional[TimerHandle] = None
        self._reset_timer: Optional[TimerHandle] = None

    @property
    def editable(self) -> bool:
        return self.kind is ItemKind.PAGE

    def bind(self, item_id: Optional[str]) -> None:
        """Attach to ``item_id`` (or nothing), abandoning pending work for the old item."""

        self._cancel_timers()
        if self.status is SaveStatus.UNSAVED and self.item_id:
            LOGGER.info("Discarding unsaved edits for %s on item switch", self.item_id)

        location = self._store.find_item(item_id) if item_id else None
        if location is None or not location.found:
            self.item_id = None
            self.kind = None
            self.content = ""
        else:
            self.item_id = item_id
            self.kind = location.kind
            self.content = location.page.content if location.kind is ItemKind.PAGE else ""
        self.status = SaveStatus.IDLE
        self.last_error = None
        self.revision += 1

    def edit(self, content: str) -> None:
        """Record a keystroke's worth of new content."""

        if not self.editable:
            raise InvalidUpdateError("Only pages have editable content.")
        self.content = content or ""
        self.revision += 1
        self.status = SaveStatus.UNSAVED
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._scheduler.call_later(self.debounce_seconds, self._on_debounced)

    def _on_debounced(self) -> None:
        self._debounce = None
        if self.status is SaveStatus.UNSAVED:
            self._save(self.content)

    def _save(self, debounced: str) -> None:
        self.status = SaveStatus.SAVING
        location = self._store.find_item(self.item_id)
        persisted = location.page.content if location.kind is ItemKind.PAGE else None
        if persisted is not None and debounced != persisted:
            try:
                self._store.update_item(self.item_id, {"content": debounced})
            except PersistenceError as exc:
                self.last_error = exc
                self.status = SaveStatus.UNSAVED
                raise
            self.writes += 1
        self.status = SaveStatus.SAVED
        if self._reset_timer is not None:
            self._reset_timer.cancel()
        self._reset_timer = self._scheduler.call_later(self.saved_display_seconds, self._on_saved_shown)

    def _on_saved_shown(self) -> None:
        self._reset_timer = None
        if self.status is SaveStatus.SAVED:
            self.status = SaveStatus.IDLE

    def _cancel_timers(self) -> None:
        for handle in (self._debounce, self._reset_timer):
            if handle is not None:
                handle.cancel()
        self._debounce = None
        self._reset_timer = None

    def last_updated(self) -> Optional[datetime]:
        if not self.item_id:
            return None
        location = self._store.find_item(self.item_id)
        item = location.item
        return item.updated_at if item is not None else None

    def status_text(self) -> str:
        if self.status is SaveStatus.UNSAVED:
            return "Unsaved changes..."
        if self.status is SaveStatus.SAVING:
            return "Saving..."
        if self.status is SaveStatus.SAVED:
            return "All changes saved."
        updated = self.last_updated()
        if updated is None:
            return ""
        return f"Last updated: {updated.strftime('%H:%M:%S')}"


__all__ = [
    "AutosaveController",
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_SAVED_DISPLAY_SECONDS",
    "SaveStatus",
]

"""One author's editor: the active item, its autosave state and AI edits."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Mapping, Optional

from flask import current_app

from ..ai.errors import AIBackendError
from ..documents.entities import ItemLocation
from ..documents.errors import InvalidUpdateError, ItemNotFoundError
from ..documents.references import encode_reference
from ..documents.store import DocumentStore
from .autosave import DEFAULT_DEBOUNCE_SECONDS, DEFAULT_SAVED_DISPLAY_SECONDS, AutosaveController
from .inline_edit import (
    EditAction,
    EditTicket,
    InlineEditOutcome,
    OutcomeStatus,
    Selection,
    splice,
)
from .scheduler import DeferredScheduler

LOGGER = logging.getLogger(__name__)

SESSIONS_EXTENSION_KEY = "studio.editor_sessions"

Rewriter = Callable[[str, EditAction], str]


class EditorSession:
    def __init__(
        self,
        store: DocumentStore,
        *,
        scheduler: Optional[DeferredScheduler] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        saved_display_seconds: float = DEFAULT_SAVED_DISPLAY_SECONDS,
    ) -> None:
        self.store = store
        self.scheduler = scheduler or DeferredScheduler()
        self.autosave = AutosaveController(
            store,
            self.scheduler,
            debounce_seconds=debounce_seconds,
            saved_display_seconds=saved_display_seconds,
        )
        self.selection: Optional[Selection] = None
        self._in_flight: Optional[EditTicket] = None
        self._last_sequence: Optional[int] = None
        self._lock = threading.RLock()

    @property
    def selected_id(self) -> Optional[str]:
        return self.autosave.item_id

    @property
    def content(self) -> str:
        return self.autosave.content

    @property
    def ai_busy(self) -> bool:
        return self._in_flight is not None

    def poll(self) -> int:
        """Run timers that have come due (debounced saves, status resets)."""

        with self._lock:
            return self.scheduler.run_pending()

    def select(self, item_id: Optional[str]) -> ItemLocation:
        with self._lock:
            self.poll()
            self.autosave.bind(item_id)
            self.selection = None
            if self.autosave.item_id is None:
                return ItemLocation()
            return self.store.find_item(self.autosave.item_id)

    def edit_content(self, content: str, *, sequence: Optional[int] = None) -> bool:
        """Apply a content edit; return False when ``sequence`` is older than one already applied.

        Browsers number their keystroke requests so one that arrives late
        cannot overwrite newer text.
        """

        with self._lock:
            if sequence is not None:
                if self._last_sequence is not None and sequence <= self._last_sequence:
                    LOGGER.debug("Ignoring out-of-order edit %s (last %s)", sequence, self._last_sequence)
                    return False
                self._last_sequence = sequence
            self.poll()
            self.autosave.edit(content)
            self.selection = None
            return True

    def update_fields(self, changes: Mapping[str, Any]):
        """Write non-content fields (title, description, publication) straight through."""

        if "content" in changes:
            raise InvalidUpdateError("Page content is saved through autosave.")
        with self._lock:
            if self.selected_id is None:
                raise InvalidUpdateError("Select an item before editing it.")
            return self.store.update_item(self.selected_id, changes)

    def capture_selection(self, start: int, end: int) -> Optional[Selection]:
        with self._lock:
            if not self.autosave.editable:
                raise InvalidUpdateError("Only page content can be selected.")
            self.selection = Selection.capture(self.autosave.content, start, end)
            return self.selection

    def insert_asset(self, asset_id: str, caret: Optional[int] = None) -> str:
        """Write a mention of ``asset_id`` at ``caret`` (end of content by default)."""

        with self._lock:
            asset = self.store.get_asset(asset_id)
            if asset is None:
                raise ItemNotFoundError(asset_id, "asset")
            if not self.autosave.editable:
                raise InvalidUpdateError("Assets can only be inserted into a page.")
            content = self.autosave.content
            position = len(content) if caret is None else max(0, min(int(caret), len(content)))
            updated = splice(content, position, position, encode_reference(asset.id, asset.name))
            self.edit_content(updated)
            return updated

    def run_inline_edit(self, action: EditAction, rewrite: Rewriter) -> InlineEditOutcome:
        """Send the current selection to ``rewrite`` and splice the answer in.

        Only one request runs per session. The answer is applied only if the
        item and its content revision are unchanged since the selection was
        sent; otherwise it is discarded.
        """

        with self._lock:
            if self._in_flight is not None:
                return InlineEditOutcome(OutcomeStatus.BUSY, "An AI edit is already running.")
            if self.selection is None or self.selected_id is None:
                return InlineEditOutcome(OutcomeStatus.FAILED, "Select some text first.")
            ticket = EditTicket(
                item_id=self.selected_id,
                revision=self.autosave.revision,
                selection=self.selection,
                action=action,
            )
            self._in_flight = ticket

        try:
            replacement = rewrite(ticket.selection.text, action)
        except AIBackendError as exc:
            LOGGER.warning("In-line %s failed: %s", action.value, exc)
            return InlineEditOutcome(OutcomeStatus.FAILED, f"AI action failed: {exc}", error=exc)
        finally:
            with self._lock:
                self._in_flight = None
                self.selection = None

        with self._lock:
            if self.selected_id != ticket.item_id or self.autosave.revision != ticket.revision:
                LOGGER.info("Discarding stale in-line %s for %s", action.value, ticket.item_id)
                return InlineEditOutcome(
                    OutcomeStatus.STALE,
                    "The page changed while the assistant was working; the suggestion was discarded.",
                )
            selection = ticket.selection
            updated = splice(self.autosave.content, selection.start, selection.end, replacement)
            self.edit_content(updated)
            return InlineEditOutcome(OutcomeStatus.APPLIED, f"Text has been {action.past_tense}.", content=updated)

    def describe(self) -> Dict[str, Any]:
        with self._lock:
            location = self.store.find_item(self.selected_id) if self.selected_id else ItemLocation()
            item = location.item
            selection = self.selection
            return {
                "item_id": self.selected_id,
                "kind": location.kind.value if location.kind else None,
                "title": getattr(item, "title", None),
                "content": self.autosave.content if self.autosave.editable else None,
                "description": getattr(item, "description", None),
                "is_published": getattr(item, "is_published", None),
                "editable": self.autosave.editable,
                "status": self.autosave.status.value,
                "status_text": self.autosave.status_text(),
                "selection": (
                    {"text": selection.text, "start": selection.start, "end": selection.end}
                    if selection
                    else None
                ),
                "ai_busy": self.ai_busy,
            }


class EditorSessions:
    """Keeps one :class:`EditorSession` per author."""

    def __init__(self, factory: Callable[[], EditorSession]) -> None:
        self._factory = factory
        self._sessions: Dict[Hashable, EditorSession] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> EditorSession:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._sessions[key] = self._factory()
            return session

    def discard(self, key: Hashable) -> None:
        with self._lock:
            self._sessions.pop(key, None)


def session_for(user_id: Hashable) -> EditorSession:
    """Return the editor session of ``user_id`` in the current application."""

    return current_app.extensions[SESSIONS_EXTENSION_KEY].get(user_id)


__all__ = ["EditorSession", "EditorSessions", "SESSIONS_EXTENSION_KEY", "session_for"]

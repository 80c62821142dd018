"""Editor state: debounced autosave, in-line AI edits and per-author sessions."""

from __future__ import annotations

from .autosave import AutosaveController, SaveStatus  # noqa: F401
from .inline_edit import EditAction, InlineEditOutcome, OutcomeStatus, Selection  # noqa: F401
from .scheduler import DeferredScheduler  # noqa: F401
from .session import SESSIONS_EXTENSION_KEY, EditorSession, EditorSessions, session_for  # noqa: F401

__all__ = [
    "AutosaveController",
    "DeferredScheduler",
    "EditAction",
    "EditorSession",
    "EditorSessions",
    "InlineEditOutcome",
    "OutcomeStatus",
    "SESSIONS_EXTENSION_KEY",
    "SaveStatus",
    "Selection",
    "session_for",
]

"""Replace a selected span of page content with AI-generated text.

The protocol captures ``(text, start, end)`` against the editor's content,
asks the generative client to rewrite ``text`` with one of the fixed actions,
and splices the answer back as ``content[:start] + replacement + content[end:]``.

Offsets are only meaningful against the exact content they were captured
from. Every request therefore carries a :class:`EditTicket` naming the item and
the editor revision at capture time; a response whose ticket no longer matches
the live editor is discarded rather than spliced.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EditAction(str, Enum):
    IMPROVE = "improve"
    EXPAND = "expand"
    SUMMARIZE = "summarize"

    @property
    def past_tense(self) -> str:
        return {
            EditAction.IMPROVE: "improved",
            EditAction.EXPAND: "expanded",
            EditAction.SUMMARIZE: "summarized",
        }[self]

    @classmethod
    def parse(cls, value: object) -> "EditAction":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown edit action {value!r}; expected one of: {allowed}.") from exc


@dataclass(frozen=True)
class Selection:
    text: str
    start: int
    end: int

    @classmethod
    def capture(cls, content: str, start: int, end: int) -> Optional["Selection"]:
        """Build a selection of ``content[start:end]``.

        A collapsed caret (``start == end``) is not a selection and gives
        ``None``. Offsets outside the content raise :class:`ValueError`.
        """

        if start > end:
            start, end = end, start
        if start < 0 or end > len(content):
            raise ValueError(f"Selection {start}-{end} is outside content of length {len(content)}.")
        if start == end:
            return None
        return cls(text=content[start:end], start=start, end=end)


@dataclass(frozen=True)
class EditTicket:
    item_id: str
    revision: int
    selection: Selection
    action: EditAction


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    STALE = "stale"
    BUSY = "busy"


@dataclass(frozen=True)
class InlineEditOutcome:
    status: OutcomeStatus
    message: str
    content: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED


def splice(content: str, start: int, end: int, replacement: str) -> str:
    return content[:start] + replacement + content[end:]


__all__ = [
    "EditAction",
    "EditTicket",
    "InlineEditOutcome",
    "OutcomeStatus",
    "Selection",
    "splice",
]

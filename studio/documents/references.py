"""Inline asset references embedded in page content.

A mention of an asset is stored verbatim inside ``Page.content`` as::

    [[asset:<id>:<displayName>]]

:func:`decode_references` splits content into an ordered sequence of
:class:`PlainText` and :class:`AssetMention` segments. The scanner is written
by hand rather than with a single regular expression so that the grammar is
explicit:

* the id runs from ``[[asset:`` up to the first ``:`` and must be non-empty;
* the display name runs from that colon up to the first ``]]`` and may contain
  further colons;
* neither part may contain a line break or an opening ``[[``.

Anything that does not satisfy the full token shape (unterminated tokens,
missing separator, nested brackets) is kept as plain text. Whether the id
exists in the asset catalog is not checked here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union

TOKEN_OPEN = "[[asset:"
TOKEN_CLOSE = "]]"
SEPARATOR = ":"

_FORBIDDEN_IN_TOKEN = ("\n", "\r", "[[")


class ReferenceFormatError(ValueError):
    """Raised when an id or display name cannot be written as a token."""


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class AssetMention:
    asset_id: str
    display_name: str

    @property
    def token(self) -> str:
        return encode_reference(self.asset_id, self.display_name)


Segment = Union[PlainText, AssetMention]


def encode_reference(asset_id: str, display_name: str) -> str:
    """Return the reference token for ``asset_id`` shown as ``display_name``."""

    asset_id = asset_id or ""
    display_name = display_name or ""
    if not asset_id:
        raise ReferenceFormatError("An asset reference needs a non-empty id.")
    if SEPARATOR in asset_id or TOKEN_CLOSE in asset_id:
        raise ReferenceFormatError(f"Asset id {asset_id!r} cannot contain ':' or ']]'.")
    if TOKEN_CLOSE in display_name:
        # There is no escape mechanism for a literal ']]' in the name.
        raise ReferenceFormatError(f"Display name {display_name!r} cannot contain ']]'.")
    for fragment in _FORBIDDEN_IN_TOKEN:
        if fragment in asset_id or fragment in display_name:
            raise ReferenceFormatError("Asset references must fit on a single line without '[['.")
    return f"{TOKEN_OPEN}{asset_id}{SEPARATOR}{display_name}{TOKEN_CLOSE}"


def _scan_token(content: str, start: int) -> Optional[Tuple[AssetMention, int]]:
    """Try to read a full token whose opening marker sits at ``start``.

    Returns the mention and the index just past the closing ``]]`` or ``None``
    when the text at ``start`` is not a well-formed token.
    """

    body_start = start + len(TOKEN_OPEN)
    close = content.find(TOKEN_CLOSE, body_start)
    if close == -1:
        return None

    body = content[body_start:close]
    if any(fragment in body for fragment in _FORBIDDEN_IN_TOKEN):
        return None

    asset_id, separator, display_name = body.partition(SEPARATOR)
    if not separator or not asset_id:
        return None

    return AssetMention(asset_id=asset_id, display_name=display_name), close + len(TOKEN_CLOSE)


def iter_references(content: str) -> Iterator[Segment]:
    """Lazily yield the segments of ``content`` in order.

    Adjacent plain text is merged, so content without any token yields exactly
    one :class:`PlainText` (or nothing for an empty string).
    """

    content = content or ""
    cursor = 0
    text_start = 0
    length = len(content)

    while cursor < length:
        opening = content.find(TOKEN_OPEN, cursor)
        if opening == -1:
            break

        scanned = _scan_token(content, opening)
        if scanned is None:
            cursor = opening + 1
            continue

        mention, end = scanned
        if opening > text_start:
            yield PlainText(content[text_start:opening])
        yield mention
        cursor = text_start = end

    if text_start < length:
        yield PlainText(content[text_start:])


def decode_references(content: str) -> List[Segment]:
    return list(iter_references(content))


def flatten_segments(segments: Iterable[Segment]) -> str:
    """Join segments back into readable text, mentions shown by display name."""

    parts: List[str] = []
    for segment in segments:
        if isinstance(segment, AssetMention):
            parts.append(segment.display_name)
        else:
            parts.append(segment.text)
    return "".join(parts)


def referenced_asset_ids(content: str) -> List[str]:
    """Return the distinct asset ids mentioned in ``content`` in first-seen order."""

    seen: List[str] = []
    for segment in iter_references(content):
        if isinstance(segment, AssetMention) and segment.asset_id not in seen:
            seen.append(segment.asset_id)
    return seen


__all__ = [
    "AssetMention",
    "PlainText",
    "ReferenceFormatError",
    "Segment",
    "decode_references",
    "encode_reference",
    "flatten_segments",
    "iter_references",
    "referenced_asset_ids",
]

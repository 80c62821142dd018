"""Turn page content into renderable segments for the reading portal."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Union

from .entities import Asset
from .references import AssetMention, PlainText, flatten_segments, iter_references


@dataclass(frozen=True)
class RenderedMention:
    """An asset mention paired with the catalog entry it points at, if any."""

    mention: AssetMention
    asset: Optional[Asset]

    @property
    def asset_id(self) -> str:
        return self.mention.asset_id

    @property
    def display_name(self) -> str:
        return self.mention.display_name

    @property
    def resolved(self) -> bool:
        return self.asset is not None


RenderedSegment = Union[PlainText, RenderedMention]


@dataclass(frozen=True)
class MentionLookup:
    asset_id: str
    asset: Optional[Asset]

    @property
    def found(self) -> bool:
        return self.asset is not None


def render_content(content: str, catalog: Mapping[str, Asset]) -> Iterator[RenderedSegment]:
    """Lazily yield plain text and mentions for ``content``.

    Mentions of ids missing from ``catalog`` are still yielded, with
    ``asset=None``; it is up to the view to show them as unresolved.
    """

    for segment in iter_references(content):
        if isinstance(segment, AssetMention):
            yield RenderedMention(mention=segment, asset=catalog.get(segment.asset_id))
        else:
            yield segment


def lookup_mention(asset_id: str, catalog: Mapping[str, Asset]) -> MentionLookup:
    """Resolve an activated mention; a dangling id gives a not-found lookup."""

    return MentionLookup(asset_id=asset_id, asset=catalog.get(asset_id))


def render_plain_text(content: str) -> str:
    return flatten_segments(iter_references(content))


__all__ = [
    "MentionLookup",
    "RenderedMention",
    "RenderedSegment",
    "lookup_mention",
    "render_content",
    "render_plain_text",
]

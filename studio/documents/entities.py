"""Document entities: projects own chapters, chapters own pages.

All entities are frozen dataclasses. Mutation always builds a new object with
:func:`dataclasses.replace`, so a tree handed out by the store is an
internally consistent snapshot that never changes underneath its reader.
Assets live in a flat catalog beside the projects and are only referenced by
id from page content.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class AssetType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    ITEM = "item"
    IMAGE = "image"

    @classmethod
    def parse(cls, value: Any) -> "AssetType":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown asset type {value!r}; expected one of: {allowed}.") from exc


class ItemKind(str, Enum):
    PROJECT = "project"
    CHAPTER = "chapter"
    PAGE = "page"


@dataclass(frozen=True)
class Page:
    id: str
    title: str
    content: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Chapter:
    id: str
    title: str
    pages: Tuple[Page, ...]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Project:
    id: str
    title: str
    description: str
    chapters: Tuple[Chapter, ...]
    is_published: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Asset:
    id: str
    type: AssetType
    name: str
    description: str
    created_at: datetime
    updated_at: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def image_url(self) -> Optional[str]:
        value = self.data.get("imageUrl")
        return value if isinstance(value, str) and value else None


# Fields each kind accepts through ``DocumentStore.update_item``.
EDITABLE_FIELDS: Dict[ItemKind, frozenset] = {
    ItemKind.PROJECT: frozenset({"title", "description", "is_published"}),
    ItemKind.CHAPTER: frozenset({"title"}),
    ItemKind.PAGE: frozenset({"title", "content"}),
}

ASSET_EDITABLE_FIELDS = frozenset({"name", "description", "type", "data"})


@dataclass(frozen=True)
class ItemLocation:
    """The owning chain of an entity found by id.

    An empty location (``kind is None``) means the id was not found.
    """

    kind: Optional[ItemKind] = None
    project: Optional[Project] = None
    chapter: Optional[Chapter] = None
    page: Optional[Page] = None

    @property
    def found(self) -> bool:
        return self.kind is not None

    @property
    def item(self):
        if self.kind is ItemKind.PAGE:
            return self.page
        if self.kind is ItemKind.CHAPTER:
            return self.chapter
        if self.kind is ItemKind.PROJECT:
            return self.project
        return None


def _require_title(value: str, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"A {label} needs a non-empty title.")
    return cleaned


def new_project(title: str, *, description: str = "", clock: Clock = utcnow) -> Project:
    now = clock()
    return Project(
        id=new_id(),
        title=_require_title(title, "project"),
        description=description or "",
        chapters=(),
        is_published=False,
        created_at=now,
        updated_at=now,
    )


def new_chapter(title: str, *, clock: Clock = utcnow) -> Chapter:
    now = clock()
    return Chapter(id=new_id(), title=_require_title(title, "chapter"), pages=(), created_at=now, updated_at=now)


def new_page(title: str, *, content: str = "", clock: Clock = utcnow) -> Page:
    now = clock()
    return Page(
        id=new_id(),
        title=_require_title(title, "page"),
        content=content or "",
        created_at=now,
        updated_at=now,
    )


def new_asset(
    name: str,
    asset_type: Any,
    *,
    description: str = "",
    data: Optional[Mapping[str, Any]] = None,
    clock: Clock = utcnow,
) -> Asset:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("An asset needs a non-empty name.")
    now = clock()
    return Asset(
        id=new_id(),
        type=AssetType.parse(asset_type),
        name=cleaned,
        description=description or "",
        data=dict(data or {}),
        created_at=now,
        updated_at=now,
    )


# ---------------------------------------------------------------------------
# Wire format (camelCase JSON, ISO-8601 timestamps)
# ---------------------------------------------------------------------------


def _ts(value: datetime) -> str:
    return value.isoformat()


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        return utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def page_to_dict(page: Page) -> Dict[str, Any]:
    return {
        "id": page.id,
        "title": page.title,
        "content": page.content,
        "createdAt": _ts(page.created_at),
        "updatedAt": _ts(page.updated_at),
    }


def chapter_to_dict(chapter: Chapter) -> Dict[str, Any]:
    return {
        "id": chapter.id,
        "title": chapter.title,
        "pages": [page_to_dict(page) for page in chapter.pages],
        "createdAt": _ts(chapter.created_at),
        "updatedAt": _ts(chapter.updated_at),
    }


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "chapters": [chapter_to_dict(chapter) for chapter in project.chapters],
        "isPublished": project.is_published,
        "createdAt": _ts(project.created_at),
        "updatedAt": _ts(project.updated_at),
    }


def asset_to_dict(asset: Asset) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "type": asset.type.value,
        "name": asset.name,
        "description": asset.description,
        "data": dict(asset.data),
        "createdAt": _ts(asset.created_at),
        "updatedAt": _ts(asset.updated_at),
    }


def page_from_dict(payload: Mapping[str, Any]) -> Page:
    return Page(
        id=str(payload["id"]),
        title=str(payload.get("title") or ""),
        content=str(payload.get("content") or ""),
        created_at=_parse_ts(payload.get("createdAt")),
        updated_at=_parse_ts(payload.get("updatedAt")),
    )


def chapter_from_dict(payload: Mapping[str, Any]) -> Chapter:
    return Chapter(
        id=str(payload["id"]),
        title=str(payload.get("title") or ""),
        pages=tuple(page_from_dict(item) for item in payload.get("pages") or ()),
        created_at=_parse_ts(payload.get("createdAt")),
        updated_at=_parse_ts(payload.get("updatedAt")),
    )


def project_from_dict(payload: Mapping[str, Any]) -> Project:
    return Project(
        id=str(payload["id"]),
        title=str(payload.get("title") or ""),
        description=str(payload.get("description") or ""),
        chapters=tuple(chapter_from_dict(item) for item in payload.get("chapters") or ()),
        is_published=bool(payload.get("isPublished", False)),
        created_at=_parse_ts(payload.get("createdAt")),
        updated_at=_parse_ts(payload.get("updatedAt")),
    )


def asset_from_dict(payload: Mapping[str, Any]) -> Asset:
    data = payload.get("data")
    return Asset(
        id=str(payload["id"]),
        type=AssetType.parse(payload.get("type")),
        name=str(payload.get("name") or ""),
        description=str(payload.get("description") or ""),
        data=dict(data) if isinstance(data, Mapping) else {},
        created_at=_parse_ts(payload.get("createdAt")),
        updated_at=_parse_ts(payload.get("updatedAt")),
    )

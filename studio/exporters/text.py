"""Plain-text rendition of a project, mentions flattened to display names."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ..documents.entities import Project
from ..documents.renderer import render_plain_text


class TextExportError(RuntimeError):
    """Raised when exporting a project to a text file fails."""


def _clean(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(value).strip()


def project_to_text(project: Project) -> str:
    lines: List[str] = [_clean(project.title) or "Untitled Project"]
    description = _clean(project.description)
    if description:
        lines.extend(["", description])

    for chapter_number, chapter in enumerate(project.chapters, start=1):
        lines.extend(["", f"Chapter {chapter_number}: {_clean(chapter.title) or 'Untitled Chapter'}"])
        if not chapter.pages:
            lines.extend(["", "(No pages yet.)"])
        for page in chapter.pages:
            lines.extend(["", _clean(page.title) or "Untitled Page"])
            body = _clean(render_plain_text(page.content))
            lines.extend(["", body or "(This page is empty.)"])

    return "\n".join(lines).rstrip() + "\n"


def export_project_to_txt(project: Project, *, output_path: Optional[Path] = None) -> bytes:
    """Return the UTF-8 text of ``project``, also writing it to ``output_path`` if given."""

    data = project_to_text(project).encode("utf-8")
    if output_path is not None:
        try:
            Path(output_path).write_bytes(data)
        except OSError as exc:  # pragma: no cover - IO failure
            raise TextExportError(f"Unable to export TXT file: {exc}") from exc
    return data


__all__ = ["TextExportError", "export_project_to_txt", "project_to_text"]

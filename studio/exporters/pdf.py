"""PDF rendition of a published project.

The core PDF fonts only cover Latin-1, so text goes through
:func:`_pdf_safe_text` first: typographic punctuation is mapped to ASCII and
anything else outside Latin-1 becomes ``?``. Asset mentions are flattened to
their display names before layout.
"""
from __future__ import annotations

import textwrap
import unicodedata
from pathlib import Path
from typing import Optional

from fpdf import FPDF
from fpdf.errors import FPDFException

from ..documents.entities import Project
from ..documents.renderer import render_plain_text


class PDFExportError(RuntimeError):
    """Raised when exporting a project to PDF fails."""


_PDF_LATIN1_REPLACEMENTS = {
    ord("\u2010"): "-",
    ord("\u2011"): "-",
    ord("\u2013"): "-",
    ord("\u2014"): "-",
    ord("\u2212"): "-",
    ord("\u2018"): "'",
    ord("\u2019"): "'",
    ord("\u201A"): "'",
    ord("\u201C"): '"',
    ord("\u201D"): '"',
    ord("\u201E"): '"',
    ord("\u2026"): "...",
    ord("\u00A0"): " ",
    ord("\u2009"): " ",
    ord("\u202F"): " ",
    ord("\u200B"): "",
    ord("\uFEFF"): "",
}


def _pdf_safe_text(text: str) -> str:
    normalized = unicodedata.normalize("NFKC", text or "").replace("\t", " ")
    replaced = normalized.translate(_PDF_LATIN1_REPLACEMENTS)
    return replaced.encode("latin-1", "replace").decode("latin-1")


def _pdf_wrapped_text(text: str, *, width: int = 100) -> str:
    safe_text = _pdf_safe_text(text)
    wrapped = []
    for raw_line in safe_text.splitlines():
        if not raw_line:
            wrapped.append("")
            continue
        chunks = textwrap.wrap(raw_line, width=width, break_long_words=True, break_on_hyphens=False)
        wrapped.extend(chunks or [""])
    return "\n".join(wrapped)


def _write_block(pdf: FPDF, width: float, height: float, text: str) -> None:
    sanitized = _pdf_wrapped_text(text)
    if not sanitized:
        return
    try:
        pdf.set_x(pdf.l_margin)
        pdf.multi_cell(width, height, sanitized)
    except FPDFException as exc:
        raise PDFExportError(f"Failed to render PDF content: {exc}") from exc


def export_project_to_pdf(project: Project, *, output_path: Optional[Path] = None) -> bytes:
    """Lay out ``project`` with one chapter per PDF page and return the document bytes."""

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.set_left_margin(15)
    pdf.set_right_margin(15)
    effective_width = pdf.w - pdf.l_margin - pdf.r_margin

    pdf.add_page()
    pdf.set_font("Times", "B", 18)
    _write_block(pdf, effective_width, 10, project.title or "Untitled Project")
    pdf.ln(4)

    if project.description.strip():
        pdf.set_font("Times", "I", 12)
        _write_block(pdf, effective_width, 6, project.description.strip())

    for chapter_number, chapter in enumerate(project.chapters, start=1):
        pdf.add_page()
        pdf.set_font("Times", "B", 14)
        _write_block(pdf, effective_width, 10, f"Chapter {chapter_number}: {chapter.title or 'Untitled Chapter'}")

        for page in chapter.pages:
            pdf.ln(2)
            pdf.set_font("Times", "B", 12)
            _write_block(pdf, effective_width, 8, page.title or "Untitled Page")

            pdf.set_font("Times", "", 12)
            body = render_plain_text(page.content).strip() or "(This page is empty.)"
            for paragraph in body.split("\n\n"):
                cleaned = paragraph.strip()
                if cleaned:
                    _write_block(pdf, effective_width, 6.5, cleaned)
                    pdf.ln(1.5)

    data = bytes(pdf.output())
    if output_path is not None:
        try:
            Path(output_path).write_bytes(data)
        except OSError as exc:  # pragma: no cover - IO failure
            raise PDFExportError(f"Unable to export PDF: {exc}") from exc
    return data


__all__ = ["PDFExportError", "export_project_to_pdf"]

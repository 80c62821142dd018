"""Downloadable renditions of published projects."""

from __future__ import annotations

from .pdf import PDFExportError, export_project_to_pdf  # noqa: F401
from .text import TextExportError, export_project_to_txt  # noqa: F401

__all__ = ["PDFExportError", "TextExportError", "export_project_to_pdf", "export_project_to_txt"]

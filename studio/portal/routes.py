from __future__ import annotations

import io
from typing import Optional

from flask import jsonify, render_template, request, send_file
from werkzeug.utils import secure_filename

from .. import get_document_store
from ..documents.entities import Page, Project, asset_to_dict
from ..documents.renderer import lookup_mention, render_content
from ..exporters import export_project_to_pdf, export_project_to_txt
from . import bp


def _select_page(project: Project, page_id: Optional[str]) -> Optional[Page]:
    """Return the requested page, else the first page of the first chapter."""

    pages = [page for chapter in project.chapters for page in chapter.pages]
    if page_id:
        for page in pages:
            if page.id == page_id:
                return page
    if project.chapters and project.chapters[0].pages:
        return project.chapters[0].pages[0]
    return None


def _not_found():
    return render_template("portal/not_found.html"), 404


def _download_name(project: Project, extension: str) -> str:
    return f"{secure_filename(project.title) or 'project'}.{extension}"


@bp.route("/")
def library():
    return render_template("portal/library.html", projects=get_document_store().published_projects())


@bp.route("/read/<project_id>")
def read_project(project_id: str):
    store = get_document_store()
    project = store.get_published_project(project_id)
    if project is None:
        return _not_found()

    page = _select_page(project, request.args.get("page"))
    segments = list(render_content(page.content, store.asset_catalog())) if page else []
    return render_template("portal/project.html", project=project, page=page, segments=segments)


@bp.route("/read/assets/<asset_id>")
def asset_detail(asset_id: str):
    lookup = lookup_mention(asset_id, get_document_store().asset_catalog())
    if not lookup.found:
        return jsonify({"error": "Asset not found."}), 404
    return jsonify(asset_to_dict(lookup.asset))


@bp.route("/read/<project_id>/export.txt")
def export_text(project_id: str):
    project = get_document_store().get_published_project(project_id)
    if project is None:
        return _not_found()
    return send_file(
        io.BytesIO(export_project_to_txt(project)),
        mimetype="text/plain; charset=utf-8",
        as_attachment=True,
        download_name=_download_name(project, "txt"),
    )


@bp.route("/read/<project_id>/export.pdf")
def export_pdf(project_id: str):
    project = get_document_store().get_published_project(project_id)
    if project is None:
        return _not_found()
    return send_file(
        io.BytesIO(export_project_to_pdf(project)),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=_download_name(project, "pdf"),
    )

from __future__ import annotations

from typing import Any, Dict

from flask import (
    Response,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required

from .. import get_document_store
from ..ai import get_generative_client
from ..ai.errors import AIConfigurationError, AIRequestError
from ..ai.prompts import PromptConfigError, extract_generation_parameters, load_prompt_entry
from ..documents.entities import AssetType, ItemKind, asset_to_dict, new_asset, new_chapter, new_page, new_project
from ..documents.errors import InvalidUpdateError, ItemNotFoundError, PersistenceError
from ..editor import EditAction, OutcomeStatus, session_for
from ..services import assistant
from . import bp
from .forms import AssetForm, ChapterForm, PageForm, ProjectForm

_FIELD_KEYS = {"title", "description", "is_published"}


@bp.before_request
@login_required
def _poll_timers():
    # Debounced saves come due between requests; settle them first.
    session_for(current_user.id).poll()


@bp.errorhandler(PersistenceError)
def _persistence_failed(exc: PersistenceError):
    current_app.logger.error("Saving the library failed: %s", exc)
    if request.path.startswith(url_for("workspace.editor") + "api/"):
        return jsonify({"error": "Your changes could not be saved. Please try again."}), 500
    flash("Your changes could not be saved. Please try again.", "danger")
    return redirect(url_for("workspace.editor"))


@bp.errorhandler(ItemNotFoundError)
def _item_missing(exc: ItemNotFoundError):
    return jsonify({"error": str(exc)}), 404


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _state():
    return jsonify(session_for(current_user.id).describe())


def _inline_edit_parameters() -> Dict[str, Any]:
    try:
        entry = load_prompt_entry("inline_edit", required=False)
    except PromptConfigError as exc:
        current_app.logger.warning("Ignoring in-line edit parameters: %s", exc)
        return {}
    return extract_generation_parameters(entry.get("parameters"))


def _rewrite(text: str, action: EditAction) -> str:
    return get_generative_client().edit_text(text, action.value, **_inline_edit_parameters())


# ---------------------------------------------------------------------------
# Editor page and structure creation
# ---------------------------------------------------------------------------
@bp.route("/")
def editor():
    store = get_document_store()
    session = session_for(current_user.id)

    requested = request.args.get("item")
    if requested is not None and requested != session.selected_id:
        location = session.select(requested)
        if not location.found:
            flash("That item no longer exists.", "warning")

    location = store.find_item(session.selected_id) if session.selected_id else None
    return render_template(
        "workspace/editor.html",
        projects=store.projects,
        assets=store.assets,
        location=location,
        state=session.describe(),
        project_form=ProjectForm(prefix="project"),
        chapter_form=ChapterForm(prefix="chapter"),
        page_form=PageForm(prefix="page"),
        asset_form=AssetForm(prefix="asset"),
        aspect_ratios=("1:1", "3:4", "4:3", "9:16", "16:9"),
    )


@bp.route("/projects", methods=["POST"])
def create_project():
    form = ProjectForm(prefix="project")
    if not form.validate_on_submit():
        flash("Give the project a title before creating it.", "warning")
        return redirect(url_for("workspace.editor"))

    project = get_document_store().add_project(new_project(form.title.data))
    flash(f"Created project “{project.title}”.", "success")
    return redirect(url_for("workspace.editor", item=project.id))


@bp.route("/projects/<project_id>/chapters", methods=["POST"])
def create_chapter(project_id: str):
    form = ChapterForm(prefix="chapter")
    if not form.validate_on_submit():
        flash("Give the chapter a title before adding it.", "warning")
        return redirect(url_for("workspace.editor", item=project_id))

    store = get_document_store()
    if store.find_item(project_id).kind is not ItemKind.PROJECT:
        abort(404)
    chapter = store.add_chapter(project_id, new_chapter(form.title.data))
    return redirect(url_for("workspace.editor", item=chapter.id))


@bp.route("/projects/<project_id>/chapters/<chapter_id>/pages", methods=["POST"])
def create_page(project_id: str, chapter_id: str):
    form = PageForm(prefix="page")
    if not form.validate_on_submit():
        flash("Give the page a title before adding it.", "warning")
        return redirect(url_for("workspace.editor", item=chapter_id))

    store = get_document_store()
    location = store.find_item(chapter_id)
    if location.kind is not ItemKind.CHAPTER or location.project.id != project_id:
        abort(404)
    page = store.add_page(project_id, chapter_id, new_page(form.title.data))
    return redirect(url_for("workspace.editor", item=page.id))


@bp.route("/assets", methods=["POST"])
def create_asset():
    form = AssetForm(prefix="asset")
    if not form.validate_on_submit():
        flash("An asset needs a name and a known type.", "warning")
        return redirect(url_for("workspace.editor"))

    try:
        asset = new_asset(
            form.name.data,
            AssetType.parse(form.type.data),
            description=(form.description.data or "").strip(),
        )
    except ValueError as exc:
        flash(str(exc), "warning")
        return redirect(url_for("workspace.editor"))

    get_document_store().add_asset(asset)
    flash(f"Added {asset.type.value} “{asset.name}” to the library.", "success")
    return redirect(url_for("workspace.editor"))


# ---------------------------------------------------------------------------
# Editor JSON API
# ---------------------------------------------------------------------------
@bp.route("/api/state", methods=["GET"])
def state():
    return _state()


@bp.route("/api/select", methods=["POST"])
def select_item():
    item_id = _payload().get("item_id")
    location = session_for(current_user.id).select(item_id or None)
    if item_id and not location.found:
        return jsonify({"error": "That item no longer exists."}), 404
    return _state()


@bp.route("/api/content", methods=["POST"])
def edit_content():
    payload = _payload()
    content = payload.get("content")
    sequence = payload.get("seq")
    if not isinstance(content, str):
        return jsonify({"error": "Content must be a string."}), 400
    if sequence is not None and (isinstance(sequence, bool) or not isinstance(sequence, int)):
        return jsonify({"error": "The edit sequence must be an integer."}), 400

    session = session_for(current_user.id)
    try:
        applied = session.edit_content(content, sequence=sequence)
    except InvalidUpdateError as exc:
        return jsonify({"error": str(exc)}), 400
    if not applied:
        return jsonify({"error": "A newer edit has already been applied.", "state": session.describe()}), 409
    return _state()


@bp.route("/api/fields", methods=["POST"])
def update_fields():
    payload = _payload()
    changes = {key: payload[key] for key in _FIELD_KEYS if key in payload}
    if "title" in changes and not str(changes["title"] or "").strip():
        return jsonify({"error": "Titles cannot be empty."}), 400
    try:
        session_for(current_user.id).update_fields(changes)
    except InvalidUpdateError as exc:
        return jsonify({"error": str(exc)}), 400
    return _state()


@bp.route("/api/selection", methods=["POST"])
def capture_selection():
    payload = _payload()
    try:
        start = int(payload.get("start"))
        end = int(payload.get("end"))
    except (TypeError, ValueError):
        return jsonify({"error": "Selection offsets must be integers."}), 400
    try:
        session_for(current_user.id).capture_selection(start, end)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return _state()


@bp.route("/api/inline-edit", methods=["POST"])
def inline_edit():
    try:
        action = EditAction.parse(_payload().get("action"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    session = session_for(current_user.id)
    outcome = session.run_inline_edit(action, _rewrite)
    body = {"status": outcome.status.value, "message": outcome.message, "state": session.describe()}

    if outcome.status is OutcomeStatus.APPLIED:
        return jsonify(body)
    if outcome.status in (OutcomeStatus.STALE, OutcomeStatus.BUSY):
        return jsonify(body), 409
    if outcome.error is None or isinstance(outcome.error, (AIConfigurationError, AIRequestError)):
        return jsonify(dict(body, error=outcome.message)), 400
    return jsonify(dict(body, error=outcome.message)), 502


@bp.route("/api/insert-asset", methods=["POST"])
def insert_asset():
    payload = _payload()
    asset_id = payload.get("asset_id")
    caret = payload.get("caret")
    if not asset_id:
        return jsonify({"error": "Choose an asset to insert."}), 400
    if caret is not None and not isinstance(caret, int):
        return jsonify({"error": "The caret must be an integer offset."}), 400
    try:
        session_for(current_user.id).insert_asset(str(asset_id), caret)
    except InvalidUpdateError as exc:
        return jsonify({"error": str(exc)}), 400
    return _state()


# ---------------------------------------------------------------------------
# AI tools
# ---------------------------------------------------------------------------
@bp.route("/api/assistant", methods=["POST"])
def ask_assistant():
    payload = _payload()
    try:
        reply = assistant.ask_assistant(payload.get("prompt") or "", payload.get("mode") or "fast")
    except assistant.AssistantError as exc:
        return jsonify({"error": str(exc)}), exc.status_code

    return jsonify(
        {
            "mode": reply.mode.value,
            "text": reply.text,
            "sources": [{"uri": source.uri, "title": source.title} for source in reply.sources],
        }
    )


@bp.route("/api/analyze-image", methods=["POST"])
def analyze_image():
    upload = request.files.get("image")
    if upload is None or not upload.filename:
        return jsonify({"error": "Upload an image to analyse."}), 400
    try:
        text = assistant.analyze_image(upload.read(), upload.mimetype, request.form.get("prompt"))
    except assistant.AssistantError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"text": text})


@bp.route("/api/generate-image", methods=["POST"])
def generate_image():
    payload = _payload()
    try:
        image = assistant.generate_image(payload.get("prompt") or "", payload.get("aspect_ratio") or "1:1")
    except assistant.AssistantError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"prompt": image.prompt, "aspect_ratio": image.aspect_ratio, "image_url": image.data_uri})


@bp.route("/api/save-image", methods=["POST"])
def save_image():
    payload = _payload()
    try:
        asset = assistant.save_generated_image(
            get_document_store(), payload.get("prompt") or "", payload.get("image_url") or ""
        )
    except assistant.AssistantError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return jsonify({"message": "Image saved to Asset Library!", "asset": asset_to_dict(asset)}), 201


@bp.route("/api/speech", methods=["POST"])
def speech():
    try:
        clip = assistant.synthesize_speech(_payload().get("text") or "")
    except assistant.AssistantError as exc:
        return jsonify({"error": str(exc)}), exc.status_code
    return Response(clip.audio, mimetype=clip.mime_type)

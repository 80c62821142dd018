import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio.ai.errors import AIBackendError, AIConfigurationError
from studio.documents import DocumentStore, InMemoryBackingStore, InvalidUpdateError, ItemNotFoundError
from studio.documents.backing import seed_data
from studio.documents.entities import new_page
from studio.editor import EditAction, EditorSession, EditorSessions, OutcomeStatus, SaveStatus, Selection
from studio.editor.inline_edit import splice
from studio.editor.scheduler import DeferredScheduler


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    store = DocumentStore.load(InMemoryBackingStore(seed_data()))
    store.add_page("proj-1", "chap-1", new_page("Scratch", content="Hello world"))
    return store


@pytest.fixture
def session(store, clock):
    editor = EditorSession(store, scheduler=DeferredScheduler(clock))
    scratch = store.find_item("chap-1").chapter.pages[-1]
    editor.select(scratch.id)
    return editor


def test_splice_replaces_exact_span():
    assert splice("Hello world", 6, 11, "earth") == "Hello earth"


def test_selection_capture_normalises_and_validates():
    assert Selection.capture("Hello world", 11, 6) == Selection("world", 6, 11)
    assert Selection.capture("Hello world", 3, 3) is None
    with pytest.raises(ValueError):
        Selection.capture("Hello", 0, 99)


def test_edit_action_parse():
    assert EditAction.parse(" Improve ") is EditAction.IMPROVE
    with pytest.raises(ValueError):
        EditAction.parse("translate")


def test_inline_edit_splices_and_autosaves(session, clock, store):
    session.capture_selection(6, 11)
    seen = []

    def rewrite(text, action):
        seen.append((text, action))
        return "earth"

    outcome = session.run_inline_edit(EditAction.IMPROVE, rewrite)

    assert outcome.status is OutcomeStatus.APPLIED
    assert outcome.message == "Text has been improved."
    assert outcome.content == "Hello earth"
    assert seen == [("world", EditAction.IMPROVE)]
    assert session.autosave.status is SaveStatus.UNSAVED
    assert session.selection is None

    clock.now = 5
    session.poll()
    assert store.find_item(session.selected_id).page.content == "Hello earth"


def test_inline_edit_failure_leaves_content_untouched(session):
    session.capture_selection(0, 5)

    def rewrite(text, action):
        raise AIConfigurationError("API key not configured.")

    outcome = session.run_inline_edit(EditAction.EXPAND, rewrite)

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.message == "AI action failed: API key not configured."
    assert isinstance(outcome.error, AIConfigurationError)
    assert session.content == "Hello world"
    assert session.selection is None
    assert not session.ai_busy


def test_inline_edit_without_selection_fails_fast(session):
    outcome = session.run_inline_edit(EditAction.SUMMARIZE, lambda text, action: "unused")

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.error is None


def test_response_for_edited_content_is_discarded(session):
    session.capture_selection(6, 11)

    def rewrite(text, action):
        session.autosave.edit("Goodbye world")
        return "earth"

    outcome = session.run_inline_edit(EditAction.IMPROVE, rewrite)

    assert outcome.status is OutcomeStatus.STALE
    assert session.content == "Goodbye world"


def test_response_after_switching_items_is_discarded(session, store):
    session.capture_selection(6, 11)

    def rewrite(text, action):
        session.select("page-1")
        return "earth"

    outcome = session.run_inline_edit(EditAction.IMPROVE, rewrite)

    assert outcome.status is OutcomeStatus.STALE
    assert "earth" not in store.find_item("page-1").page.content


def test_second_request_while_busy_is_refused(session):
    session.capture_selection(6, 11)
    nested = []

    def rewrite(text, action):
        nested.append(session.run_inline_edit(EditAction.EXPAND, lambda *_: "never"))
        return "earth"

    outcome = session.run_inline_edit(EditAction.IMPROVE, rewrite)

    assert nested[0].status is OutcomeStatus.BUSY
    assert outcome.applied


def test_backend_errors_are_reported_as_failures(session):
    session.capture_selection(6, 11)

    def rewrite(text, action):
        raise AIBackendError("upstream timeout")

    assert session.run_inline_edit(EditAction.IMPROVE, rewrite).status is OutcomeStatus.FAILED
    assert session.ai_busy is False
    assert session.selection is None


def test_unexpected_rewrite_error_releases_the_editor(session):
    session.capture_selection(6, 11)

    def rewrite(text, action):
        raise KeyError("style")

    with pytest.raises(KeyError):
        session.run_inline_edit(EditAction.IMPROVE, rewrite)

    assert session.ai_busy is False
    assert session.selection is None
    session.capture_selection(6, 11)
    outcome = session.run_inline_edit(EditAction.IMPROVE, lambda text, action: "earth")
    assert outcome.status is OutcomeStatus.APPLIED
    assert session.content == "Hello earth"


def test_insert_asset_appends_token_by_default(session):
    updated = session.insert_asset("asset-1")

    assert updated == "Hello world[[asset:asset-1:Kael]]"
    assert session.autosave.status is SaveStatus.UNSAVED


def test_insert_asset_at_caret_clamps_offsets(session):
    assert session.insert_asset("asset-1", caret=5) == "Hello[[asset:asset-1:Kael]] world"
    session.select("page-1")
    session.select(session.store.find_item("chap-1").chapter.pages[-1].id)
    assert session.insert_asset("asset-1", caret=-10).startswith("[[asset:asset-1:Kael]]")


def test_insert_unknown_asset_raises(session):
    with pytest.raises(ItemNotFoundError):
        session.insert_asset("nope")


def test_update_fields_writes_through_immediately(session, store):
    session.select("proj-1")

    session.update_fields({"description": "Neo-Kyoto noir", "is_published": False})

    project = store.find_item("proj-1").project
    assert project.description == "Neo-Kyoto noir"
    assert project.is_published is False
    with pytest.raises(InvalidUpdateError):
        session.update_fields({"content": "nope"})


def test_selection_requires_a_page(session):
    session.select("chap-1")

    with pytest.raises(InvalidUpdateError):
        session.capture_selection(0, 1)


def test_describe_reports_editor_state(session):
    session.capture_selection(0, 5)
    state = session.describe()

    assert state["kind"] == "page"
    assert state["content"] == "Hello world"
    assert state["selection"] == {"text": "Hello", "start": 0, "end": 5}
    assert state["status"] == "idle"


def test_sessions_registry_reuses_one_session_per_key(store):
    sessions = EditorSessions(lambda: EditorSession(store))

    first = sessions.get(1)
    assert sessions.get(1) is first
    assert sessions.get(2) is not first
    sessions.discard(1)
    assert sessions.get(1) is not first


def test_late_content_edits_do_not_overwrite_newer_text(session):
    assert session.edit_content("Hello there", sequence=2) is True
    assert session.edit_content("Hello", sequence=1) is False
    assert session.edit_content("Hello there", sequence=2) is False

    assert session.content == "Hello there"
    assert session.edit_content("Hello there, Kael", sequence=3) is True
    assert session.edit_content("Unnumbered edits always apply") is True

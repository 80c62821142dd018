import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio.documents import DocumentStore, InMemoryBackingStore, InvalidUpdateError, PersistenceError
from studio.documents.backing import seed_data
from studio.editor.autosave import AutosaveController, SaveStatus
from studio.editor.scheduler import DeferredScheduler


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FlakyBackingStore(InMemoryBackingStore):
    fail = False

    def save_projects(self, projects):
        if self.fail:
            raise PersistenceError("backing store offline")
        super().save_projects(projects)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def backing():
    return FlakyBackingStore(seed_data())


@pytest.fixture
def store(backing):
    return DocumentStore.load(backing)


@pytest.fixture
def scheduler(clock):
    return DeferredScheduler(clock)


@pytest.fixture
def controller(store, scheduler):
    autosave = AutosaveController(store, scheduler, debounce_seconds=1.5, saved_display_seconds=2.0)
    autosave.bind("page-1")
    return autosave


def _at(clock, scheduler, seconds):
    clock.now = seconds
    scheduler.run_pending()


def test_scheduler_runs_due_callbacks_in_order(clock):
    scheduler = DeferredScheduler(clock)
    calls = []
    scheduler.call_later(2, lambda: calls.append("late"))
    scheduler.call_later(1, lambda: calls.append("early"))
    cancelled = scheduler.call_later(1.5, lambda: calls.append("cancelled"))
    cancelled.cancel()

    clock.now = 3
    ran = scheduler.run_pending()

    assert calls == ["early", "late"]
    assert ran == 2
    assert scheduler.pending() == 0


def test_scheduler_rejects_negative_delays(clock):
    with pytest.raises(ValueError):
        DeferredScheduler(clock).call_later(-1, lambda: None)


def test_debounced_write_lands_exactly_at_the_deadline(store, backing, clock, scheduler):
    # Whole milliseconds keep the 400 + 1500 deadline exact.
    autosave = AutosaveController(store, scheduler, debounce_seconds=1500, saved_display_seconds=2000)
    autosave.bind("page-1")
    for offset, text in ((0, "a"), (200, "ab"), (400, "abc")):
        _at(clock, scheduler, offset)
        autosave.edit(text)

    _at(clock, scheduler, 1899)
    assert backing.project_writes == 0

    _at(clock, scheduler, 1900)
    assert backing.project_writes == 1
    assert store.find_item("page-1").page.content == "abc"


def test_burst_of_edits_writes_once_after_debounce(controller, clock, scheduler, backing, store):
    for offset, text in ((0.0, "a"), (0.2, "ab"), (0.4, "abc")):
        _at(clock, scheduler, offset)
        controller.edit(text)
        assert controller.status is SaveStatus.UNSAVED

    _at(clock, scheduler, 1.85)
    assert backing.project_writes == 0
    assert controller.status is SaveStatus.UNSAVED

    _at(clock, scheduler, 1.95)
    assert backing.project_writes == 1
    assert store.find_item("page-1").page.content == "abc"
    assert controller.status is SaveStatus.SAVED

    _at(clock, scheduler, 3.9)
    assert controller.status is SaveStatus.SAVED
    _at(clock, scheduler, 4.0)
    assert controller.status is SaveStatus.IDLE


def test_unchanged_content_is_not_written(controller, clock, scheduler, backing, store):
    original = store.find_item("page-1").page.content
    controller.edit(original + " draft")
    controller.edit(original)

    _at(clock, scheduler, 2)

    assert backing.project_writes == 0
    assert controller.status is SaveStatus.SAVED


def test_switching_items_abandons_pending_edit(controller, clock, scheduler, backing, store):
    original = store.find_item("page-1").page.content
    controller.edit("typed just before switching")

    _at(clock, scheduler, 1.0)
    controller.bind("chap-1")
    _at(clock, scheduler, 10)

    assert backing.project_writes == 0
    assert controller.status is SaveStatus.IDLE

    controller.bind("page-1")
    assert controller.content == original


def test_binding_non_page_items_disables_editing(controller):
    controller.bind("proj-1")

    assert not controller.editable
    with pytest.raises(InvalidUpdateError):
        controller.edit("projects have no body")


def test_binding_unknown_item_clears_editor(controller):
    controller.bind("missing")

    assert controller.item_id is None
    assert controller.content == ""
    assert controller.status_text() == ""


def test_persistence_failure_returns_to_unsaved(controller, clock, scheduler, backing):
    backing.fail = True
    controller.edit("will not reach storage")

    clock.now = 2
    with pytest.raises(PersistenceError):
        scheduler.run_pending()

    assert controller.status is SaveStatus.UNSAVED
    assert isinstance(controller.last_error, PersistenceError)


def test_status_text_tracks_state(controller, clock, scheduler, store):
    controller.edit("x")
    assert controller.status_text() == "Unsaved changes..."

    _at(clock, scheduler, 1.5)
    assert controller.status_text() == "All changes saved."

    _at(clock, scheduler, 3.5)
    updated = store.find_item("page-1").page.updated_at
    assert controller.status_text() == f"Last updated: {updated.strftime('%H:%M:%S')}"


def test_revision_increases_on_every_edit_and_bind(controller):
    start = controller.revision
    controller.edit("one")
    controller.edit("two")
    controller.bind("page-1")

    assert controller.revision == start + 3

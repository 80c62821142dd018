import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio.documents import DocumentStore, InMemoryBackingStore
from studio.documents.backing import seed_data
from studio.documents.references import PlainText
from studio.documents.renderer import lookup_mention, render_content, render_plain_text
from studio.exporters import export_project_to_pdf, export_project_to_txt
from studio.exporters.pdf import _pdf_safe_text


def _store():
    return DocumentStore.load(InMemoryBackingStore(seed_data(datetime(2024, 5, 1, tzinfo=timezone.utc))))


def test_render_resolves_known_assets_and_keeps_dangling_mentions():
    store = _store()
    content = "[[asset:asset-1:Kael]] met [[asset:gone:Mira]]."

    segments = list(render_content(content, store.asset_catalog()))

    kael, met, mira, stop = segments
    assert kael.resolved and kael.asset.name == "Kael"
    assert met == PlainText(" met ")
    assert not mira.resolved and mira.display_name == "Mira"
    assert stop == PlainText(".")


def test_lookup_mention_reports_missing_assets():
    catalog = _store().asset_catalog()

    assert lookup_mention("asset-1", catalog).found
    assert not lookup_mention("gone", catalog).found


def test_render_plain_text_flattens_tokens():
    assert render_plain_text("Hi [[asset:x:Kael]]!") == "Hi Kael!"


def test_text_export_lists_chapters_and_flattens_mentions():
    project = _store().find_item("proj-1").project

    text = export_project_to_txt(project).decode("utf-8")

    assert text.startswith("The Crimson Cipher\n")
    assert "Chapter 1: The Silent Signal" in text
    assert "First Encounter" in text
    assert "Kael adjusted his collar" in text
    assert "[[asset:" not in text


def test_text_export_can_write_to_disk(tmp_path):
    project = _store().find_item("proj-1").project
    target = tmp_path / "book.txt"

    data = export_project_to_txt(project, output_path=target)

    assert target.read_bytes() == data


def test_pdf_export_produces_a_pdf_document():
    project = _store().find_item("proj-1").project

    data = export_project_to_pdf(project)

    assert data.startswith(b"%PDF")


def test_pdf_text_is_reduced_to_latin1():
    assert _pdf_safe_text("“Neo–Kyoto”…") == '"Neo-Kyoto"...'
    assert _pdf_safe_text("雨") == "?"

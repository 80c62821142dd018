import sys
from pathlib import Path

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio import create_app, get_document_store
from studio.config import TestConfig
from studio.db_utils import ensure_database_schema
from studio.documents import DocumentStore, PersistenceError, SqlBackingStore
from studio.documents.entities import new_asset
from studio.extensions import db
from studio.models import StoredCollection


@pytest.fixture
def app_instance():
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


def test_test_config_starts_with_an_empty_library(app_instance):
    store = get_document_store()

    assert store.projects == ()
    assert StoredCollection.query.count() == 0


def test_seed_writes_each_collection_once(app_instance):
    backing = SqlBackingStore(db)

    assert backing.seed_if_empty() is True
    assert backing.seed_if_empty() is False
    assert {row.key for row in StoredCollection.query.all()} == {"projects", "assets"}
    assert backing.load_projects()[0].chapters[0].pages[0].id == "page-1"


def test_store_changes_survive_a_reload(app_instance):
    backing = SqlBackingStore(db)
    backing.seed_if_empty()
    store = DocumentStore.load(backing)

    store.update_item("page-1", {"content": "Persisted text"})
    store.add_asset(new_asset("Neo-Kyoto", "location"))

    fresh = DocumentStore.load(SqlBackingStore(db))
    assert fresh.find_item("page-1").page.content == "Persisted text"
    assert [asset.name for asset in fresh.assets] == ["Kael", "Neo-Kyoto"]


def test_corrupt_payload_is_a_persistence_error(app_instance):
    db.session.add(StoredCollection(key="projects", payload="{not json"))
    db.session.commit()

    with pytest.raises(PersistenceError):
        SqlBackingStore(db).load_projects()


def test_failed_commit_rolls_back_and_raises(app_instance, monkeypatch):
    backing = SqlBackingStore(db)
    backing.seed_if_empty()
    store = DocumentStore.load(backing)
    rolled_back = []

    def failing_commit():
        raise OperationalError("UPDATE stored_collections", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", failing_commit)
    monkeypatch.setattr(db.session, "rollback", lambda: rolled_back.append(True))

    with pytest.raises(PersistenceError):
        store.update_item("page-1", {"title": "Lost"})
    assert rolled_back == [True]


def test_seed_on_startup_loads_the_starter_project():
    class SeededConfig(TestConfig):
        SEED_ON_STARTUP = True

    app = create_app(SeededConfig)
    with app.app_context():
        store = get_document_store()
        assert [project.title for project in store.published_projects()] == ["The Crimson Cipher"]
        db.session.remove()
        db.drop_all()


def test_schema_upkeep_adds_missing_columns(app_instance):
    db.drop_all()
    with db.engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR(255) NOT NULL, "
                "password_hash VARCHAR(255) NOT NULL, display_name VARCHAR(120) NOT NULL, "
                "created_at DATETIME NOT NULL)"
            )
        )
        connection.execute(text("CREATE TABLE stored_collections (key VARCHAR(64) PRIMARY KEY, payload TEXT NOT NULL)"))

    ensure_database_schema()

    inspector = inspect(db.engine)
    assert "last_login_at" in {column["name"] for column in inspector.get_columns("users")}
    assert "updated_at" in {column["name"] for column in inspector.get_columns("stored_collections")}

from __future__ import annotations

from pathlib import Path

from flask import Flask, current_app

from .config import Config
from .db_utils import ensure_database_schema
from .documents import DocumentStore, SqlBackingStore
from .editor import SESSIONS_EXTENSION_KEY, DeferredScheduler, EditorSession, EditorSessions
from .extensions import csrf, db, login_manager, migrate
from .logging_config import configure_logging

BASE_DIR = Path(__file__).resolve().parent.parent

DOCUMENT_STORE_KEY = "studio.documents"


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(
        __name__,
        instance_relative_config=True,
        static_folder=str(BASE_DIR / "static"),
        static_url_path="/static",
    )
    app.config.from_object(config_class)
    app.config.setdefault("PROMPT_CONFIG_PATH", str(BASE_DIR / "prompt_config.json"))

    configure_logging(app)
    register_extensions(app)
    register_blueprints(app)

    with app.app_context():
        ensure_database_schema()
        register_documents(app)

    return app


def register_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "info"
    csrf.init_app(app)


def register_blueprints(app: Flask) -> None:
    from .auth import bp as auth_bp
    from .portal import bp as portal_bp
    from .workspace import bp as workspace_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(workspace_bp)


def register_documents(app: Flask) -> None:
    """Load the document tree and set up per-author editor sessions."""

    backing = SqlBackingStore(db)
    if app.config.get("SEED_ON_STARTUP"):
        backing.seed_if_empty()
    store = DocumentStore.load(backing)
    app.extensions[DOCUMENT_STORE_KEY] = store

    debounce = float(app.config["AUTOSAVE_DEBOUNCE_SECONDS"])
    saved_display = float(app.config["SAVED_STATUS_SECONDS"])

    def new_session() -> EditorSession:
        return EditorSession(
            store,
            scheduler=DeferredScheduler(),
            debounce_seconds=debounce,
            saved_display_seconds=saved_display,
        )

    app.extensions[SESSIONS_EXTENSION_KEY] = EditorSessions(new_session)
    app.logger.info("Loaded %d projects and %d assets", len(store.projects), len(store.assets))


def get_document_store() -> DocumentStore:
    return current_app.extensions[DOCUMENT_STORE_KEY]
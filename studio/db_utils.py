"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

from typing import Set

from sqlalchemy import inspect, text

from .extensions import db

_ADDED_COLUMNS = (("stored_collections", "updated_at"), ("users", "last_login_at"))


def _get_column_names(table_name: str) -> Set[str]:
    inspector = inspect(db.engine)
    return {column["name"] for column in inspector.get_columns(table_name)}


def ensure_database_schema() -> None:
    """Create missing tables and columns; safe to run on every start.

    Older databases get the ``stored_collections.updated_at`` and
    ``users.last_login_at`` columns added in place.
    """

    from .models import StoredCollection, User

    inspector = inspect(db.engine)
    table_names = set(inspector.get_table_names())

    for table in (User.__table__, StoredCollection.__table__):
        if table.name not in table_names:
            table.create(bind=db.engine)

    for table_name, column in _ADDED_COLUMNS:
        if table_name in table_names and column not in _get_column_names(table_name):
            with db.engine.begin() as connection:
                connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column} DATETIME"))

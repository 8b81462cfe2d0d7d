"""Dialect-aware INSERT for conflict-resolving writes.

Both production (Postgres) and the test suite (SQLite) support
INSERT ... ON CONFLICT, but SQLAlchemy exposes it per dialect. Callers
build one statement and let the database resolve the race on its unique
constraint instead of doing a read-then-write from Python.
"""

from sqlalchemy.dialects import postgresql, sqlite

from liftflow.extensions import db

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(model):
    """Return an ON CONFLICT-capable insert() for model's table on the bound engine."""
    dialect = db.engine.dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"No ON CONFLICT support for database dialect '{dialect}'")
    return insert(model.__table__)

"""Database engine setup for SQLite with WAL mode.

The DB is stored at ``{root}/.routekeeper/{filename}``. SQLAlchemy Core
(not ORM) is used: the only access pattern is read-one-row and
overwrite-one-row.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from routekeeper.infrastructure.database.schema import metadata

DATA_DIRNAME = ".routekeeper"
DEFAULT_DB_FILENAME = "routekeeper.db"


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode enabled."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def init_database(root: Path, filename: str = DEFAULT_DB_FILENAME) -> Engine:
    """Initialize the database at ``{root}/.routekeeper/{filename}``.

    Creates the data directory and all tables. Idempotent.
    """
    data_dir = root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(data_dir / filename)
    metadata.create_all(engine)
    return engine

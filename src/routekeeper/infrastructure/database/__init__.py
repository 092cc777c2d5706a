"""SQLite engine, schema, and the snapshot key-value adapter via SQLAlchemy Core."""

from routekeeper.infrastructure.database.engine import create_db_engine, init_database
from routekeeper.infrastructure.database.kv import SqliteKeyValueStore
from routekeeper.infrastructure.database.schema import kv_store, metadata

__all__ = [
    "SqliteKeyValueStore",
    "create_db_engine",
    "init_database",
    "kv_store",
    "metadata",
]

"""SQLAlchemy Core table definitions for the routekeeper database.

One table: a key-value store holding opaque blobs. The relationship
store keeps its whole snapshot in a single row under a fixed key.
"""

from __future__ import annotations

from sqlalchemy import Column, MetaData, Table, Text

metadata = MetaData()

kv_store = Table(
    "kv_store",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

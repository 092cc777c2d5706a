"""Key-value persistence adapter backed by the ``kv_store`` table.

Each ``write`` is its own transaction: a reader sees either the previous
blob or the new one, never a torn write.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from routekeeper.infrastructure.database.schema import kv_store

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal blob storage the relationship store persists through."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...


class SqliteKeyValueStore:
    """:class:`KeyValueStore` on a SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def read(self, key: str) -> str | None:
        """Return the blob stored under *key*, or None."""
        with self._engine.connect() as conn:
            return conn.execute(
                select(kv_store.c.value).where(kv_store.c.key == key)
            ).scalar_one_or_none()

    def write(self, key: str, value: str) -> None:
        """Insert or overwrite the blob under *key*."""
        modified = datetime.now(UTC).isoformat()
        stmt = insert(kv_store).values(key=key, value=value, modified=modified)
        stmt = stmt.on_conflict_do_update(
            index_elements=[kv_store.c.key],
            set_={"value": stmt.excluded.value, "modified": stmt.excluded.modified},
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)
        logger.debug("Wrote %d bytes under %s", len(value), key)

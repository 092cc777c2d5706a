"""Shared pytest fixtures for routekeeper tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.engine import Engine

from routekeeper.infrastructure.clock import ManualClock
from routekeeper.infrastructure.database.engine import init_database
from routekeeper.infrastructure.database.kv import SqliteKeyValueStore
from routekeeper.infrastructure.timers import ManualScheduler
from routekeeper.plugins.event_bus import EventBus
from routekeeper.plugins.hookspecs import hookimpl
from routekeeper.plugins.manager import PluginManager
from routekeeper.services.store import RelationshipStore

# 2024-01-01T00:00:00Z
T0_MS = 1_704_067_200_000


class RecordingPlugin:
    """Listener that records every notification in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def of(self, hook_name: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.calls if name == hook_name]

    @hookimpl
    def node_added(self, node_id: str, label: str) -> None:
        self.calls.append(("node_added", {"node_id": node_id, "label": label}))

    @hookimpl
    def node_removed(self, node_id: str) -> None:
        self.calls.append(("node_removed", {"node_id": node_id}))

    @hookimpl
    def connection_added(
        self, connection_id: str, source: str, target: str, end_time: int, label: str
    ) -> None:
        self.calls.append(
            (
                "connection_added",
                {
                    "connection_id": connection_id,
                    "source": source,
                    "target": target,
                    "end_time": end_time,
                    "label": label,
                },
            )
        )

    @hookimpl
    def connection_updated(
        self, connection_id: str, source: str, target: str, end_time: int, label: str
    ) -> None:
        self.calls.append(
            (
                "connection_updated",
                {
                    "connection_id": connection_id,
                    "source": source,
                    "target": target,
                    "end_time": end_time,
                    "label": label,
                },
            )
        )

    @hookimpl
    def connection_removed(self, connection_id: str, reason: str) -> None:
        self.calls.append(
            ("connection_removed", {"connection_id": connection_id, "reason": reason})
        )


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at a fixed instant."""
    return ManualClock(T0_MS)


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    """Virtual-time scheduler sharing the manual clock."""
    return ManualScheduler(clock)


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def kv(db_engine: Engine) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(db_engine)


@pytest.fixture
def recorder() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def event_bus(recorder: RecordingPlugin) -> EventBus:
    """Event bus with the recording plugin registered."""
    pm = PluginManager()
    pm.register_plugin(recorder, name="recorder")
    return EventBus(pm)


@pytest.fixture
def store(
    clock: ManualClock,
    scheduler: ManualScheduler,
    kv: SqliteKeyValueStore,
    event_bus: EventBus,
) -> Generator[RelationshipStore]:
    """Persistent store on the manual clock, with notifications recorded."""
    s = RelationshipStore(clock=clock, scheduler=scheduler, persistence=kv, events=event_bus)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_store(
    clock: ManualClock,
    scheduler: ManualScheduler,
    kv: SqliteKeyValueStore,
) -> Generator[Any]:
    """Factory for extra stores sharing the clock, scheduler, and snapshot row.

    Simulates a process restart: a fresh store over the same database.
    """
    created: list[RelationshipStore] = []

    def _make(**kwargs: Any) -> RelationshipStore:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("persistence", kv)
        s = RelationshipStore(**kwargs)
        created.append(s)
        return s

    try:
        yield _make
    finally:
        for s in created:
            s.close()

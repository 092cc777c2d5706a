"""Tests for RouteKeeper — wiring, restarts, and the asyncio tick loop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from routekeeper import runtime
from routekeeper.config.settings import RouteKeeperSettings
from routekeeper.domain.durations import PERMANENT
from routekeeper.infrastructure.clock import ManualClock
from routekeeper.infrastructure.database.engine import DATA_DIRNAME
from routekeeper.infrastructure.timers import ManualScheduler
from routekeeper.plugins.hookspecs import hookimpl
from routekeeper.runtime import RouteKeeper

T0_MS = 1_704_067_200_000


class _Collector:
    def __init__(self) -> None:
        self.added: list[str] = []
        self.removed: list[tuple[str, str]] = []

    @hookimpl
    def connection_added(self, connection_id: str) -> None:
        self.added.append(connection_id)

    @hookimpl
    def connection_removed(self, connection_id: str, reason: str) -> None:
        self.removed.append((connection_id, reason))


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RouteKeeperSettings:
    monkeypatch.delenv("ROUTEKEEPER_CONFIG", raising=False)
    (tmp_path / "routekeeper.toml").write_text("[store]\ntick_interval = 0.01\n")
    return RouteKeeperSettings.load(root=tmp_path)


def _open(settings: RouteKeeperSettings, clock: ManualClock, **kwargs: Any) -> RouteKeeper:
    return RouteKeeper.open(
        settings,
        scheduler=ManualScheduler(clock),
        clock=clock,
        discover_plugins=False,
        **kwargs,
    )


class TestOpen:
    def test_creates_database_under_root(self, settings: RouteKeeperSettings) -> None:
        keeper = _open(settings, ManualClock(T0_MS))
        try:
            assert (settings.root / DATA_DIRNAME / "routekeeper.db").is_file()
            assert keeper.report is not None
            assert keeper.report.restored == []
        finally:
            keeper.close()

    def test_requires_loop_or_scheduler(self, settings: RouteKeeperSettings) -> None:
        with pytest.raises(ValueError, match="loop or a scheduler"):
            RouteKeeper.open(settings, discover_plugins=False)

    def test_listeners_see_rehydrated_state(self, settings: RouteKeeperSettings) -> None:
        clock = ManualClock(T0_MS)
        first = _open(settings, clock)
        first.connections.create("Martlock", "Bridgewatch", permanent=True)
        first.close()

        collector = _Collector()
        second = _open(settings, clock, listeners=[collector])
        try:
            assert collector.added == ["Martlock|Bridgewatch"]
        finally:
            second.close()

    def test_listeners_of_the_same_class(self, settings: RouteKeeperSettings) -> None:
        clock = ManualClock(T0_MS)
        first = _open(settings, clock)
        first.connections.create("A", "B", permanent=True)
        first.close()

        left, right = _Collector(), _Collector()
        second = _open(settings, clock, listeners=[left, right])
        try:
            assert left.added == right.added == ["A|B"]
        finally:
            second.close()

    def test_failed_setup_disposes_engine(
        self, settings: RouteKeeperSettings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        disposed: list[bool] = []
        real_init = runtime.init_database

        def init_and_watch(*args: Any) -> Any:
            engine = real_init(*args)
            real_dispose = engine.dispose

            def dispose() -> None:
                disposed.append(True)
                real_dispose()

            monkeypatch.setattr(engine, "dispose", dispose)
            return engine

        monkeypatch.setattr(runtime, "init_database", init_and_watch)
        listener = _Collector()
        with pytest.raises(ValueError):
            _open(settings, ManualClock(T0_MS), listeners=[listener, listener])
        assert disposed == [True]

    def test_known_nodes_from_settings(self, tmp_path: Path) -> None:
        settings = RouteKeeperSettings.load(
            root=tmp_path, store={"known_nodes": ["Martlock", "Lymhurst"]}
        )
        keeper = _open(settings, ManualClock(T0_MS))
        try:
            result = keeper.connections.create("Martlock", "Atlantis", duration=60)
            assert not result.ok
            assert result.error is not None
            assert result.error.detail == {"field": "target"}
        finally:
            keeper.close()


class TestRestart:
    def test_state_survives_reopen(self, settings: RouteKeeperSettings) -> None:
        clock = ManualClock(T0_MS)
        first = _open(settings, clock)
        first.connections.create("A", "B", duration=3600)
        first.connections.create("B", "C", permanent=True)
        first.close()

        clock.advance(600)
        second = _open(settings, clock)
        try:
            listing = second.connections.list().data
            by_id = {item["id"]: item for item in listing["items"]}
            assert set(by_id) == {"A|B", "B|C"}
            assert by_id["A|B"]["remaining_seconds"] == 3000
            assert by_id["A|B"]["label"] == "50m"
            assert by_id["B|C"]["permanent"]
        finally:
            second.close()

    def test_expired_while_closed(self, settings: RouteKeeperSettings) -> None:
        clock = ManualClock(T0_MS)
        first = _open(settings, clock)
        first.connections.create("A", "B", duration=60)
        first.close()

        clock.advance(120)
        collector = _Collector()
        second = _open(settings, clock, listeners=[collector])
        try:
            assert second.report is not None
            assert second.report.expired == ["A|B"]
            assert second.store.list_nodes() == []
            assert collector.added == []
        finally:
            second.close()


class TestRun:
    def test_tick_loop_evicts_and_stops(self, settings: RouteKeeperSettings) -> None:
        clock = ManualClock(T0_MS)
        collector = _Collector()

        async def scenario() -> list[str]:
            loop = asyncio.get_running_loop()
            keeper = RouteKeeper.open(
                settings,
                loop=loop,
                clock=clock,
                listeners=[collector],
                discover_plugins=False,
            )
            try:
                keeper.connections.create("A", "B", duration=60)
                clock.advance(61)
                stop = asyncio.Event()
                loop.call_later(0.1, stop.set)
                await asyncio.wait_for(keeper.run(stop), timeout=5)
                return [c.id for c in keeper.store.list_connections()]
            finally:
                keeper.close()

        assert asyncio.run(scenario()) == []
        assert collector.removed == [("A|B", "expired")]

    def test_run_returns_when_already_stopped(self, settings: RouteKeeperSettings) -> None:
        async def scenario() -> None:
            keeper = RouteKeeper.open(
                settings, loop=asyncio.get_running_loop(), discover_plugins=False
            )
            try:
                stop = asyncio.Event()
                stop.set()
                await keeper.run(stop)
            finally:
                keeper.close()

        asyncio.run(scenario())

    def test_asyncio_timer_fires(self, settings: RouteKeeperSettings) -> None:
        async def scenario() -> list[str]:
            keeper = RouteKeeper.open(
                settings, loop=asyncio.get_running_loop(), discover_plugins=False
            )
            try:
                keeper.store.create_connection("A", "B", 1)
                keeper.store.create_connection("C", "D", PERMANENT)
                await asyncio.sleep(1.3)
                return [c.id for c in keeper.store.list_connections()]
            finally:
                keeper.close()

        assert asyncio.run(scenario()) == ["C|D"]

    def test_tick_failure_keeps_loop_alive(
        self,
        settings: RouteKeeperSettings,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        calls: list[int] = []

        async def scenario() -> None:
            keeper = RouteKeeper.open(
                settings, loop=asyncio.get_running_loop(), discover_plugins=False
            )
            stop = asyncio.Event()

            def flaky_tick() -> list[str]:
                calls.append(len(calls))
                if len(calls) == 1:
                    raise OperationalError("INSERT INTO kv_store", {}, Exception("disk I/O error"))
                if len(calls) == 3:
                    stop.set()
                return []

            monkeypatch.setattr(keeper.store, "tick", flaky_tick)
            try:
                await asyncio.wait_for(keeper.run(stop), timeout=5)
            finally:
                keeper.close()

        with caplog.at_level(logging.WARNING, logger="routekeeper.runtime"):
            asyncio.run(scenario())

        assert len(calls) == 3
        assert "Tick failed" in caplog.text

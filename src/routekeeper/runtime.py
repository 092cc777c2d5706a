"""RouteKeeper — owns every collaborator of one running store.

Builds the SQLite engine, the snapshot adapter, the plugin manager and
event bus, the timer scheduler and the store from one settings object,
then drives the periodic tick on an asyncio loop::

    async def main() -> None:
        settings = RouteKeeperSettings.load()
        keeper = RouteKeeper.open(settings, loop=asyncio.get_running_loop())
        stop = asyncio.Event()
        try:
            await keeper.run(stop)
        finally:
            keeper.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from routekeeper.config.logging import configure_logging
from routekeeper.infrastructure.clock import SystemClock
from routekeeper.infrastructure.database.engine import init_database
from routekeeper.infrastructure.database.kv import SqliteKeyValueStore
from routekeeper.infrastructure.timers import AsyncioScheduler
from routekeeper.plugins.event_bus import EventBus
from routekeeper.plugins.manager import PluginManager
from routekeeper.services.connections import ConnectionService
from routekeeper.services.store import RehydrationReport, RelationshipStore

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from routekeeper.config.settings import RouteKeeperSettings
    from routekeeper.infrastructure.clock import Clock
    from routekeeper.infrastructure.timers import Scheduler

logger = logging.getLogger(__name__)


class RouteKeeper:
    """One store plus the engine, plugins and scheduler it runs on."""

    def __init__(
        self,
        settings: RouteKeeperSettings,
        *,
        engine: Engine,
        plugins: PluginManager,
        store: RelationshipStore,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.plugins = plugins
        self.store = store
        self.connections = ConnectionService(store)
        self.report: RehydrationReport | None = None

    @classmethod
    def open(
        cls,
        settings: RouteKeeperSettings,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        listeners: list[object] | None = None,
        discover_plugins: bool = True,
        setup_logging: bool = False,
    ) -> RouteKeeper:
        """Build every collaborator from *settings* and load the snapshot.

        Pass *loop* to get asyncio timers, or *scheduler* to supply one
        directly. *listeners* are registered before the snapshot loads so
        they see the rehydrated state.
        """
        if setup_logging:
            configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if scheduler is None:
            if loop is None:
                msg = "RouteKeeper.open() needs either a loop or a scheduler"
                raise ValueError(msg)
            scheduler = AsyncioScheduler(loop)

        engine = init_database(settings.root, settings.database.filename)
        plugins = PluginManager()
        try:
            if discover_plugins:
                plugins.discover_and_load()
            for listener in listeners or []:
                plugins.register_plugin(
                    listener, name=f"{type(listener).__name__}-{id(listener):x}"
                )

            store = RelationshipStore(
                clock=clock or SystemClock(),
                scheduler=scheduler,
                persistence=SqliteKeyValueStore(engine),
                events=EventBus(plugins),
                snapshot_key=settings.store.snapshot_key,
                known_nodes=settings.store.known_nodes,
            )
            keeper = cls(settings, engine=engine, plugins=plugins, store=store)
            keeper.report = store.load()
        except Exception:
            engine.dispose()
            raise
        logger.debug("Opened store under %s", settings.root)
        return keeper

    async def run(self, stop: asyncio.Event) -> None:
        """Call ``store.tick()`` every ``tick_interval`` seconds until *stop* is set."""
        interval = self.settings.store.tick_interval
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                try:
                    self.store.tick()
                except Exception:
                    logger.warning("Tick failed; retrying next interval", exc_info=True)

    def close(self) -> None:
        """Cancel timers and dispose of the engine."""
        self.store.close()
        self.engine.dispose()

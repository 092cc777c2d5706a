"""RelationshipStore — the expiring-connection core.

Owns the node/connection graph, one eviction timer per timed connection,
and the persisted snapshot. All mutations run to completion on a single
thread: create, remove, tick, and timer callbacks never interleave.

Every mutating operation follows the same order:

1. validate (nothing is touched on failure)
2. mutate the graph and the timer map
3. write the snapshot
4. dispatch change notifications

INVARIANTS:
- No node outlives its last connection once an operation completes.
- Every connection's endpoints exist as nodes.
- A permanent connection has no timer; a timed one has exactly one.
- Replacing or removing a connection cancels its timer before anything
  else is armed.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from structlog.contextvars import bound_contextvars

from routekeeper.domain.durations import (
    MS_PER_SECOND,
    end_time_for,
    format_duration,
    is_permanent,
    remaining_seconds,
)
from routekeeper.domain.ids import connection_id, split_connection_id
from routekeeper.domain.snapshot import (
    Snapshot,
    SnapshotConnection,
    SnapshotError,
    SnapshotNode,
    decode_snapshot,
    encode_snapshot,
)
from routekeeper.domain.types import ConnectionView, Node
from routekeeper.domain.validation import validate_duration, validate_endpoint
from routekeeper.infrastructure.graph import ConnectionGraph

if TYPE_CHECKING:
    from routekeeper.infrastructure.clock import Clock
    from routekeeper.infrastructure.database.kv import KeyValueStore
    from routekeeper.infrastructure.timers import Scheduler, TimerHandle
    from routekeeper.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "gd"


@dataclass
class RehydrationReport:
    """What reconciliation did with a snapshot."""

    restored: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    corrupt: bool = False


class RelationshipStore:
    """Nodes and expiring connections, persisted as one snapshot.

    Parameters:
        clock: Wall-clock source in epoch milliseconds.
        scheduler: Arms the per-connection eviction timers.
        persistence: Where the snapshot is written; None keeps the store
            purely in memory.
        events: Receives change notifications; None disables them.
        snapshot_key: Key of the snapshot row in *persistence*.
        known_nodes: Optional catalogue; when non-empty, endpoints must
            belong to it.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        persistence: KeyValueStore | None = None,
        events: EventBus | None = None,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        known_nodes: Collection[str] = (),
    ) -> None:
        self._clock = clock
        self._scheduler = scheduler
        self._persistence = persistence
        self._events = events
        self._snapshot_key = snapshot_key
        self._known_nodes = frozenset(known_nodes)
        self._graph = ConnectionGraph()
        self._timers: dict[str, TimerHandle] = {}
        # Last countdown label announced per connection, so tick() only
        # reports labels that actually changed.
        self._labels: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_connection(
        self,
        source_id: str,
        target_id: str,
        duration_seconds: int,
    ) -> str:
        """Create or replace the connection ``source_id -> target_id``.

        *duration_seconds* is a positive whole number of seconds, or
        ``PERMANENT``. Missing endpoint nodes are created, labelled with
        their id. An existing connection for the same ordered pair is
        replaced and its timer cancelled.

        Returns:
            The connection id.

        Raises:
            InvalidInputError: Before any mutation, if an endpoint or the
                duration is invalid.
        """
        known = self._known_nodes or None
        source = validate_endpoint(source_id, field="source", known_nodes=known)
        target = validate_endpoint(target_id, field="target", known_nodes=known)
        duration = validate_duration(duration_seconds)

        now = self._clock.now_ms()
        end_time = end_time_for(duration, now)
        conn_id = connection_id(source, target)
        replaced = self._graph.has_connection(source, target)

        self._cancel_timer(conn_id)
        new_nodes = [n for n in dict.fromkeys((source, target)) if self._graph.add_node(n, n)]
        self._graph.set_connection(source, target, end_time)
        if not is_permanent(end_time):
            self._arm_timer(conn_id, end_time, now)
        label = format_duration(remaining_seconds(end_time, now))
        self._labels[conn_id] = label

        self.save()

        for node_id in new_nodes:
            self._notify("node_added", node_id=node_id, label=self._graph.node_label(node_id))
        self._notify(
            "connection_updated" if replaced else "connection_added",
            connection_id=conn_id,
            source=source,
            target=target,
            end_time=end_time,
            label=label,
        )
        with bound_contextvars(connection_id=conn_id, end_time=end_time):
            logger.info(
                "%s connection %s (%s)",
                "Replaced" if replaced else "Created",
                conn_id,
                label or "permanent",
            )
        return conn_id

    def remove_connection(self, conn_id: str) -> bool:
        """Remove a connection and prune endpoints left without one.

        Idempotent: an unknown id is a no-op and returns False.
        """
        return self._evict(conn_id, reason="removed")

    def tick(self) -> list[str]:
        """Sweep timed connections once.

        Connections whose remaining time reached zero are evicted through
        the same path as :meth:`remove_connection`; the rest get a
        ``connection_updated`` notification when their label changed.

        Returns:
            Ids of the connections evicted by this sweep.
        """
        now = self._clock.now_ms()
        due: list[str] = []
        for source, target, end_time in list(self._graph.connections()):
            if is_permanent(end_time):
                continue
            conn_id = connection_id(source, target)
            left = remaining_seconds(end_time, now)
            if not left:
                due.append(conn_id)
                continue
            label = format_duration(left)
            if self._labels.get(conn_id) != label:
                self._labels[conn_id] = label
                self._notify(
                    "connection_updated",
                    connection_id=conn_id,
                    source=source,
                    target=target,
                    end_time=end_time,
                    label=label,
                )

        evicted = [conn_id for conn_id in due if self._evict(conn_id, reason="expired")]
        if evicted:
            logger.debug("Tick evicted %d connection(s)", len(evicted))
        return evicted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_connections(self) -> list[ConnectionView]:
        """Every connection with its countdown computed right now."""
        now = self._clock.now_ms()
        return [
            self._view(source, target, end_time, now)
            for source, target, end_time in self._graph.connections()
        ]

    def get_connection(self, conn_id: str) -> ConnectionView | None:
        """One connection by id, or None."""
        try:
            source, target = split_connection_id(conn_id)
        except ValueError:
            return None
        if not self._graph.has_connection(source, target):
            return None
        end_time = self._graph.end_time(source, target)
        return self._view(source, target, end_time, self._clock.now_ms())

    def list_nodes(self) -> list[Node]:
        return [Node(id=node_id, label=label) for node_id, label in self._graph.nodes()]

    @property
    def pending_timers(self) -> int:
        """Number of armed eviction timers."""
        return len(self._timers)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def serialize(self) -> Snapshot:
        """The persisted representation of the current state."""
        return Snapshot(
            nodes=[SnapshotNode(id=node_id, label=label) for node_id, label in self._graph.nodes()],
            connections=[
                SnapshotConnection(id=connection_id(source, target), end_time=end_time)
                for source, target, end_time in self._graph.connections()
            ],
        )

    def save(self) -> None:
        """Write the current snapshot. No-op without a persistence adapter."""
        if self._persistence is None:
            return
        self._persistence.write(self._snapshot_key, encode_snapshot(self.serialize()))

    def load(self) -> RehydrationReport:
        """Read the stored snapshot and rehydrate from it.

        A missing snapshot yields an empty store. A corrupt one is logged
        and also yields an empty store; it is never partially applied.
        """
        raw = None
        if self._persistence is not None:
            raw = self._persistence.read(self._snapshot_key)
        if raw is None:
            return self.rehydrate(None)

        try:
            snapshot = decode_snapshot(raw)
        except SnapshotError as exc:
            with bound_contextvars(snapshot_key=self._snapshot_key):
                logger.warning("Discarding corrupt snapshot %s: %s", self._snapshot_key, exc)
            report = self.rehydrate(None)
            report.corrupt = True
            return report
        return self.rehydrate(snapshot)

    def rehydrate(self, snapshot: Snapshot | None) -> RehydrationReport:
        """Rebuild live state from *snapshot*, reconciling against the clock.

        Nodes are restored first. Permanent connections come back without
        a timer; timed ones whose end time is still ahead come back with a
        timer for the remaining interval; the rest are dropped as expired
        while unobserved. Unreferenced nodes are pruned once at the end.
        """
        self._reset()
        report = RehydrationReport()
        if snapshot is None:
            return report

        now = self._clock.now_ms()
        for node in snapshot.nodes:
            self._graph.add_node(node.id, node.label)

        # Later entries for the same id win.
        latest = {conn.id: conn for conn in snapshot.connections}
        for conn in latest.values():
            source, target = conn.endpoints
            end_time = conn.end_time
            if not is_permanent(end_time) and end_time <= now:
                report.expired.append(conn.id)
                continue
            self._graph.add_node(source, source)
            self._graph.add_node(target, target)
            self._graph.set_connection(source, target, end_time)
            if not is_permanent(end_time):
                self._arm_timer(conn.id, end_time, now)
            self._labels[conn.id] = format_duration(remaining_seconds(end_time, now))
            report.restored.append(conn.id)

        report.pruned = self._graph.prune()
        self.save()

        for node_id, label in self._graph.nodes():
            self._notify("node_added", node_id=node_id, label=label)
        for source, target, end_time in self._graph.connections():
            conn_id = connection_id(source, target)
            self._notify(
                "connection_added",
                connection_id=conn_id,
                source=source,
                target=target,
                end_time=end_time,
                label=self._labels[conn_id],
            )

        logger.info(
            "Rehydrated %d connection(s); %d expired offline, %d node(s) pruned",
            self._graph.connection_count,
            len(report.expired),
            len(report.pruned),
        )
        return report

    def close(self) -> None:
        """Cancel every pending timer. State and snapshot are left as is."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _evict(self, conn_id: str, *, reason: str) -> bool:
        try:
            source, target = split_connection_id(conn_id)
        except ValueError:
            return False
        if not self._graph.has_connection(source, target):
            return False

        self._cancel_timer(conn_id)
        self._graph.remove_connection(source, target)
        self._labels.pop(conn_id, None)
        pruned = self._graph.prune((source, target))

        self.save()

        self._notify("connection_removed", connection_id=conn_id, reason=reason)
        for node_id in pruned:
            self._notify("node_removed", node_id=node_id)
        with bound_contextvars(connection_id=conn_id, reason=reason):
            logger.info("Connection %s %s", conn_id, reason)
        return True

    def _arm_timer(self, conn_id: str, end_time: int, now: int) -> None:
        delay = (end_time - now) / MS_PER_SECOND
        callback = functools.partial(self._on_timer, conn_id, end_time)
        self._timers[conn_id] = self._scheduler.call_later(delay, callback)

    def _on_timer(self, conn_id: str, end_time: int) -> None:
        """Timer callback. Evicts only the connection it was armed for."""
        view = self.get_connection(conn_id)
        if view is None or view.end_time != end_time:
            return
        self._timers.pop(conn_id, None)
        self._evict(conn_id, reason="expired")

    def _cancel_timer(self, conn_id: str) -> None:
        handle = self._timers.pop(conn_id, None)
        if handle is not None:
            handle.cancel()

    def _reset(self) -> None:
        """Drop all state, announcing removals for anything that was live."""
        self.close()
        live = [connection_id(s, t) for s, t, _ in self._graph.connections()]
        nodes = [node_id for node_id, _ in self._graph.nodes()]
        self._graph.clear()
        self._labels.clear()
        for conn_id in live:
            self._notify("connection_removed", connection_id=conn_id, reason="reset")
        for node_id in nodes:
            self._notify("node_removed", node_id=node_id)

    def _view(self, source: str, target: str, end_time: int, now: int) -> ConnectionView:
        left = remaining_seconds(end_time, now)
        return ConnectionView(
            id=connection_id(source, target),
            source=source,
            target=target,
            end_time=end_time,
            remaining_seconds=left,
            label=format_duration(left),
        )

    def _notify(self, hook_name: str, **payload: Any) -> None:
        if self._events is not None:
            self._events.dispatch(hook_name, payload)

"""ConnectionService — the facade a renderer or form handler calls.

Turns a ``(source, target, duration-or-permanent)`` request into a store
call and reports the outcome as a :class:`ServiceResult`. Bad input comes
back as ``INVALID_INPUT`` with the store untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from routekeeper.domain.durations import PERMANENT
from routekeeper.domain.validation import InvalidInputError, compose_duration
from routekeeper.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from routekeeper.domain.types import ConnectionView
    from routekeeper.services.store import RelationshipStore


def _invalid(op: str, exc: InvalidInputError) -> ServiceResult:
    detail = {"field": exc.field} if exc.field else {}
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code="INVALID_INPUT", message=exc.message, detail=detail),
    )


def _view_dict(view: ConnectionView) -> dict[str, Any]:
    return {
        "id": view.id,
        "source": view.source,
        "target": view.target,
        "end_time": view.end_time,
        "remaining_seconds": view.remaining_seconds,
        "label": view.label,
        "permanent": view.permanent,
    }


class ConnectionService:
    """Presentation-facing operations over a :class:`RelationshipStore`."""

    def __init__(self, store: RelationshipStore) -> None:
        self._store = store

    def create(
        self,
        source: str,
        target: str,
        *,
        duration: int | None = None,
        hours: int = 0,
        minutes: int = 0,
        permanent: bool = False,
    ) -> ServiceResult:
        """Create or replace a connection.

        The lifetime is *permanent*, else *duration* seconds when given,
        else ``hours`` and ``minutes`` combined. A timed request must add
        up to at least one second.
        """
        op = "create_connection"
        try:
            if permanent:
                seconds = PERMANENT
            elif duration is not None:
                if duration == PERMANENT:
                    raise InvalidInputError(
                        "Use permanent=True for connections without expiry",
                        field="duration",
                    )
                seconds = duration
            else:
                seconds = compose_duration(hours=hours, minutes=minutes)
            conn_id = self._store.create_connection(source, target, seconds)
        except InvalidInputError as exc:
            return _invalid(op, exc)

        view = self._store.get_connection(conn_id)
        assert view is not None
        return ServiceResult(
            ok=True,
            op=op,
            data=_view_dict(view),
        )

    def remove(self, connection_id: str) -> ServiceResult:
        """Remove a connection. Unknown ids succeed with ``removed=False``."""
        removed = self._store.remove_connection(connection_id)
        return ServiceResult(
            ok=True,
            op="remove_connection",
            data={"id": connection_id, "removed": removed},
        )

    def list(self) -> ServiceResult:
        """All connections and nodes, countdowns computed now."""
        items = [_view_dict(v) for v in self._store.list_connections()]
        nodes = [{"id": n.id, "label": n.label} for n in self._store.list_nodes()]
        return ServiceResult(
            ok=True,
            op="list_connections",
            data={"count": len(items), "items": items, "nodes": nodes},
        )

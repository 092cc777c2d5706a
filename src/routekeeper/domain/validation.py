"""Request validation for connection creation.

Every check here runs before the store mutates anything. A rejected
request leaves nodes, connections, timers and the snapshot untouched.
"""

from __future__ import annotations

from collections.abc import Collection

from routekeeper.domain.durations import PERMANENT
from routekeeper.domain.ids import SEPARATOR


class InvalidInputError(ValueError):
    """A create request that must not reach the store."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


def validate_endpoint(
    node_id: str,
    *,
    field: str,
    known_nodes: Collection[str] | None = None,
) -> str:
    """Return the trimmed endpoint id or raise :class:`InvalidInputError`."""
    if not isinstance(node_id, str):
        raise InvalidInputError(f"{field} must be a string", field=field)
    cleaned = node_id.strip()
    if not cleaned:
        raise InvalidInputError(f"{field} must not be empty", field=field)
    if SEPARATOR in cleaned:
        raise InvalidInputError(f"{field} must not contain {SEPARATOR!r}", field=field)
    if known_nodes and cleaned not in known_nodes:
        raise InvalidInputError(f"Unknown node: {cleaned}", field=field)
    return cleaned


def validate_duration(duration_seconds: int) -> int:
    """Accept ``PERMANENT`` or a positive integer number of seconds."""
    # bool is an int subclass; True must not mean one second.
    if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
        raise InvalidInputError("Duration must be an integer", field="duration")
    if duration_seconds == PERMANENT:
        return duration_seconds
    if duration_seconds <= 0:
        raise InvalidInputError(
            f"Duration must be positive, got {duration_seconds}", field="duration"
        )
    return duration_seconds


def compose_duration(*, hours: int = 0, minutes: int = 0) -> int:
    """Combine hour and minute fields into seconds.

    Raises:
        InvalidInputError: If either part is negative or the total is zero.
    """
    if hours < 0 or minutes < 0:
        raise InvalidInputError("Hours and minutes must not be negative", field="duration")
    return validate_duration(hours * 3600 + minutes * 60)

"""Read-side value types handed to collaborators."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Node:
    """A named endpoint. Lives only while some connection references it."""

    id: str
    label: str


@dataclass(frozen=True)
class ConnectionView:
    """A connection as seen at one clock reading.

    ``remaining_seconds`` is None for permanent connections; ``label``
    is the formatted countdown ("" when permanent).
    """

    id: str
    source: str
    target: str
    end_time: int
    remaining_seconds: int | None
    label: str

    @property
    def permanent(self) -> bool:
        return self.remaining_seconds is None

"""Snapshot codec — the single persisted blob.

Wire layout (JSON)::

    {
      "nodes": [{"id": "A", "label": "A"}],
      "connections": [{"id": "A|B", "endTime": 1700000000000}]
    }

``endTime`` is epoch milliseconds, or -1 for permanent connections.
Endpoints are re-derived from the connection id. The compact layout
written by the earlier browser tool (``n``/``e``/``c`` keys with
``i``/``l``/``t`` fields) is accepted on decode and rewritten in the
layout above on the next save.

INVARIANT: decoding either yields a fully validated Snapshot or raises
SnapshotError. Callers never see a partially decoded snapshot.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from routekeeper.domain.durations import PERMANENT
from routekeeper.domain.ids import split_connection_id


class SnapshotError(ValueError):
    """The persisted blob is unreadable or has the wrong shape."""


class SnapshotNode(BaseModel):
    """One persisted node."""

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    label: str


class SnapshotConnection(BaseModel):
    """One persisted connection."""

    model_config = {"frozen": True, "populate_by_name": True}

    id: str
    end_time: int = Field(alias="endTime")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        split_connection_id(value)
        return value

    @field_validator("end_time")
    @classmethod
    def _check_end_time(cls, value: int) -> int:
        if value != PERMANENT and value < 0:
            msg = f"endTime must be -1 or a non-negative timestamp, got {value}"
            raise ValueError(msg)
        return value

    @property
    def endpoints(self) -> tuple[str, str]:
        return split_connection_id(self.id)


class Snapshot(BaseModel):
    """Full persisted state: nodes plus connections."""

    model_config = {"frozen": True}

    nodes: list[SnapshotNode] = Field(default_factory=list)
    connections: list[SnapshotConnection] = Field(default_factory=list)


def _from_compact(data: dict[str, Any]) -> dict[str, Any]:
    """Translate the compact ``n``/``c`` layout into the canonical one."""
    try:
        return {
            "nodes": [{"id": n["i"], "label": n["l"]} for n in data.get("n", [])],
            "connections": [{"id": c["i"], "endTime": c["t"]} for c in data.get("c", [])],
        }
    except (KeyError, TypeError) as exc:
        msg = f"Malformed compact snapshot: {exc}"
        raise SnapshotError(msg) from exc


def decode_snapshot(raw: str | bytes) -> Snapshot:
    """Parse and validate a snapshot blob.

    Raises:
        SnapshotError: If the blob is not JSON or violates the layout.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Snapshot is not valid JSON: {exc}"
        raise SnapshotError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Snapshot must be a JSON object, got {type(data).__name__}"
        raise SnapshotError(msg)

    if "nodes" not in data and "connections" not in data and ("n" in data or "c" in data):
        data = _from_compact(data)

    try:
        return Snapshot.model_validate(data)
    except ValidationError as exc:
        msg = f"Snapshot has an invalid shape: {exc.error_count()} error(s)"
        raise SnapshotError(msg) from exc


def encode_snapshot(snapshot: Snapshot) -> str:
    """Serialize a snapshot to its JSON wire form."""
    return json.dumps(snapshot.model_dump(by_alias=True), separators=(",", ":"))

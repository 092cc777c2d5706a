"""Connection id derivation.

A connection id is the ordered endpoint pair joined by ``|``.

INVARIANT: ids depend only on the ordered pair. ``A|B`` and ``B|A``
are different connections; adding ``A|B`` twice replaces the first.
"""

from __future__ import annotations

SEPARATOR = "|"


def connection_id(source_id: str, target_id: str) -> str:
    """Join an ordered endpoint pair into a connection id.

    Examples:
        >>> connection_id("Martlock", "Bridgewatch")
        'Martlock|Bridgewatch'
    """
    return f"{source_id}{SEPARATOR}{target_id}"


def split_connection_id(conn_id: str) -> tuple[str, str]:
    """Split a connection id back into ``(source, target)``.

    Raises:
        ValueError: If *conn_id* does not contain exactly one separator
            or either side is empty.
    """
    parts = conn_id.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        msg = f"Malformed connection id: {conn_id!r}"
        raise ValueError(msg)
    return parts[0], parts[1]

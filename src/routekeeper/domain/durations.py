"""Expiry arithmetic and countdown labels.

End times are absolute epoch milliseconds. ``PERMANENT`` (-1) marks a
connection that never expires. Remaining time and its label are always
computed at read time from a clock reading; they are never stored.
"""

from __future__ import annotations

PERMANENT = -1

MS_PER_SECOND = 1000


def is_permanent(end_time: int) -> bool:
    """Whether *end_time* is the permanent sentinel."""
    return end_time == PERMANENT


def end_time_for(duration_seconds: int, now_ms: int) -> int:
    """Absolute end time for a duration starting at *now_ms*."""
    if duration_seconds == PERMANENT:
        return PERMANENT
    return now_ms + duration_seconds * MS_PER_SECOND


def remaining_seconds(end_time: int, now_ms: int) -> int | None:
    """Whole seconds left before *end_time*, floored and clamped at zero.

    Returns None for permanent connections.
    """
    if is_permanent(end_time):
        return None
    return max(0, (end_time - now_ms) // MS_PER_SECOND)


def format_duration(total_seconds: int | None) -> str:
    """Render a countdown as ``"1h 30m"``, ``"45s"``, ``"1h 5s"`` or ``"0m"``.

    Hours appear when non-zero. Minutes appear when non-zero, or when
    everything is zero. Seconds appear only when minutes are zero.
    Permanent connections (None or -1) render as an empty label.

    Examples:
        >>> format_duration(3600)
        '1h'
        >>> format_duration(5400)
        '1h 30m'
        >>> format_duration(3605)
        '1h 5s'
        >>> format_duration(0)
        '0m'
        >>> format_duration(-1)
        ''
    """
    if total_seconds is None or total_seconds == PERMANENT:
        return ""

    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0 or (hours == 0 and minutes == 0 and seconds == 0):
        parts.append(f"{minutes}m")
    if minutes == 0 and seconds > 0:
        parts.append(f"{seconds}s")
    return " ".join(parts)

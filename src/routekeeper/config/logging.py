"""structlog rendering for routekeeper's stdlib loggers.

Package modules log through ``logging.getLogger(__name__)``. The store
binds per-event fields (``connection_id``, ``reason``, ``snapshot_key``)
with ``structlog.contextvars.bound_contextvars`` around each lifecycle
message; the formatter installed here merges them into the rendered line,
so JSON mode carries them as top-level keys::

    {"event": "Connection A|B expired", "connection_id": "A|B",
     "reason": "expired", "level": "info",
     "logger": "routekeeper.services.store", "timestamp": "..."}
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

PACKAGE_LOGGER = "routekeeper"

# Libraries whose DEBUG chatter drowns out store events.
_QUIET_LOGGERS = ("sqlalchemy", "pluggy")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def build_formatter(*, log_json: bool, colors: bool = False) -> logging.Formatter:
    """Formatter rendering stdlib records and contextvars through structlog."""
    renderer: structlog.types.Processor
    if log_json:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Route routekeeper logs to *stream* (default stderr).

    Replaces the root handlers with a single structlog-formatted handler.
    The ``routekeeper`` logger runs at INFO, or DEBUG when *verbose*;
    everything else stays at WARNING.

    Returns:
        The installed handler.
    """
    out = stream if stream is not None else sys.stderr

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(build_formatter(log_json=log_json, colors=out.isatty()))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler

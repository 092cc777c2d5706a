"""routekeeper — a store of directed connections that expire on schedule."""

from routekeeper.domain.durations import PERMANENT, format_duration
from routekeeper.domain.validation import InvalidInputError
from routekeeper.runtime import RouteKeeper
from routekeeper.services.connections import ConnectionService
from routekeeper.services.store import RelationshipStore

__version__ = "0.1.0"

__all__ = [
    "PERMANENT",
    "ConnectionService",
    "InvalidInputError",
    "RelationshipStore",
    "RouteKeeper",
    "format_duration",
]

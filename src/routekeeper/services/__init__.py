"""Service layer — the relationship store and its presentation facade.

Services may import from domain, infrastructure, and plugins.
"""

from routekeeper.services.connections import ConnectionService
from routekeeper.services.result import ServiceError, ServiceResult
from routekeeper.services.store import RehydrationReport, RelationshipStore

__all__ = [
    "ConnectionService",
    "RehydrationReport",
    "RelationshipStore",
    "ServiceError",
    "ServiceResult",
]

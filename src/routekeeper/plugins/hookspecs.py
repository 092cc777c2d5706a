"""Pluggy hook specifications for relationship-store change notifications.

A renderer implements any subset of these to mirror the store without
reading its internal state.
"""

from __future__ import annotations

import pluggy

PROJECT_NAME = "routekeeper"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class RouteKeeperHookSpec:
    """Hook specifications for the routekeeper plugin system."""

    @hookspec
    def node_added(self, node_id: str, label: str) -> None:
        """Called after a node appears."""

    @hookspec
    def node_removed(self, node_id: str) -> None:
        """Called after a node is pruned."""

    @hookspec
    def connection_added(
        self,
        connection_id: str,
        source: str,
        target: str,
        end_time: int,
        label: str,
    ) -> None:
        """Called after a connection is created for a new ordered pair."""

    @hookspec
    def connection_updated(
        self,
        connection_id: str,
        source: str,
        target: str,
        end_time: int,
        label: str,
    ) -> None:
        """Called after a connection is replaced or its countdown label changes."""

    @hookspec
    def connection_removed(self, connection_id: str, reason: str) -> None:
        """Called after a connection is removed.

        *reason* is ``"removed"``, ``"expired"``, or ``"reset"``.
        """

"""ConnectionGraph — the in-memory node/connection set on a NetworkX DiGraph.

Nodes carry a ``label`` attribute; edges carry ``end_time``. The ordered
pair is the edge key, so a DiGraph holds at most one connection per
ordered pair and ``A -> B`` is independent of ``B -> A``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TypeAlias

import networkx as nx

_Graph: TypeAlias = nx.DiGraph


class ConnectionGraph:
    """Thin typed layer over a NetworkX DiGraph."""

    def __init__(self) -> None:
        self._g: _Graph = nx.DiGraph()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def has_node(self, node_id: str) -> bool:
        return node_id in self._g

    def add_node(self, node_id: str, label: str) -> bool:
        """Add a node if absent. Returns True when the node is new."""
        if node_id in self._g:
            return False
        self._g.add_node(node_id, label=label)
        return True

    def node_label(self, node_id: str) -> str:
        return self._g.nodes[node_id]["label"]

    def nodes(self) -> Iterator[tuple[str, str]]:
        """Yield ``(node_id, label)`` in insertion order."""
        for node_id, attrs in self._g.nodes(data=True):
            yield node_id, attrs["label"]

    def prune(self, candidates: Iterable[str] | None = None) -> list[str]:
        """Drop unreferenced nodes and return their ids.

        With *candidates*, only those nodes are checked. Without, every
        node is checked.
        """
        pool = list(self._g.nodes) if candidates is None else list(dict.fromkeys(candidates))
        removed = [n for n in pool if n in self._g and self._g.degree(n) == 0]
        self._g.remove_nodes_from(removed)
        return removed

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def has_connection(self, source: str, target: str) -> bool:
        return self._g.has_edge(source, target)

    def set_connection(self, source: str, target: str, end_time: int) -> None:
        """Insert or overwrite the connection for the ordered pair."""
        self._g.add_edge(source, target, end_time=end_time)

    def end_time(self, source: str, target: str) -> int:
        return self._g.edges[source, target]["end_time"]

    def remove_connection(self, source: str, target: str) -> None:
        self._g.remove_edge(source, target)

    def connections(self) -> Iterator[tuple[str, str, int]]:
        """Yield ``(source, target, end_time)`` for every connection."""
        for source, target, attrs in self._g.edges(data=True):
            yield source, target, attrs["end_time"]

    def clear(self) -> None:
        self._g.clear()

    @property
    def node_count(self) -> int:
        return self._g.number_of_nodes()

    @property
    def connection_count(self) -> int:
        return self._g.number_of_edges()

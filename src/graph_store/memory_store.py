# src/graph_store/memory_store.py — v1
"""In-process mapping-graph store backed by a NetworkX MultiDiGraph.

Satisfies the same contract as the Neo4j store. With a snapshot path the
graph is loaded from NetworkX node_link JSON on connect and written back
on close, so separate load and query runs can share it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import networkx as nx

from datamingle.core.errors import AttributeNotFound, StoreConnectionError
from datamingle.core.models import Attribute, JoinEdge
from datamingle.graph_store.base_mapping_store import BaseMappingStore

logger = logging.getLogger(__name__)

# Edge attribute names avoid `key`, which NetworkX reserves for multi-edge keys.
_EDGE_FIELDS = ("datasource", "query", "key_position", "value_position")


class MemoryMappingStore(BaseMappingStore):
    """Mapping-graph store held in memory."""

    def __init__(self, snapshot_path: str | Path | None = None) -> None:
        self._graph = nx.MultiDiGraph()
        self._snapshot = Path(snapshot_path).expanduser() if snapshot_path else None
        self._dirty = False

    @property
    def graph(self) -> nx.MultiDiGraph:
        return self._graph

    # --- Lifecycle ---

    async def verify_connectivity(self) -> None:
        """Load the snapshot when one exists."""
        if self._snapshot is None or not self._snapshot.exists():
            return
        try:
            data = json.loads(self._snapshot.read_text(encoding="utf-8"))
            self._graph = nx.node_link_graph(data, directed=True, multigraph=True)
        except (OSError, ValueError, KeyError, nx.NetworkXError) as e:
            raise StoreConnectionError(
                f"Cannot load graph snapshot {self._snapshot}: {e}"
            ) from e
        logger.debug(
            "Loaded snapshot %s (%d attributes, %d edges)",
            self._snapshot, self._graph.number_of_nodes(), self._graph.number_of_edges(),
        )

    async def close(self) -> None:
        """Write the snapshot back if the graph changed."""
        if self._snapshot is None or not self._dirty:
            return
        self._snapshot.parent.mkdir(parents=True, exist_ok=True)
        data = nx.node_link_data(self._graph)
        self._snapshot.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str))
        self._dirty = False
        logger.debug("Wrote snapshot %s", self._snapshot)

    # --- Attributes ---

    async def attribute_exists(self, name: str) -> bool:
        return self._graph.has_node(name)

    async def upsert_attribute(self, name: str, description: str = "") -> bool:
        if self._graph.has_node(name):
            return False
        self._graph.add_node(name, description=description, primary=False)
        self._dirty = True
        return True

    async def get_attribute(self, name: str) -> Attribute | None:
        if not self._graph.has_node(name):
            return None
        data = self._graph.nodes[name]
        return Attribute(
            name=name,
            description=data.get("description", ""),
            primary=bool(data.get("primary", False)),
        )

    async def recompute_primary(self, name: str) -> bool:
        if not self._graph.has_node(name):
            return False
        primary = self._graph.out_degree(name) > 1
        if self._graph.nodes[name].get("primary") != primary:
            self._graph.nodes[name]["primary"] = primary
            self._dirty = True
        return primary

    # --- Join edges ---

    async def create_join_edge(
        self,
        head: str,
        tail: str,
        datasource: str,
        query: str,
        key: str,
        value: str,
    ) -> None:
        for endpoint in (head, tail):
            if not self._graph.has_node(endpoint):
                raise AttributeNotFound(endpoint, context=f'edge "{head}" -> "{tail}"')
        wanted = dict(zip(_EDGE_FIELDS, (datasource, query, key, value)))
        existing = self._graph.get_edge_data(head, tail) or {}
        for data in existing.values():
            if all(data.get(f) == wanted[f] for f in _EDGE_FIELDS):
                return
        self._graph.add_edge(head, tail, selected=False, **wanted)
        self._dirty = True

    async def lookup_join(self, head: str, tail: str) -> list[JoinEdge]:
        existing = self._graph.get_edge_data(head, tail) or {}
        return [
            JoinEdge(
                head=head,
                tail=tail,
                datasource=data["datasource"],
                query=data.get("query", ""),
                key=data["key_position"],
                value=data["value_position"],
                selected=bool(data.get("selected", False)),
            )
            for _, data in sorted(existing.items(), key=lambda item: item[0])
        ]

    # --- Bulk ---

    async def reset(self) -> None:
        self._graph.clear()
        self._dirty = True

    async def attribute_count(self) -> int:
        return self._graph.number_of_nodes()

    async def edge_count(self) -> int:
        return self._graph.number_of_edges()

    @property
    def provider_name(self) -> str:
        return "memory"

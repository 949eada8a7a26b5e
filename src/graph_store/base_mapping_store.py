# src/graph_store/base_mapping_store.py — v1
"""Abstract mapping-graph store interface.

Node schema: `attribute {name, description}` with an optional `primary`
flag. Edge schema: directed `has {datasource, query, key, value, selected}`.
All operations are idempotent except reset().
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from datamingle.core.models import Attribute, JoinEdge


class BaseMappingStore(ABC):
    """Unified interface for mapping-graph store backends."""

    # --- Lifecycle ---

    @abstractmethod
    async def verify_connectivity(self) -> None:
        """Round-trip check. Raises StoreConnectionError."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""

    # --- Attributes ---

    @abstractmethod
    async def attribute_exists(self, name: str) -> bool:
        """Whether an attribute node with this name exists."""

    @abstractmethod
    async def upsert_attribute(self, name: str, description: str = "") -> bool:
        """Create the attribute if absent; first description wins.

        Returns True when a node was created.
        """

    @abstractmethod
    async def get_attribute(self, name: str) -> Attribute | None:
        """Retrieve an attribute with its primary flag."""

    @abstractmethod
    async def recompute_primary(self, name: str) -> bool:
        """Flag `name` primary iff it has more than one outgoing edge.

        Returns the resulting flag.
        """

    # --- Join edges ---

    @abstractmethod
    async def create_join_edge(
        self,
        head: str,
        tail: str,
        datasource: str,
        query: str,
        key: str,
        value: str,
    ) -> None:
        """Link two existing attributes.

        An edge with identical endpoints and metadata is not duplicated.

        Raises:
            AttributeNotFound: If either endpoint is missing.
        """

    @abstractmethod
    async def lookup_join(self, head: str, tail: str) -> list[JoinEdge]:
        """All edges `head -> tail`, in store-return order."""

    # --- Bulk ---

    @abstractmethod
    async def reset(self) -> None:
        """Delete every node and edge."""

    @abstractmethod
    async def attribute_count(self) -> int:
        """Return total number of attribute nodes."""

    @abstractmethod
    async def edge_count(self) -> int:
        """Return total number of join edges."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (neo4j, memory)."""

    async def __aenter__(self) -> BaseMappingStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

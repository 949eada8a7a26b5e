# src/graph_store/store_factory.py — v1
"""Factory: instantiate and connect the mapping-graph store from configuration."""

from __future__ import annotations

import logging

from datamingle.config.settings import Settings
from datamingle.graph_store.base_mapping_store import BaseMappingStore

logger = logging.getLogger(__name__)


class UnsupportedGraphStoreError(ValueError):
    """Raised when a graph store type is not supported."""


def create_mapping_store(settings: Settings) -> BaseMappingStore:
    """Instantiate the configured store without touching the network.

    Raises:
        UnsupportedGraphStoreError: If type is not supported.
        StoreConnectionError: If the endpoint is malformed.
    """
    db_type = settings.graph_db_type

    if db_type == "neo4j":
        from datamingle.graph_store.neo4j_store import Neo4jMappingStore
        return Neo4jMappingStore(
            uri=settings.graph_db_uri,
            user=settings.graph_db_user,
            password=settings.graph_db_password,
            database=settings.graph_db_database,
        )

    if db_type == "memory":
        from datamingle.graph_store.memory_store import MemoryMappingStore
        return MemoryMappingStore(snapshot_path=settings.graph_db_snapshot)

    raise UnsupportedGraphStoreError(
        f"Unsupported graph store type: {db_type!r}. "
        f"Available: neo4j, memory"
    )


async def connect_mapping_store(settings: Settings) -> BaseMappingStore:
    """Create the store and run its startup round trip as one fallible step.

    Raises:
        StoreConnectionError: If the store cannot be reached.
    """
    store = create_mapping_store(settings)
    try:
        await store.verify_connectivity()
    except BaseException:
        await store.close()
        raise
    logger.info("Mapping store ready (%s)", store.provider_name)
    return store

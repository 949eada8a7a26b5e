# src/graph_store/neo4j_store.py — v2
"""Neo4j mapping-graph store.

Uses the async neo4j Python driver; Cypher over Bolt.
Requires: pip install neo4j.
"""

from __future__ import annotations

import logging

from datamingle.core.errors import AttributeNotFound, StoreConnectionError
from datamingle.core.models import Attribute, JoinEdge
from datamingle.graph_store.base_mapping_store import BaseMappingStore

logger = logging.getLogger(__name__)

_EXISTS = "MATCH (n:attribute {name: $name}) RETURN n.name AS name LIMIT 1"

_MERGE_ATTRIBUTE = (
    "MERGE (n:attribute {name: $name}) "
    "ON CREATE SET n.description = $description"
)

_GET_ATTRIBUTE = (
    "MATCH (n:attribute {name: $name}) "
    "RETURN n.name AS name, n.description AS description, "
    "'primary' IN labels(n) AS primary"
)

_MERGE_EDGE = (
    "MATCH (a:attribute {name: $head}), (b:attribute {name: $tail}) "
    "MERGE (a)-[r:has {datasource: $datasource, query: $query, key: $key, value: $value}]->(b) "
    "ON CREATE SET r.selected = false "
    "RETURN count(r) AS cnt"
)

_RECOMPUTE_PRIMARY = (
    "MATCH (n:attribute {name: $name}) "
    "OPTIONAL MATCH (n)-[r:has]->() "
    "WITH n, count(r) AS cnt "
    "FOREACH (_ IN CASE WHEN cnt > 1 THEN [1] ELSE [] END | SET n:primary) "
    "FOREACH (_ IN CASE WHEN cnt <= 1 THEN [1] ELSE [] END | REMOVE n:primary) "
    "RETURN cnt > 1 AS primary"
)

_LOOKUP_JOIN = (
    "MATCH (a:attribute {name: $head})-[r:has]->(b:attribute {name: $tail}) "
    "RETURN r.datasource AS datasource, r.query AS query, "
    "r.key AS key, r.value AS value, r.selected AS selected "
    "ORDER BY id(r)"
)

_UNIQUE_NAME = (
    "CREATE CONSTRAINT attribute_name IF NOT EXISTS "
    "FOR (n:attribute) REQUIRE n.name IS UNIQUE"
)


class Neo4jMappingStore(BaseMappingStore):
    """Mapping-graph store backed by Neo4j."""

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "neo4j",
        password: str = "12345678",
        database: str = "neo4j",
    ) -> None:
        try:
            from neo4j import AsyncGraphDatabase
            from neo4j.exceptions import DriverError, Neo4jError
        except ImportError as e:
            raise ImportError(
                "neo4j package required: pip install neo4j"
            ) from e

        auth = (user, password) if user else None
        try:
            self._driver = AsyncGraphDatabase.driver(uri, auth=auth)
        except (ValueError, DriverError) as e:
            raise StoreConnectionError(f"Invalid Neo4j endpoint {uri!r}: {e}") from e
        self._uri = uri
        self._database = database
        self._driver_errors: tuple[type[Exception], ...] = (DriverError, Neo4jError, OSError)

    async def _run(self, query: str, **params) -> list[dict]:
        """Execute a Cypher query and return results as list of dicts."""
        async with self._driver.session(database=self._database) as session:
            result = await session.run(query, **params)
            return await result.data()

    # --- Lifecycle ---

    async def verify_connectivity(self) -> None:
        """Connect, run `RETURN 1` and make sure the name constraint exists."""
        try:
            await self._driver.verify_connectivity()
            rows = await self._run("RETURN 1 AS ok")
            await self._run(_UNIQUE_NAME)
        except self._driver_errors as e:
            raise StoreConnectionError(
                f"Cannot reach Neo4j at {self._uri}: {e}"
            ) from e
        if not rows or rows[0].get("ok") != 1:
            raise StoreConnectionError(f"Unexpected round-trip answer from {self._uri}")
        logger.debug("Connected to Neo4j at %s", self._uri)

    async def close(self) -> None:
        """Close the driver connection."""
        await self._driver.close()

    # --- Attributes ---

    async def attribute_exists(self, name: str) -> bool:
        return bool(await self._run(_EXISTS, name=name))

    async def upsert_attribute(self, name: str, description: str = "") -> bool:
        if await self.attribute_exists(name):
            return False
        await self._run(_MERGE_ATTRIBUTE, name=name, description=description)
        return True

    async def get_attribute(self, name: str) -> Attribute | None:
        rows = await self._run(_GET_ATTRIBUTE, name=name)
        if not rows:
            return None
        row = rows[0]
        return Attribute(
            name=row["name"],
            description=row.get("description") or "",
            primary=bool(row.get("primary")),
        )

    async def recompute_primary(self, name: str) -> bool:
        rows = await self._run(_RECOMPUTE_PRIMARY, name=name)
        return bool(rows and rows[0]["primary"])

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
        rows = await self._run(
            _MERGE_EDGE,
            head=head, tail=tail, datasource=datasource,
            query=query, key=key, value=value,
        )
        if rows and rows[0]["cnt"] > 0:
            return
        missing = head if not await self.attribute_exists(head) else tail
        raise AttributeNotFound(missing, context=f'edge "{head}" -> "{tail}"')

    async def lookup_join(self, head: str, tail: str) -> list[JoinEdge]:
        rows = await self._run(_LOOKUP_JOIN, head=head, tail=tail)
        return [
            JoinEdge(
                head=head,
                tail=tail,
                datasource=row["datasource"],
                query=row.get("query") or "",
                key=str(row["key"]),
                value=str(row["value"]),
                selected=row.get("selected") in (True, "true"),
            )
            for row in rows
        ]

    # --- Bulk ---

    async def reset(self) -> None:
        await self._run("MATCH (n) DETACH DELETE n")
        logger.debug("Cleared the graph")

    async def attribute_count(self) -> int:
        rows = await self._run("MATCH (n:attribute) RETURN count(n) AS cnt")
        return rows[0]["cnt"] if rows else 0

    async def edge_count(self) -> int:
        rows = await self._run("MATCH (:attribute)-[r:has]->(:attribute) RETURN count(r) AS cnt")
        return rows[0]["cnt"] if rows else 0

    @property
    def provider_name(self) -> str:
        return "neo4j"

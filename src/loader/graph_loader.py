# src/loader/graph_loader.py — v1
"""Graph loader — materialize mapping records in the mapping-graph store.

Per record: upsert both endpoints concurrently, link them, then recompute
the primary flag of both endpoints concurrently. A failing record aborts
the run with an IngestionError naming both endpoints; records already
stored stay stored.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Iterable

from datamingle.core.errors import IngestionError
from datamingle.core.models import Attribute, LoadSummary, MappingRecord
from datamingle.graph_store.base_mapping_store import BaseMappingStore
from datamingle.loader.dvm_parser import iter_mapping_records
from datamingle.logging.logger import trace

_module_logger = logging.getLogger(__name__)


class GraphLoader:
    """Drives a BaseMappingStore from a sequence of mapping records."""

    def __init__(
        self,
        store: BaseMappingStore,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._logger = logger or _module_logger

    async def load(
        self,
        records: Iterable[MappingRecord],
        reset: bool = False,
    ) -> LoadSummary:
        """Ingest records in order and return store totals afterwards."""
        if reset:
            await self._store.reset()
            self._logger.debug("Cleared the graph")

        count = 0
        for record in records:
            await self.load_record(record)
            count += 1

        summary = LoadSummary(
            records=count,
            attributes=await self._store.attribute_count(),
            edges=await self._store.edge_count(),
        )
        self._logger.info(
            "Loaded %d mapping records (%d attributes, %d edges)",
            summary.records, summary.attributes, summary.edges,
        )
        return summary

    async def load_file(self, path: str | Path, reset: bool = False) -> LoadSummary:
        """Stream a DVM document into the store."""
        return await self.load(iter_mapping_records(path), reset=reset)

    async def load_record(self, record: MappingRecord) -> None:
        """Store one edge with its endpoints.

        Raises:
            IngestionError: Wrapping whatever the store raised.
        """
        head, tail = record.head, record.tail
        self._logger.debug('Storing edge: "%s" -> "%s"', head.name, tail.name)
        try:
            if head.name == tail.name:
                await self._store_attribute(head)
            else:
                await _join_all(self._store_attribute(head), self._store_attribute(tail))

            await self._store.create_join_edge(
                head.name,
                tail.name,
                datasource=record.datasource,
                query=record.query,
                key=record.key,
                value=record.value,
            )

            await _join_all(
                self._store.recompute_primary(head.name),
                self._store.recompute_primary(tail.name),
            )
        except Exception as e:
            raise IngestionError(head.name, tail.name, e) from e

    async def _store_attribute(self, attribute: Attribute) -> None:
        created = await self._store.upsert_attribute(attribute.name, attribute.description)
        if created:
            trace(self._logger, "Node does not exist, creating node %s", attribute.name)
        else:
            trace(self._logger, 'Node already exists, skipping creation of "%s"', attribute.name)


async def _join_all(*aws: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently, wait for all, then raise the first failure."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)

# src/datasources/database_reader.py — v1
"""Relational datasource reader.

Relational sources are part of the catalog model but have no read path;
open() always fails so the engine reports which edge needed one.
"""

from __future__ import annotations

from datamingle.core.errors import DatasourceIOError
from datamingle.core.models import DatabaseSource
from datamingle.datasources.base_reader import BaseReader, DatasourceStream


class DatabaseReader(BaseReader[DatabaseSource]):
    """Reader for `db` datasources."""

    async def open(self, key_position: str, value_position: str) -> DatasourceStream:
        ds = self._datasource
        raise DatasourceIOError(
            f"relational reads are not supported ({ds.system} at {ds.connection}/{ds.database})",
            ds.name,
        )

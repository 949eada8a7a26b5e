# src/datasources/excel_reader.py — v1
"""Spreadsheet reader using openpyxl in read-only mode.

Rows are pulled lazily from the configured worksheet; cells are rendered
as strings so that every datasource variant yields the same pair shape.
Requires the 'openpyxl' package.
"""

from __future__ import annotations

import logging
import zipfile
from datetime import date, datetime
from typing import Any, Iterator

from datamingle.core.errors import DatasourceIOError
from datamingle.core.models import ExcelSource
from datamingle.datasources.base_reader import (
    BaseReader,
    DatasourceStream,
    ReadResult,
    pick_pair,
    resolve_position,
)

logger = logging.getLogger(__name__)


class ExcelReader(BaseReader[ExcelSource]):
    """Reader for `excel` datasources."""

    async def open(self, key_position: str, value_position: str) -> DatasourceStream:
        try:
            from openpyxl import load_workbook
            from openpyxl.utils.exceptions import InvalidFileException
        except ImportError as e:
            raise ImportError(
                "openpyxl package required for spreadsheet datasources: "
                "pip install openpyxl"
            ) from e

        ds = self._datasource
        try:
            workbook = load_workbook(filename=ds.location, read_only=True, data_only=True)
        except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            raise DatasourceIOError(f"cannot open {ds.location}: {e}", ds.name) from e

        try:
            if ds.sheet not in workbook.sheetnames:
                raise DatasourceIOError(
                    f"sheet {ds.sheet!r} not found in {ds.location} "
                    f"(available: {', '.join(workbook.sheetnames)})",
                    ds.name,
                )
            rows = workbook[ds.sheet].iter_rows(values_only=True)
            headers: list[str] | None = None
            if ds.has_headers:
                headers = [cell_to_str(c) for c in next(rows, ())]
            key_index = resolve_position(key_position, headers, ds.name)
            value_index = resolve_position(value_position, headers, ds.name)
        except DatasourceIOError:
            workbook.close()
            raise

        logger.debug(
            "Opened sheet %s!%s (key=%d, value=%d)",
            ds.location, ds.sheet, key_index, value_index,
        )
        return DatasourceStream(
            ds.name,
            self._records(rows, key_index, value_index, headers is not None),
            workbook.close,
        )

    def _records(
        self,
        rows: Iterator[tuple[Any, ...]],
        key_index: int,
        value_index: int,
        skipped_header: bool,
    ) -> Iterator[ReadResult]:
        name = self._datasource.name
        row_number = 1 if skipped_header else 0
        for raw in rows:
            row_number += 1
            row = [cell_to_str(c) for c in raw]
            if not any(row):
                continue
            yield pick_pair(row, key_index, value_index, name, f"row {row_number}")


def cell_to_str(value: Any) -> str:
    """Render a cell value as the string form used across datasources."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)

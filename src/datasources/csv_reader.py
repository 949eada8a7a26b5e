# src/datasources/csv_reader.py — v2
"""Delimited-file reader using the standard csv module over an open handle."""

from __future__ import annotations

import csv
import logging
from typing import Any, Iterator

from datamingle.core.errors import DatasourceIOError
from datamingle.core.models import CsvSource
from datamingle.datasources.base_reader import (
    BaseReader,
    DatasourceStream,
    ReadResult,
    pick_pair,
    resolve_position,
)

logger = logging.getLogger(__name__)


class CsvReader(BaseReader[CsvSource]):
    """Reader for `csv` datasources."""

    async def open(self, key_position: str, value_position: str) -> DatasourceStream:
        ds = self._datasource
        try:
            handle = ds.location.open("r", encoding="utf-8", newline="")
        except OSError as e:
            raise DatasourceIOError(f"cannot open {ds.location}: {e}", ds.name) from e

        try:
            reader = csv.reader(handle, delimiter=ds.delimiter)
            headers: list[str] | None = None
            if ds.has_headers:
                headers = next(reader, [])
            key_index = resolve_position(key_position, headers, ds.name)
            value_index = resolve_position(value_position, headers, ds.name)
        except (csv.Error, UnicodeDecodeError) as e:
            handle.close()
            raise DatasourceIOError(f"unreadable heading row: {e}", ds.name) from e
        except BaseException:
            handle.close()
            raise

        logger.debug(
            "Opened CSV %s (key=%d, value=%d, headers=%s)",
            ds.location, key_index, value_index, ds.has_headers,
        )
        return DatasourceStream(
            ds.name,
            self._records(reader, key_index, value_index),
            handle.close,
        )

    def _records(
        self,
        reader: Any,
        key_index: int,
        value_index: int,
    ) -> Iterator[ReadResult]:
        name = self._datasource.name
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                yield ReadResult(
                    error=DatasourceIOError(f"line {reader.line_num}: {e}", name)
                )
                continue
            except UnicodeDecodeError as e:
                yield ReadResult(
                    error=DatasourceIOError(f"after line {reader.line_num}: not UTF-8: {e}", name)
                )
                return
            except OSError as e:
                yield ReadResult(error=DatasourceIOError(f"read failed: {e}", name))
                return
            if not row:
                continue
            yield pick_pair(row, key_index, value_index, name, f"line {reader.line_num}")

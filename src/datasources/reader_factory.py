# src/datasources/reader_factory.py — v1
"""Factory: instantiate the reader matching a datasource variant."""

from __future__ import annotations

from typing import assert_never

from datamingle.core.models import (
    CsvSource,
    DatabaseSource,
    Datasource,
    ExcelSource,
    XmlSource,
)
from datamingle.datasources.base_reader import BaseReader
from datamingle.datasources.csv_reader import CsvReader
from datamingle.datasources.database_reader import DatabaseReader
from datamingle.datasources.excel_reader import ExcelReader
from datamingle.datasources.xml_reader import XmlReader


class UnsupportedDatasourceError(ValueError):
    """Raised when a datasource object is not one of the known variants."""


def create_reader(datasource: Datasource) -> BaseReader:
    """Create the reader for a catalog entry.

    Raises:
        UnsupportedDatasourceError: If the object is not a datasource variant.
    """
    if not isinstance(datasource, (CsvSource, XmlSource, ExcelSource, DatabaseSource)):
        raise UnsupportedDatasourceError(
            f"Unsupported datasource: {type(datasource).__name__}. "
            f"Available: csv, xml, excel, db"
        )
    if isinstance(datasource, CsvSource):
        return CsvReader(datasource)
    if isinstance(datasource, XmlSource):
        return XmlReader(datasource)
    if isinstance(datasource, ExcelSource):
        return ExcelReader(datasource)
    if isinstance(datasource, DatabaseSource):
        return DatabaseReader(datasource)
    assert_never(datasource)

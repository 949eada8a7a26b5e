# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides an in-memory mapping store, a small geography dataset on disk
(CSV + datasource catalog + DVM mapping + query document) and helpers
to write XML documents into tmp_path. No external services.
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from datamingle.core.models import Attribute, MappingRecord
from datamingle.graph_store.memory_store import MemoryMappingStore


# === FIXTURES: Helpers ===


@pytest.fixture
def write_text(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write dedented text to tmp_path/<name> and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def memory_store() -> MemoryMappingStore:
    return MemoryMappingStore()


# === FIXTURES: Geography dataset ===
#
# Query tree:   X000 region
#               ├── X001 store      (edge store -> region)
#               └── X002 city       (edge city -> region)
#                   └── X003 customer  (edge customer -> city)


GEO_CSV = """\
customer,city,region,store
alice,Paris,North,S1
bob,Lyon,South,S2
carol,Nice,South,S3
"""


@pytest.fixture
def geo_csv(tmp_path: Path) -> Path:
    path = tmp_path / "geo.csv"
    path.write_text(GEO_CSV, encoding="utf-8")
    return path


@pytest.fixture
def catalog_xml(write_text, geo_csv: Path) -> Path:
    return write_text("datasources.xml", """
        <datasources>
          <datasource type="csv">
            <id>1</id>
            <name>geo</name>
            <filename>geo.csv</filename>
            <path>.</path>
            <delimiter>,</delimiter>
            <headings>yes</headings>
          </datasource>
        </datasources>
    """)


def _edge(head: str, tail: str, key: str, value: str) -> str:
    return f"""
          <edge>
            <headnode><name>{head}</name><description>{head} attribute</description></headnode>
            <tailnode><name>{tail}</name><description>{tail} attribute</description></tailnode>
            <datasource><name>geo</name></datasource>
            <query><string></string></query>
            <key><position>{key}</position></key>
            <value><position>{value}</position></value>
          </edge>"""


@pytest.fixture
def geo_dvm(tmp_path: Path) -> Path:
    path = tmp_path / "mapping.dvm"
    edges = "".join([
        _edge("store", "region", "3", "2"),
        _edge("customer", "city", "0", "1"),
        _edge("city", "region", "1", "2"),
    ])
    path.write_text(f"<edges>{edges}\n</edges>\n", encoding="utf-8")
    return path


@pytest.fixture
def geo_records() -> list[MappingRecord]:
    """The same mappings as geo_dvm, already parsed."""

    def record(head: str, tail: str, key: str, value: str) -> MappingRecord:
        return MappingRecord(
            head=Attribute(name=head, description=f"{head} attribute"),
            tail=Attribute(name=tail, description=f"{tail} attribute"),
            datasource="geo",
            key=key,
            value=value,
        )

    return [
        record("store", "region", "3", "2"),
        record("customer", "city", "0", "1"),
        record("city", "region", "1", "2"),
    ]


@pytest.fixture
def geo_query(write_text) -> Path:
    return write_text("query.xml", """
        <query>
          <rootnode>X000</rootnode>
          <node>
            <onnode>region</onnode>
            <label>X000</label>
            <children>X001, X002</children>
            <output>yes</output>
          </node>
          <node>
            <onnode>store</onnode>
            <label>X001</label>
            <output>yes</output>
          </node>
          <node>
            <onnode>city</onnode>
            <label>X002</label>
            <children>X003</children>
            <output>no</output>
          </node>
          <node>
            <onnode>customer</onnode>
            <label>X003</label>
            <output>true</output>
          </node>
        </query>
    """)

# tests/integration/engine/test_int_end_to_end.py — v1
"""End-to-end runs without Docker: DVM -> memory store -> query over CSV, XML and Excel.

The XML source keys each pair on the element tag (supplier name) with the
element text (country) as value.

One mapping graph draws its join edges from three datasource variants;
the graph goes through a snapshot between the load and the query run,
like two separate CLI invocations would.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import Workbook

from datamingle.datasources.catalog import load_datasources_xml
from datamingle.engine.evaluator import EvaluationEngine
from datamingle.graph_store.memory_store import MemoryMappingStore
from datamingle.loader.graph_loader import GraphLoader
from datamingle.query.tree_builder import compile_query


@pytest.fixture
def mixed_sources(tmp_path: Path, write_text) -> dict[str, Path]:
    """products.csv, suppliers.xml and prices.xlsx plus catalog, mapping and query."""
    (tmp_path / "products.csv").write_text(
        "sku;supplier\nP1;ACME\nP2;Globex\nP3;ACME\n", encoding="utf-8",
    )
    write_text("suppliers.xml", """
        <countries>
          <ACME>FR</ACME>
          <Globex>US</Globex>
        </countries>
    """)
    wb = Workbook()
    ws = wb.active
    ws.title = "prices"
    ws.append(["sku", "price"])
    for row in (["P1", 10], ["P2", 25.5], ["P3", 4]):
        ws.append(row)
    wb.save(tmp_path / "prices.xlsx")

    catalog = write_text("datasources.xml", """
        <datasources>
          <datasource type="csv">
            <id>1</id><name>products</name><filename>products.csv</filename>
            <path>.</path><delimiter>;</delimiter><headings>yes</headings>
          </datasource>
          <datasource type="xml">
            <id>2</id><name>suppliers</name><filename>suppliers.xml</filename><path>.</path>
          </datasource>
          <datasource type="excel">
            <id>3</id><name>prices</name><filename>prices.xlsx</filename>
            <path>.</path><sheet>prices</sheet><headings>yes</headings>
          </datasource>
        </datasources>
    """)
    mapping = write_text("mapping.dvm", """
        <edges>
          <edge>
            <headnode><name>sku</name></headnode>
            <tailnode><name>supplier</name></tailnode>
            <datasource>products</datasource>
            <key>sku</key><value>supplier</value>
          </edge>
          <edge>
            <headnode><name>supplier</name></headnode>
            <tailnode><name>country</name></tailnode>
            <datasource>suppliers</datasource>
            <key>0</key><value>1</value>
          </edge>
          <edge>
            <headnode><name>price</name></headnode>
            <tailnode><name>sku</name></tailnode>
            <datasource>prices</datasource>
            <key>price</key><value>sku</value>
          </edge>
        </edges>
    """)
    query = write_text("query.xml", """
        <query>
          <rootnode>C</rootnode>
          <node><onnode>country</onnode><label>C</label><children>S</children><output>yes</output></node>
          <node><onnode>supplier</onnode><label>S</label><children>K</children></node>
          <node><onnode>sku</onnode><label>K</label><children>P</children><output>yes</output></node>
          <node>
            <onnode>price</onnode><label>P</label>
            <transformations>filter:$P$ >= 5</transformations>
            <output>yes</output>
          </node>
        </query>
    """)
    return {"catalog": catalog, "mapping": mapping, "query": query}


class TestMixedSources:
    @pytest.mark.asyncio
    async def test_load_snapshot_then_query(self, tmp_path, mixed_sources):
        snapshot = tmp_path / "graph.json"

        async with MemoryMappingStore(snapshot) as store:
            await store.verify_connectivity()
            summary = await GraphLoader(store).load_file(mixed_sources["mapping"], reset=True)
        assert (summary.records, summary.attributes, summary.edges) == (3, 4, 3)
        assert snapshot.exists()

        async with MemoryMappingStore(snapshot) as store:
            await store.verify_connectivity()
            assert (await store.get_attribute("sku")).description == ""
            engine = EvaluationEngine(store, load_datasources_xml(mixed_sources["catalog"]))
            results = await engine.evaluate(compile_query(mixed_sources["query"]))

        values = {r.label: r.values for r in results}
        assert values["P"] == ["10", "25.5"]
        assert values["K"] == ["P1", "P2"]
        assert values["C"] == ["FR", "US"]

    @pytest.mark.asyncio
    async def test_concurrent_mode_same_answer(self, tmp_path, mixed_sources):
        store = MemoryMappingStore()
        await GraphLoader(store).load_file(mixed_sources["mapping"])
        catalog = load_datasources_xml(mixed_sources["catalog"])
        tree = compile_query(mixed_sources["query"])

        sequential = await EvaluationEngine(store, catalog).evaluate(tree)
        concurrent = await EvaluationEngine(store, catalog, mode="concurrent").evaluate(tree)
        assert concurrent == sequential

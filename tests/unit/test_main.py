# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest

from datamingle.main import _build_parser, main
from datamingle.version import __version__


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run from an empty directory so no .env is picked up; drop CLI log handlers afterwards."""
    monkeypatch.chdir(tmp_path)
    for var in ("GRAPH_DB_TYPE", "GRAPH_DB_SNAPSHOT", "EVALUATION_MODE", "LOG_LEVEL", "LOG_FILE"):
        monkeypatch.delenv(var, raising=False)
    yield
    root = logging.getLogger("datamingle")
    for handler in list(root.handlers):
        root.removeHandler(handler)


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self, capsys):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_load_subcommand(self):
        args = _build_parser().parse_args(["load", "map.dvm", "--use-existing-graph"])
        assert args.command == "load"
        assert args.dvm_file == Path("map.dvm")
        assert args.use_existing_graph is True

    def test_load_defaults(self):
        args = _build_parser().parse_args(["load", "map.dvm"])
        assert args.use_existing_graph is False
        assert (args.store, args.bolt_uri, args.user, args.password, args.snapshot) == (
            None, None, None, None, None,
        )

    def test_query_subcommand(self):
        args = _build_parser().parse_args([
            "-vv", "query", "ds.xml", "q.xml", "-o", "JSON", "-m", "concurrent",
            "-b", "bolt://graph:7687", "--user", "u", "--password", "p",
        ])
        assert args.command == "query"
        assert args.datasources_path == Path("ds.xml")
        assert args.query_path == Path("q.xml")
        assert args.output == "json"
        assert args.mode == "concurrent"
        assert args.bolt_uri == "bolt://graph:7687"
        assert args.verbose == 2

    def test_query_defaults(self):
        args = _build_parser().parse_args(["query", "ds.xml", "q.xml"])
        assert args.output == "text"
        assert args.mode is None

    def test_invalid_output_rejected(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["query", "ds.xml", "q.xml", "-o", "xml"])


# ---------------------------------------------------------------------------
# Main tests
# ---------------------------------------------------------------------------

class TestMain:
    def test_no_command_returns_1(self):
        assert main([]) == 1

    def test_load_then_query(self, tmp_path, geo_dvm, catalog_xml, geo_query, capsys):
        snapshot = tmp_path / "graph.json"
        store_args = ["--store", "memory", "--snapshot", str(snapshot)]

        assert main(["load", str(geo_dvm), *store_args]) == 0
        assert snapshot.exists()
        out = capsys.readouterr().out
        assert "Records:     3" in out
        assert "Attributes:  4" in out
        assert "Edges:       3" in out

        assert main(["query", str(catalog_xml), str(geo_query), *store_args]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "X001 (store): S1, S2, S3",
            "X003 (customer): alice, bob, carol",
            "X000 (region): North, South, South, North, South, South",
        ]

    def test_query_json_concurrent(self, tmp_path, geo_dvm, catalog_xml, geo_query, capsys):
        store_args = ["--store", "memory", "--snapshot", str(tmp_path / "graph.json")]
        main(["load", str(geo_dvm), *store_args])
        capsys.readouterr()

        code = main(["query", str(catalog_xml), str(geo_query), "-o", "json", "-m", "concurrent", *store_args])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert [d["label"] for d in data] == ["X001", "X003", "X000"]

    def test_query_output_none(self, tmp_path, geo_dvm, catalog_xml, geo_query, capsys):
        store_args = ["--store", "memory", "--snapshot", str(tmp_path / "graph.json")]
        main(["load", str(geo_dvm), *store_args])
        capsys.readouterr()
        assert main(["query", str(catalog_xml), str(geo_query), "-o", "none", *store_args]) == 0
        assert capsys.readouterr().out == ""

    def test_load_missing_file_returns_1(self, tmp_path, capsys):
        code = main(["load", str(tmp_path / "missing.dvm"), "--store", "memory"])
        assert code == 1
        assert "Failed to open file" in capsys.readouterr().err

    def test_query_bad_document_returns_1(self, catalog_xml, write_text, capsys):
        query = write_text("bad.xml", "<query><rootnode>X</rootnode></query>")
        code = main(["query", str(catalog_xml), str(query), "--store", "memory"])
        assert code == 1
        assert "root node/label mismatch" in capsys.readouterr().err

    def test_invalid_configuration_returns_1(self, tmp_path, capsys):
        code = main(["load", "x.dvm", "--store", "neo4j", "--snapshot", str(tmp_path / "g.json")])
        assert code == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_keyboard_interrupt_returns_130(self):
        with patch("datamingle.main._cmd_load", MagicMock()), \
             patch("datamingle.main.asyncio.run", side_effect=KeyboardInterrupt):
            assert main(["load", "x.dvm", "--store", "memory"]) == 130

    def test_verbose_logs_progress(self, geo_dvm, capsys):
        assert main(["-v", "load", str(geo_dvm), "--store", "memory"]) == 0
        assert "Starting DVM loader" in capsys.readouterr().err

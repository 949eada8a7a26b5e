# tests/unit/engine/test_results.py — v1
"""Tests for engine/results.py — text and JSON rendering of output records."""

from __future__ import annotations

import io
import json

import pytest

from datamingle.core.models import OutputRecord
from datamingle.engine.results import write_results

RESULTS = [
    OutputRecord(label="X001", name="store", values=["S1", "S2"]),
    OutputRecord(label="X000", name="region", values=[]),
]


class TestWriteResults:
    def test_text(self):
        out = io.StringIO()
        write_results(RESULTS, "text", out)
        assert out.getvalue() == "X001 (store): S1, S2\nX000 (region): \n"

    def test_json(self):
        out = io.StringIO()
        write_results(RESULTS, "json", out)
        assert json.loads(out.getvalue()) == [
            {"label": "X001", "name": "store", "values": ["S1", "S2"]},
            {"label": "X000", "name": "region", "values": []},
        ]

    def test_json_keeps_non_ascii(self):
        out = io.StringIO()
        write_results([OutputRecord(label="A", name="ville", values=["Besançon"])], "json", out)
        assert "Besançon" in out.getvalue()

    def test_none_writes_nothing(self):
        out = io.StringIO()
        write_results(RESULTS, "none", out)
        assert out.getvalue() == ""

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown output mode"):
            write_results(RESULTS, "xml", io.StringIO())  # type: ignore[arg-type]

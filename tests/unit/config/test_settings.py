# tests/unit/config/test_settings.py — v2
"""Tests for config/settings.py — typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from datamingle.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_store(self):
        s = Settings(_env_file=None)
        assert s.graph_db_type == "neo4j"
        assert s.graph_db_uri == "bolt://localhost:7687"
        assert s.graph_db_user == "neo4j"
        assert s.graph_db_password == "12345678"
        assert s.graph_db_snapshot is None

    def test_default_logging(self):
        s = Settings(_env_file=None)
        assert s.log_level == "ERROR"
        assert s.log_format == "text"
        assert s.log_file is None

    def test_default_evaluation(self):
        s = Settings(_env_file=None)
        assert s.evaluation_mode == "sequential"
        assert s.max_tree_depth == 10_000


class TestSettingsValidation:
    def test_snapshot_requires_memory_store(self, tmp_path):
        with pytest.raises(ConfigurationError, match="GRAPH_DB_SNAPSHOT"):
            Settings(_env_file=None, graph_db_type="neo4j", graph_db_snapshot=tmp_path / "g.json")

    def test_snapshot_with_memory_store(self, tmp_path):
        s = Settings(_env_file=None, graph_db_type="memory", graph_db_snapshot=tmp_path / "g.json")
        assert s.graph_db_snapshot == tmp_path / "g.json"

    def test_empty_uri_with_neo4j(self):
        with pytest.raises(ConfigurationError, match="GRAPH_DB_URI"):
            Settings(_env_file=None, graph_db_uri="  ")

    def test_empty_uri_allowed_with_memory(self):
        s = Settings(_env_file=None, graph_db_type="memory", graph_db_uri="")
        assert s.graph_db_type == "memory"

    def test_log_max_bytes_positive(self):
        with pytest.raises(ConfigurationError, match="LOG_MAX_BYTES"):
            Settings(_env_file=None, log_max_bytes=0)

    def test_max_tree_depth_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_tree_depth=0)

    def test_unknown_store_type(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, graph_db_type="arangodb")

    def test_multiple_errors_joined(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(
                _env_file=None,
                graph_db_snapshot=tmp_path / "g.json",
                log_max_bytes=-1,
            )
        assert "; " in str(exc_info.value)


class TestLoadSettings:
    def test_none_overrides_dropped(self, monkeypatch):
        monkeypatch.setenv("GRAPH_DB_URI", "bolt://graph:7687")
        s = load_settings(graph_db_uri=None, graph_db_user="reader")
        assert s.graph_db_uri == "bolt://graph:7687"
        assert s.graph_db_user == "reader"

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("GRAPH_DB_TYPE", "memory")
        monkeypatch.setenv("EVALUATION_MODE", "concurrent")
        s = load_settings()
        assert s.graph_db_type == "memory"
        assert s.evaluation_mode == "concurrent"

    def test_override_beats_env(self, monkeypatch):
        monkeypatch.setenv("EVALUATION_MODE", "concurrent")
        s = load_settings(evaluation_mode="sequential")
        assert s.evaluation_mode == "sequential"

    def test_snapshot_path_type(self, tmp_path):
        s = load_settings(graph_db_type="memory", graph_db_snapshot=str(tmp_path / "g.json"))
        assert isinstance(s.graph_db_snapshot, Path)

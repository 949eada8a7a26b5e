# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: the mapping-graph
store endpoint and credentials, logging, and evaluation behaviour.
CLI flags override individual fields through load_settings().
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Mapping-graph store ===
    graph_db_type: Literal["neo4j", "memory"] = "neo4j"
    graph_db_uri: str = "bolt://localhost:7687"
    graph_db_user: str = "neo4j"
    graph_db_password: str = "12345678"
    graph_db_database: str = "neo4j"
    graph_db_snapshot: Path | None = None

    # === Logging ===
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = "ERROR"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    # === Evaluation ===
    evaluation_mode: Literal["sequential", "concurrent"] = "sequential"
    max_tree_depth: int = 10_000

    # --- Validators ---

    @field_validator("max_tree_depth")
    @classmethod
    def validate_max_tree_depth(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("max_tree_depth must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.graph_db_snapshot is not None and self.graph_db_type != "memory":
            errors.append("GRAPH_DB_SNAPSHOT is only used when GRAPH_DB_TYPE is memory")

        if self.graph_db_type == "neo4j" and not self.graph_db_uri.strip():
            errors.append("GRAPH_DB_URI must be set when GRAPH_DB_TYPE is neo4j")

        if self.log_max_bytes <= 0:
            errors.append("LOG_MAX_BYTES must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Overrides whose value is None are dropped so that unset CLI flags fall
    back to the environment.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    clean = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**clean)  # type: ignore[arg-type]

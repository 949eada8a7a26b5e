# src/logging/logger.py — v2
"""Logger factory with JSON and text formatters.

Adds a TRACE level below DEBUG and the CLI verbosity mapping
(0 -> ERROR, 1 -> INFO, 2 -> DEBUG, 3+ -> TRACE).
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from datamingle.logging.context import get_context

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_VERBOSITY_LEVELS = {0: "ERROR", 1: "INFO", 2: "DEBUG"}


class JsonFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context_dict = ctx.as_dict()
        if context_dict:
            log_entry["context"] = context_dict

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        if ctx.phase:
            parts.append(f"[{ctx.phase}]")
        if ctx.node:
            parts.append(f"({ctx.node})")
        parts.append(f"- {record.getMessage()}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def trace(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log at TRACE level."""
    if logger.isEnabledFor(TRACE):
        logger.log(TRACE, msg, *args)


def verbosity_to_level(count: int) -> str:
    """Map a `-v` count to a level name."""
    if count >= 3:
        return "TRACE"
    return _VERBOSITY_LEVELS.get(max(count, 0), "ERROR")


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"datamingle.{name}")


def setup_logging(
    level: str = "ERROR",
    log_format: str = "text",
    log_file: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    stream: Any = None,
) -> logging.Logger:
    """Configure the root datamingle logger and return it.

    Args:
        level: Level name (TRACE, DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to a rotating log file (None = console only).
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
        stream: Console stream (defaults to stderr so stdout stays free for results).
    """
    root_logger = logging.getLogger("datamingle")
    level_name = level.upper()
    root_logger.setLevel(TRACE if level_name == "TRACE" else getattr(logging, level_name, logging.ERROR))

    # Remove existing handlers to avoid duplicates on re-init
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter
    if log_format == "json":
        formatter = JsonFormatter()
    else:
        formatter = TextFormatter()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger

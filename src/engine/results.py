# src/engine/results.py — v1
"""Write evaluation output for the caller. Nothing is persisted."""

from __future__ import annotations

import json
from typing import Literal, Sequence, TextIO

from datamingle.core.models import OutputRecord

OutputMode = Literal["none", "text", "json"]


def write_results(results: Sequence[OutputRecord], mode: OutputMode, stream: TextIO) -> None:
    """Render results as `label (name): v1, v2` lines or a JSON list."""
    if mode == "none":
        return
    if mode == "text":
        for record in results:
            stream.write(f"{record.label} ({record.name}): {', '.join(record.values)}\n")
        return
    if mode == "json":
        json.dump([r.model_dump() for r in results], stream, ensure_ascii=False, indent=2)
        stream.write("\n")
        return
    raise ValueError(f"Unknown output mode: {mode!r}")

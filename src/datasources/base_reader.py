# src/datasources/base_reader.py — v2
"""Abstract reader interface shared by every datasource variant.

A reader opens its source and returns a DatasourceStream: a finite,
single-pass async iterator of ReadResult elements. Opening again re-reads
from the start. Failures that only affect one record are yielded as a
failed element; failures that make the source unusable raise from open().
"""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from itertools import islice
from typing import Callable, Generic, Iterator, TypeVar

from datamingle.core.errors import DatasourceIOError

S = TypeVar("S")

READ_BATCH_SIZE = 64


@dataclass(frozen=True)
class ReadResult:
    """One element of a datasource stream: a key/value pair or an error."""

    key: str = ""
    value: str = ""
    error: DatasourceIOError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> tuple[str, str]:
        """Return the pair, raising the carried error for failed elements."""
        if self.error is not None:
            raise self.error
        return self.key, self.value


class DatasourceStream:
    """Lazy async view over a record generator that owns an open resource.

    Records are pulled in small batches on a worker thread so file reads
    do not block the event loop. The lock serializes a pull with close().
    """

    def __init__(
        self,
        datasource: str,
        records: Iterator[ReadResult],
        on_close: Callable[[], object] | None = None,
    ) -> None:
        self.datasource = datasource
        self._records = records
        self._on_close = on_close
        self._closed = False
        self._exhausted = False
        self._buffer: deque[ReadResult] = deque()
        self._lock = threading.Lock()

    def __aiter__(self) -> DatasourceStream:
        return self

    async def __anext__(self) -> ReadResult:
        if not self._buffer and not self._exhausted and not self._closed:
            batch = await asyncio.to_thread(self._pull)
            if len(batch) < READ_BATCH_SIZE:
                self._exhausted = True
            self._buffer.extend(batch)
        if self._closed or not self._buffer:
            self.close()
            raise StopAsyncIteration
        return self._buffer.popleft()

    def _pull(self) -> list[ReadResult]:
        with self._lock:
            if self._closed:
                return []
            return list(islice(self._records, READ_BATCH_SIZE))

    async def __aenter__(self) -> DatasourceStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the underlying resource. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._buffer.clear()
            close_gen = getattr(self._records, "close", None)
            if close_gen is not None:
                close_gen()
            if self._on_close is not None:
                self._on_close()


class BaseReader(ABC, Generic[S]):
    """Unified read contract over one configured datasource."""

    def __init__(self, datasource: S) -> None:
        self._datasource = datasource

    @property
    def datasource(self) -> S:
        return self._datasource

    @property
    def name(self) -> str:
        return self._datasource.name  # type: ignore[attr-defined]

    @abstractmethod
    async def open(self, key_position: str, value_position: str) -> DatasourceStream:
        """Open the source and return a lazy stream of key/value pairs.

        Raises:
            DatasourceIOError: If the source cannot be opened or the
                positions cannot be resolved against it.
        """


def resolve_position(
    position: str,
    headers: list[str] | None,
    datasource: str,
) -> int:
    """Resolve a key/value position to a 0-based column index.

    Digits are taken as an index; anything else must match a header name.
    """
    token = position.strip()
    if token.isdigit():
        return int(token)
    if not token:
        raise DatasourceIOError("empty column position", datasource)
    if headers is None:
        raise DatasourceIOError(
            f"column {token!r} given by name but the source has no headings",
            datasource,
        )
    normalized = [h.strip() for h in headers]
    if token not in normalized:
        raise DatasourceIOError(
            f"column {token!r} not found in headings {normalized}", datasource
        )
    return normalized.index(token)


def pick_pair(
    row: list[str],
    key_index: int,
    value_index: int,
    datasource: str,
    location: str,
) -> ReadResult:
    """Extract the key/value cells of a row, or a failed element if it is too short."""
    needed = max(key_index, value_index)
    if len(row) <= needed:
        return ReadResult(
            error=DatasourceIOError(
                f"{location}: record has {len(row)} fields, position {needed} missing",
                datasource,
            )
        )
    return ReadResult(key=row[key_index], value=row[value_index])

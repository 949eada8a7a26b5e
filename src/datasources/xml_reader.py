# src/datasources/xml_reader.py — v1
"""Semi-structured document reader.

Walks the document once with lxml's iterparse. Every leaf element with
non-blank text becomes a (local tag name, text) pair; key/value positions
are accepted for interface parity but the tag itself is the key.
"""

from __future__ import annotations

import logging
from typing import IO, Any, Iterator

from lxml import etree

from datamingle.core.errors import DatasourceIOError
from datamingle.core.models import XmlSource
from datamingle.datasources.base_reader import BaseReader, DatasourceStream, ReadResult

logger = logging.getLogger(__name__)


class XmlReader(BaseReader[XmlSource]):
    """Reader for `xml` datasources."""

    async def open(self, key_position: str, value_position: str) -> DatasourceStream:
        ds = self._datasource
        try:
            handle = ds.location.open("rb")
        except OSError as e:
            raise DatasourceIOError(f"cannot open {ds.location}: {e}", ds.name) from e

        events = etree.iterparse(
            handle, events=("end",), remove_comments=True, remove_pis=True
        )
        logger.debug("Opened XML %s", ds.location)
        return DatasourceStream(ds.name, self._records(events, handle), handle.close)

    def _records(self, events: Any, handle: IO[bytes]) -> Iterator[ReadResult]:
        name = self._datasource.name
        try:
            for _, elem in events:
                if len(elem) == 0:
                    text = (elem.text or "").strip()
                    if text:
                        yield ReadResult(key=etree.QName(elem).localname, value=text)
                    continue
                # Subtree fully consumed: drop it and its processed siblings.
                elem.clear()
                while elem.getprevious() is not None:
                    del elem.getparent()[0]
        except etree.XMLSyntaxError as e:
            yield ReadResult(
                error=DatasourceIOError(f"malformed document {handle.name}: {e}", name)
            )
        except OSError as e:
            yield ReadResult(error=DatasourceIOError(f"read failed: {e}", name))

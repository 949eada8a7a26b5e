# src/datasources/catalog.py — v1
"""Datasource catalog loader.

Reads the catalog XML document into an immutable name -> Datasource map.
Each `datasource` element declares its variant in the `type` attribute
(csv, xml, excel, db); missing required fields are fatal and named.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from lxml import etree
from pydantic import ValidationError

from datamingle.core.documents import child_text, local_name, read_xml_document
from datamingle.core.errors import ParseError, SchemaViolation
from datamingle.core.models import (
    CsvSource,
    DatabaseSource,
    Datasource,
    ExcelSource,
    XmlSource,
)

logger = logging.getLogger(__name__)

HEADINGS_TRUE = frozenset({"yes", "true", "y", "1"})

_VARIANTS: dict[str, tuple[type, tuple[str, ...]]] = {
    "csv": (CsvSource, ("filename", "path", "delimiter", "headings")),
    "xml": (XmlSource, ("filename", "path")),
    "excel": (ExcelSource, ("filename", "path", "sheet", "headings")),
    "db": (DatabaseSource, ("system", "connection", "username", "password", "database")),
}


def load_datasources_xml(path: str | Path) -> dict[str, Datasource]:
    """Load and validate a datasource catalog document.

    Relative `path` fields are resolved against the catalog's directory.

    Raises:
        ParseError: Unknown type, missing or invalid field.
        SchemaViolation: Two datasources share a name.
    """
    catalog_path = Path(path)
    logger.info("Loading datasources from %s", catalog_path)
    root = read_xml_document(catalog_path)
    base_dir = catalog_path.parent

    datasources: dict[str, Datasource] = {}
    for index, elem in enumerate(
        e for e in root if local_name(e) == "datasource"
    ):
        where = f"{catalog_path}:datasource[{index}]"
        ds = parse_datasource(elem, where, base_dir)
        if ds.name in datasources:
            raise SchemaViolation(
                f"Duplicate datasource name {ds.name!r} in {catalog_path}",
                label=ds.name,
            )
        logger.debug("Collecting %s datasource: %s", ds.type.upper(), ds.name)
        datasources[ds.name] = ds

    logger.debug("Built collection of %d datasources", len(datasources))
    return datasources


def parse_datasource(
    elem: etree._Element,
    where: str = "datasource",
    base_dir: Path | None = None,
) -> Datasource:
    """Build one datasource variant from its catalog element."""
    ds_type = (elem.get("type") or "").strip().lower()
    if ds_type not in _VARIANTS:
        raise ParseError(
            f"Incorrect datasource type given: {ds_type!r} "
            f"(expected one of {', '.join(_VARIANTS)})",
            path=where,
        )
    model, required = _VARIANTS[ds_type]

    fields: dict[str, Any] = {
        "id": _required(elem, "id", where),
        "name": _required(elem, "name", where),
    }
    for field in required:
        if field == "delimiter":
            fields["delimiter"] = _delimiter(elem, where)
        elif field == "headings":
            fields["has_headers"] = _required(elem, "headings", where).lower() in HEADINGS_TRUE
        else:
            fields[field] = _required(elem, field, where)

    if "path" in fields and base_dir is not None:
        p = Path(fields["path"]).expanduser()
        if not p.is_absolute():
            fields["path"] = str(base_dir / p)

    try:
        return model(**fields)
    except ValidationError as e:
        raise ParseError(f"Invalid {ds_type} datasource: {_summarize(e)}", path=where) from e


def _required(elem: etree._Element, field: str, where: str) -> str:
    value = child_text(elem, field)
    if value is None:
        raise ParseError(f"Missing required field {field!r}", path=where)
    return value


def _delimiter(elem: etree._Element, where: str) -> str:
    raw = child_text(elem, "delimiter", strip=False)
    if raw is None:
        raise ParseError("Missing required field 'delimiter'", path=where)
    if raw.strip() == "\\t":
        return "\t"
    if len(raw) != 1:
        raw = raw.strip()
    if len(raw) != 1:
        raise ParseError(
            f"Field 'delimiter' must be a single character, got {raw!r}", path=where
        )
    return raw


def _summarize(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def datasource_names(catalog: Mapping[str, Datasource]) -> list[str]:
    """Sorted catalog names, for error messages and CLI summaries."""
    return sorted(catalog)

# src/core/errors.py — v1
"""Error taxonomy shared by every datamingle component.

All failures are fatal for the operation they affect and carry the
entity responsible (document path, node label, datasource or edge).
Nothing in the core retries.
"""

from __future__ import annotations


class DataMingleError(Exception):
    """Base class for all datamingle errors."""


class ParseError(DataMingleError):
    """Malformed document, unknown tag or invalid enumerated token."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class SchemaViolation(DataMingleError):
    """Structurally valid document whose content breaks a wiring rule."""

    def __init__(self, message: str, label: str | None = None) -> None:
        self.label = label
        super().__init__(message)


class NotFound(DataMingleError):
    """A referenced entity does not exist."""

    kind = "Entity"

    def __init__(self, name: str, context: str = "") -> None:
        self.name = name
        self.context = context
        message = f"{self.kind} {name!r} not found"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class UnknownDatasource(NotFound):
    """Datasource name not present in the loaded catalog."""

    kind = "Datasource"


class AttributeNotFound(NotFound):
    """Join endpoint missing from the mapping graph."""

    kind = "Attribute"


class DatasourceIOError(DataMingleError):
    """Failure opening or reading a datasource, or a malformed record."""

    def __init__(self, message: str, datasource: str | None = None) -> None:
        self.datasource = datasource
        super().__init__(f"[{datasource}] {message}" if datasource else message)


class StoreConnectionError(DataMingleError):
    """Mapping-graph store unreachable or failing its startup round trip."""


class IngestionError(DataMingleError):
    """Mapping record that could not be stored, annotated with its endpoints."""

    def __init__(self, head: str, tail: str, cause: Exception) -> None:
        self.head = head
        self.tail = tail
        super().__init__(
            f'Error storing edge "{head}" -> "{tail}": {cause}'
        )


class EvaluationError(DataMingleError):
    """Transformation failure while evaluating a query node."""

    def __init__(self, message: str, label: str | None = None) -> None:
        self.label = label
        super().__init__(f"node {label}: {message}" if label else message)

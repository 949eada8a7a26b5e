# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Mapping-graph records, the datasource and transformation tagged unions,
query-document specs, the compiled query tree and evaluation output.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# === MAPPING GRAPH ===


class Attribute(BaseModel):
    """Named concept in the mapping graph; `name` is globally unique."""

    name: str
    description: str = ""
    primary: bool = False


class JoinEdge(BaseModel):
    """Directed `head -> tail` relationship with the metadata needed to join."""

    head: str
    tail: str
    datasource: str
    query: str = ""
    key: str
    value: str
    selected: bool = False


class MappingRecord(BaseModel):
    """One `edge` entry of a mapping (DVM) document."""

    head: Attribute
    tail: Attribute
    datasource: str
    query: str = ""
    key: str
    value: str


class LoadSummary(BaseModel):
    """Outcome of one ingestion run."""

    records: int = 0
    attributes: int = 0
    edges: int = 0


# === DATASOURCES ===


class _FileSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0, le=255)
    name: str
    filename: str
    path: str

    @property
    def location(self) -> Path:
        """Full path of the backing file."""
        return Path(self.path).expanduser() / self.filename


class CsvSource(_FileSource):
    """Delimited text file."""

    type: Literal["csv"] = "csv"
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    has_headers: bool = False


class XmlSource(_FileSource):
    """Semi-structured document read as tag/value pairs."""

    type: Literal["xml"] = "xml"


class ExcelSource(_FileSource):
    """Spreadsheet worksheet."""

    type: Literal["excel"] = "excel"
    sheet: str
    has_headers: bool = False


class DatabaseSource(BaseModel):
    """Relational database. Declared for completeness; reads are not supported."""

    model_config = ConfigDict(frozen=True)

    type: Literal["db"] = "db"
    id: int = Field(ge=0, le=255)
    name: str
    system: str
    connection: str
    username: str
    password: str = Field(repr=False)
    database: str


Datasource = Annotated[
    Union[CsvSource, XmlSource, ExcelSource, DatabaseSource],
    Field(discriminator="type"),
]


# === TRANSFORMATIONS ===


class AggregationType(str, Enum):
    """Closed set of reductions; ANY is the default."""

    MIN = "min"
    MAX = "max"
    SUM = "sum"
    AVERAGE = "average"
    COUNT = "count"
    ANY = "any"

    @classmethod
    def parse(cls, token: str) -> AggregationType:
        """Case-insensitive lookup. Raises ValueError on unknown tokens."""
        return cls(token.strip().lower())


class AggregateTransform(BaseModel):
    kind: Literal["aggregate"] = "aggregate"
    aggregation: AggregationType = AggregationType.ANY


class FilterTransform(BaseModel):
    kind: Literal["filter"] = "filter"
    expression: str


class MapTransform(BaseModel):
    kind: Literal["map"] = "map"
    expression: str


Transformation = Annotated[
    Union[AggregateTransform, FilterTransform, MapTransform],
    Field(discriminator="kind"),
]


# === QUERY DOCUMENT & TREE ===


class NodeSpec(BaseModel):
    """A `node` entry of a query document after field normalization."""

    name: str
    label: str
    children: list[str] = Field(default_factory=list)
    transformations: list[Transformation] = Field(default_factory=list)
    theta: str | None = None
    output: bool = False


class QueryDocument(BaseModel):
    """Parsed query document, not yet wired into a tree."""

    root_node: str
    nodes: list[NodeSpec] = Field(default_factory=list)


class QueryTreeNode(BaseModel):
    """Compiled query node. Children are owned exclusively by their parent."""

    name: str
    label: str
    children: list[QueryTreeNode] = Field(default_factory=list)
    transformations: list[Transformation] = Field(default_factory=list)
    theta: str | None = None
    output: bool = False

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk_postorder(self) -> Iterator[QueryTreeNode]:
        """Yield every node of the subtree, children before parents."""
        stack: list[tuple[QueryTreeNode, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))

    def node_count(self) -> int:
        return sum(1 for _ in self.walk_postorder())


# === EVALUATION OUTPUT ===


class OutputRecord(BaseModel):
    """Final values of one `output` node, tagged with its label."""

    label: str
    name: str
    values: list[str] = Field(default_factory=list)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class SchemaProperty:
    name: str
    type: str


@dataclass(frozen=True)
class Schema:
    name: str
    abstract: bool = False
    properties: tuple[SchemaProperty, ...] = ()
    parent: str | None = None


@dataclass(frozen=True)
class ResolvedProperty:
    declaring_schema: str
    name: str
    type: str


@dataclass(frozen=True)
class Entity:
    schema: str
    id: str
    # property schema -> property name -> value
    properties: dict[str, dict[str, str]] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash((self.schema, self.id))


@dataclass(frozen=True)
class Source:
    id: int
    url: str
    crawl_date: datetime | None = None
    force_crawl: bool = False


@dataclass(frozen=True)
class Document:
    id: int
    source_id: int
    url: str
    hash: str
    retrieved_date: datetime
    content: str
    etag: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class SearchHit:
    document_id: int
    relevance: float
    url: str | None = None
    title: str | None = None
    snippet: str | None = None

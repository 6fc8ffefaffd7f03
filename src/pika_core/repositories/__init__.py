from pika_core.repositories.documents import DocumentStore
from pika_core.repositories.entities import EntityStore
from pika_core.repositories.schemas import SchemaRegistry
from pika_core.repositories.search import SearchIndex
from pika_core.repositories.sources import SourceRepository

__all__ = [
    "DocumentStore",
    "EntityStore",
    "SchemaRegistry",
    "SearchIndex",
    "SourceRepository",
]

from pika_core.config import Settings, load_settings
from pika_core.models import Document, Entity, ResolvedProperty, Schema, SchemaProperty, SearchHit, Source
from pika_core.repositories import DocumentStore, EntityStore, SchemaRegistry, SearchIndex, SourceRepository
from pika_core.schema import ResolvedSchema, SchemaGraph

__all__ = [
    "__version__",
    "Document",
    "DocumentStore",
    "Entity",
    "EntityStore",
    "ResolvedProperty",
    "ResolvedSchema",
    "Schema",
    "SchemaGraph",
    "SchemaProperty",
    "SchemaRegistry",
    "SearchHit",
    "SearchIndex",
    "Settings",
    "Source",
    "SourceRepository",
    "load_settings",
]

__version__ = "0.1.0"

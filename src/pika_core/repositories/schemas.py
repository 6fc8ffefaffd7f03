from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

import psycopg

from pika_core.db import lock_key
from pika_core.models import ResolvedProperty, Schema, SchemaProperty
from pika_core.schema import ResolvedSchema, SchemaGraph

logger = logging.getLogger(__name__)

_REGISTRY_LOCK = "schema-registry"


def make_schema(
    name: str,
    *,
    abstract: bool = False,
    properties: Mapping[str, str] | Iterable[SchemaProperty] | None = None,
    parent: str | None = None,
) -> Schema:
    if properties is None:
        props: tuple[SchemaProperty, ...] = ()
    elif isinstance(properties, Mapping):
        props = tuple(SchemaProperty(name=k, type=v) for k, v in properties.items())
    else:
        props = tuple(properties)
    return Schema(name=name, abstract=abstract, properties=props, parent=parent)


class SchemaRegistry:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def load_graph(self) -> SchemaGraph:
        schemas = self._conn.execute(
            """
            select s.name, s.abstract, e.extends
            from schema s
            left join schema_extend e on e.schema_name = s.name
            order by s.name
            """
        ).fetchall()
        props = self._conn.execute(
            "select schema_name, name, type from schema_property order by schema_name, name"
        ).fetchall()
        by_schema: dict[str, list[SchemaProperty]] = {}
        for schema_name, name, typ in props:
            by_schema.setdefault(schema_name, []).append(SchemaProperty(name=name, type=typ))
        return SchemaGraph.of(
            Schema(
                name=r[0],
                abstract=r[1],
                properties=tuple(by_schema.get(r[0], ())),
                parent=r[2],
            )
            for r in schemas
        )

    def define_schema(
        self,
        name: str,
        abstract: bool = False,
        properties: Mapping[str, str] | Iterable[SchemaProperty] | None = None,
        parent: str | None = None,
    ) -> Schema:
        schema = make_schema(name, abstract=abstract, properties=properties, parent=parent)
        return self.define_schemas([schema])[0]

    def define_schemas(self, definitions: Iterable[Schema]) -> list[Schema]:
        """
        Registers a batch of schemas atomically. Parents may refer to schemas earlier or
        later in the same batch; if any definition is rejected nothing is written.
        """
        definitions = list(definitions)
        with self._conn.transaction():
            lock_key(self._conn, _REGISTRY_LOCK)
            graph = self.load_graph()
            for schema in definitions:
                graph.add(schema)
            graph.validate(s.name for s in definitions)

            for schema in definitions:
                self._conn.execute(
                    "insert into schema(name, abstract) values (%s, %s)",
                    (schema.name, schema.abstract),
                )
                for prop in schema.properties:
                    self._conn.execute(
                        "insert into schema_property(schema_name, name, type) values (%s, %s, %s)",
                        (schema.name, prop.name, prop.type),
                    )
            # parents last so forward references inside the batch satisfy the foreign key
            for schema in definitions:
                if schema.parent is not None:
                    self._conn.execute(
                        "insert into schema_extend(schema_name, extends) values (%s, %s)",
                        (schema.name, schema.parent),
                    )
        self._conn.commit()
        logger.info("registered %d schema(s): %s", len(definitions), ", ".join(s.name for s in definitions))
        return definitions

    def get_schema(self, name: str) -> Schema:
        return self.load_graph().get(name)

    def list_schemas(self) -> list[Schema]:
        return list(self.load_graph().schemas.values())

    def resolve(self, name: str) -> ResolvedSchema:
        return self.load_graph().resolve(name)

    def resolve_properties(self, name: str) -> frozenset[ResolvedProperty]:
        return self.resolve(name).as_set()

    def is_instantiable(self, name: str) -> bool:
        return not self.get_schema(name).abstract

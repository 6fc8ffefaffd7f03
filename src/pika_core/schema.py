from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from pika_core.errors import CyclicInheritance, DuplicateSchema, UnknownParent, UnknownSchema
from pika_core.models import ResolvedProperty, Schema


@dataclass(frozen=True)
class ResolvedSchema:
    """
    Effective property descriptor of a schema: every property it declares or inherits,
    keyed by name, with the most specific declaration winning.
    """

    name: str
    abstract: bool
    properties: dict[str, ResolvedProperty]

    def lookup(self, property_schema: str, property_name: str) -> ResolvedProperty | None:
        prop = self.properties.get(property_name)
        if prop is None or prop.declaring_schema != property_schema:
            return None
        return prop

    def as_set(self) -> frozenset[ResolvedProperty]:
        return frozenset(self.properties.values())


@dataclass
class SchemaGraph:
    """
    Schemas keyed by name with parent links by name. Extension is a forest:
    each schema has at most one parent and no chain may loop.
    """

    schemas: dict[str, Schema] = field(default_factory=dict)

    @classmethod
    def of(cls, schemas: Iterable[Schema]) -> SchemaGraph:
        graph = cls()
        for s in schemas:
            graph.add(s)
        return graph

    def copy(self) -> SchemaGraph:
        return SchemaGraph(schemas=dict(self.schemas))

    def __contains__(self, name: object) -> bool:
        return name in self.schemas

    def __len__(self) -> int:
        return len(self.schemas)

    def add(self, schema: Schema) -> None:
        if schema.name in self.schemas:
            raise DuplicateSchema(schema.name)
        self.schemas[schema.name] = schema

    def get(self, name: str) -> Schema:
        try:
            return self.schemas[name]
        except KeyError:
            raise UnknownSchema(name) from None

    def validate(self, names: Iterable[str] | None = None) -> None:
        """
        Checks parent references and acyclicity for `names` (all schemas by default).
        """
        for name in self.schemas if names is None else names:
            schema = self.get(name)
            parent = schema.parent
            if parent is not None and parent != schema.name and parent not in self.schemas:
                raise UnknownParent(schema.name, parent)
            # walking the chain also rejects self-extension
            for _ in self.ancestors(name):
                pass

    def ancestors(self, name: str) -> Iterator[Schema]:
        """
        Yields the schema itself, then its parent, up to the root.
        """
        seen: list[str] = []
        current: str | None = name
        while current is not None:
            if current in seen:
                raise CyclicInheritance(seen + [current])
            schema = self.get(current)
            seen.append(current)
            yield schema
            current = schema.parent

    def resolve(self, name: str) -> ResolvedSchema:
        chain = list(self.ancestors(name))
        properties: dict[str, ResolvedProperty] = {}
        for schema in reversed(chain):
            for prop in schema.properties:
                properties[prop.name] = ResolvedProperty(
                    declaring_schema=schema.name, name=prop.name, type=prop.type
                )
        return ResolvedSchema(name=name, abstract=chain[0].abstract, properties=properties)

    def children(self, name: str) -> list[str]:
        return sorted(s.name for s in self.schemas.values() if s.parent == name)

from __future__ import annotations

import logging
from collections.abc import Mapping

import psycopg

from pika_core.errors import AbstractSchema, DuplicateEntity, NotFound, UnknownProperty
from pika_core.models import Entity
from pika_core.repositories.schemas import SchemaRegistry
from pika_core.values import validate_value

logger = logging.getLogger(__name__)

EntityRef = Entity | tuple[str, str]


def _key(entity: EntityRef) -> tuple[str, str]:
    if isinstance(entity, Entity):
        return entity.schema, entity.id
    return entity


class EntityStore:
    def __init__(self, conn: psycopg.Connection, registry: SchemaRegistry | None = None):
        self._conn = conn
        self._registry = registry or SchemaRegistry(conn)

    def create_entity(self, schema_name: str, entity_id: str) -> Entity:
        with self._conn.transaction():
            self._insert_entity(schema_name, entity_id)
        self._conn.commit()
        return Entity(schema=schema_name, id=entity_id)

    def _insert_entity(self, schema_name: str, entity_id: str) -> None:
        if not self._registry.is_instantiable(schema_name):
            raise AbstractSchema(schema_name)
        cur = self._conn.execute(
            """
            insert into entity(schema_name, id) values (%s, %s)
            on conflict do nothing
            """,
            (schema_name, entity_id),
        )
        if cur.rowcount == 0:
            raise DuplicateEntity(schema_name, entity_id)
        logger.debug("created entity %s/%s", schema_name, entity_id)

    def _lock_entity(self, schema_name: str, entity_id: str) -> None:
        row = self._conn.execute(
            "select 1 from entity where schema_name=%s and id=%s for update",
            (schema_name, entity_id),
        ).fetchone()
        if not row:
            raise NotFound(f"Entity not found: {schema_name}/{entity_id}")

    def _checked_values(
        self, schema_name: str, property_schema: str, values: Mapping[str, str]
    ) -> dict[str, str]:
        resolved = self._registry.resolve(schema_name)
        checked: dict[str, str] = {}
        for name, value in values.items():
            prop = resolved.lookup(property_schema, name)
            if prop is None:
                raise UnknownProperty(schema_name, property_schema, name)
            checked[name] = validate_value(prop.type, value)
        return checked

    def set_property(
        self,
        entity: EntityRef,
        property_schema_name: str,
        property_name: str,
        value: str,
    ) -> None:
        schema_name, entity_id = _key(entity)
        checked = self._checked_values(schema_name, property_schema_name, {property_name: value})
        with self._conn.transaction():
            self._lock_entity(schema_name, entity_id)
            self._conn.execute(
                """
                insert into entity_property (
                  entity_schema_name, entity_id, property_schema_name, property_name, value
                ) values (%s, %s, %s, %s, %s)
                on conflict (entity_schema_name, entity_id, property_schema_name, property_name)
                do update set value = excluded.value
                """,
                (schema_name, entity_id, property_schema_name, property_name, checked[property_name]),
            )
        self._conn.commit()

    def set_properties(
        self,
        entity: EntityRef,
        property_schema_name: str,
        values: Mapping[str, str],
    ) -> None:
        """
        Replace-all semantics for the values an entity holds under one property schema.
        """
        schema_name, entity_id = _key(entity)
        checked = self._checked_values(schema_name, property_schema_name, values)
        with self._conn.transaction():
            self._lock_entity(schema_name, entity_id)
            self._replace_properties(schema_name, entity_id, property_schema_name, checked)
        self._conn.commit()

    def _replace_properties(
        self, schema_name: str, entity_id: str, property_schema_name: str, values: Mapping[str, str]
    ) -> None:
        self._conn.execute(
            """
            delete from entity_property
            where entity_schema_name=%s and entity_id=%s and property_schema_name=%s
            """,
            (schema_name, entity_id, property_schema_name),
        )
        for name, value in values.items():
            self._conn.execute(
                """
                insert into entity_property (
                  entity_schema_name, entity_id, property_schema_name, property_name, value
                ) values (%s, %s, %s, %s, %s)
                """,
                (schema_name, entity_id, property_schema_name, name, value),
            )

    def put_entity(
        self,
        schema_name: str,
        entity_id: str,
        properties: Mapping[str, Mapping[str, str]],
    ) -> Entity:
        """
        Creates an entity together with its properties in one transaction.
        """
        checked = {
            property_schema: self._checked_values(schema_name, property_schema, values)
            for property_schema, values in properties.items()
        }
        with self._conn.transaction():
            self._insert_entity(schema_name, entity_id)
            for property_schema, values in checked.items():
                self._replace_properties(schema_name, entity_id, property_schema, values)
        self._conn.commit()
        return Entity(
            schema=schema_name,
            id=entity_id,
            properties={k: dict(v) for k, v in checked.items() if v},
        )

    def get_entity(self, schema_name: str, entity_id: str) -> Entity:
        # one statement, so the entity and its properties come from the same snapshot
        rows = self._conn.execute(
            """
            select p.property_schema_name, p.property_name, p.value
            from entity e
            left join entity_property p
              on p.entity_schema_name = e.schema_name and p.entity_id = e.id
            where e.schema_name=%s and e.id=%s
            order by p.property_schema_name, p.property_name
            """,
            (schema_name, entity_id),
        ).fetchall()
        if not rows:
            raise NotFound(f"Entity not found: {schema_name}/{entity_id}")
        properties: dict[str, dict[str, str]] = {}
        for property_schema, name, value in rows:
            if property_schema is not None:
                properties.setdefault(property_schema, {})[name] = value
        return Entity(schema=schema_name, id=entity_id, properties=properties)

    def get_properties(self, schema_name: str, entity_id: str, property_schema_name: str) -> dict[str, str]:
        rows = self._conn.execute(
            """
            select property_name, value
            from entity_property
            where entity_schema_name=%s and entity_id=%s and property_schema_name=%s
            order by property_name
            """,
            (schema_name, entity_id, property_schema_name),
        ).fetchall()
        return {r[0]: r[1] for r in rows}

    def list_entities(self, schema_name: str) -> list[str]:
        rows = self._conn.execute(
            "select id from entity where schema_name=%s order by id",
            (schema_name,),
        ).fetchall()
        return [r[0] for r in rows]

    def delete_entity(self, schema_name: str, entity_id: str) -> None:
        with self._conn.transaction():
            self._lock_entity(schema_name, entity_id)
            self._conn.execute(
                "delete from entity_property where entity_schema_name=%s and entity_id=%s",
                (schema_name, entity_id),
            )
            self._conn.execute(
                "delete from entity where schema_name=%s and id=%s",
                (schema_name, entity_id),
            )
        self._conn.commit()
        logger.debug("deleted entity %s/%s", schema_name, entity_id)

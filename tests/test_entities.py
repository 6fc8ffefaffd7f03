import threading
import time

import pytest

from pika_core.errors import (
    AbstractSchema,
    DuplicateEntity,
    InvalidValue,
    NotFound,
    UnknownProperty,
    UnknownSchema,
)
from pika_core.models import Entity
from pika_core.repositories.entities import EntityStore
from pika_core.repositories.schemas import SchemaRegistry


@pytest.fixture()
def store(conn) -> EntityStore:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    registry.define_schema("Agent", abstract=True, properties={"homepage": "url"})
    registry.define_schema("Person", properties={"name": "string", "age": "integer"}, parent="Agent")
    return EntityStore(conn, registry)


def test_person_scenario(store: EntityStore) -> None:
    p1 = store.create_entity("Person", "p1")
    store.set_property(p1, "Person", "name", "Ada")
    with pytest.raises(UnknownProperty):
        store.set_property(p1, "Person", "email", "ada@example.org")

    assert store.get_entity("Person", "p1").properties == {"Person": {"name": "Ada"}}


def test_inherited_property_uses_declaring_schema(store: EntityStore) -> None:
    store.create_entity("Person", "p2")
    store.set_property(("Person", "p2"), "Agent", "homepage", "https://example.org/ada")
    with pytest.raises(UnknownProperty):
        store.set_property(("Person", "p2"), "Person", "homepage", "https://example.org/ada")
    assert store.get_properties("Person", "p2", "Agent") == {"homepage": "https://example.org/ada"}


def test_set_property_is_last_write_wins(store: EntityStore) -> None:
    store.create_entity("Person", "p3")
    store.set_property(("Person", "p3"), "Person", "name", "Ada")
    store.set_property(("Person", "p3"), "Person", "name", "Ada Lovelace")
    assert store.get_properties("Person", "p3", "Person") == {"name": "Ada Lovelace"}


def test_values_are_validated_against_declared_type(store: EntityStore) -> None:
    store.create_entity("Person", "p4")
    with pytest.raises(InvalidValue):
        store.set_property(("Person", "p4"), "Person", "age", "old")
    store.set_property(("Person", "p4"), "Person", "age", "36")


def test_create_errors(store: EntityStore) -> None:
    with pytest.raises(UnknownSchema):
        store.create_entity("Robot", "r1")
    with pytest.raises(AbstractSchema):
        store.create_entity("Agent", "a1")
    store.create_entity("Person", "dup")
    with pytest.raises(DuplicateEntity):
        store.create_entity("Person", "dup")
    with pytest.raises(NotFound):
        store.get_entity("Person", "missing")
    with pytest.raises(NotFound):
        store.set_property(("Person", "missing"), "Person", "name", "x")


def test_set_properties_replaces_schema_values(store: EntityStore) -> None:
    store.create_entity("Person", "p5")
    store.set_properties(("Person", "p5"), "Person", {"name": "Grace", "age": "85"})
    store.set_properties(("Person", "p5"), "Person", {"name": "Grace Hopper"})
    assert store.get_properties("Person", "p5", "Person") == {"name": "Grace Hopper"}


def test_delete_cascades_to_properties(store: EntityStore, conn) -> None:  # noqa: ANN001
    store.put_entity("Person", "p6", {"Person": {"name": "Alan"}, "Agent": {"homepage": "https://turing.example"}})
    assert store.list_entities("Person") == ["p6"]

    store.delete_entity("Person", "p6")
    with pytest.raises(NotFound):
        store.get_entity("Person", "p6")
    row = conn.execute(
        "select count(*) from entity_property where entity_schema_name=%s and entity_id=%s",
        ("Person", "p6"),
    ).fetchone()
    assert row == (0,)
    with pytest.raises(NotFound):
        store.delete_entity("Person", "p6")


def test_put_entity_is_atomic(store: EntityStore) -> None:
    with pytest.raises(UnknownProperty):
        store.put_entity("Person", "p7", {"Person": {"name": "Edsger", "email": "e@example.org"}})
    assert store.list_entities("Person") == []


def test_set_property_waits_for_concurrent_delete(store: EntityStore, conn, other_conn) -> None:  # noqa: ANN001
    store.put_entity("Person", "p8", {"Person": {"name": "Barbara"}})

    other_conn.execute("delete from entity_property where entity_schema_name='Person' and entity_id='p8'")
    other_conn.execute("delete from entity where schema_name='Person' and id='p8'")

    errors: list[Exception] = []

    def write() -> None:
        try:
            store.set_property(("Person", "p8"), "Person", "name", "Barbara Liskov")
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    writer = threading.Thread(target=write)
    writer.start()
    time.sleep(0.3)
    assert writer.is_alive()
    other_conn.commit()
    writer.join()

    assert len(errors) == 1
    assert isinstance(errors[0], NotFound)
    row = conn.execute(
        "select count(*) from entity_property where entity_schema_name='Person' and entity_id='p8'"
    ).fetchone()
    assert row == (0,)


def test_get_entity_never_sees_a_partial_delete(store: EntityStore, other_conn) -> None:  # noqa: ANN001
    store.put_entity("Person", "p9", {"Person": {"name": "Ada"}})

    other_conn.execute("delete from entity_property where entity_schema_name='Person' and entity_id='p9'")
    other_conn.execute("delete from entity where schema_name='Person' and id='p9'")
    assert store.get_entity("Person", "p9").properties == {"Person": {"name": "Ada"}}

    other_conn.commit()
    with pytest.raises(NotFound):
        store.get_entity("Person", "p9")


def test_entity_with_no_properties(store: EntityStore) -> None:
    store.create_entity("Person", "p10")
    assert store.get_entity("Person", "p10").properties == {}


def test_entities_hash_by_identity() -> None:
    a = Entity(schema="Person", id="p1", properties={"Person": {"name": "Ada"}})
    b = Entity(schema="Person", id="p1", properties={"Person": {"name": "Ada"}})
    assert hash(a) == hash(b)
    assert {a, b} == {a}

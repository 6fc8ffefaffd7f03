import pytest

from pika_core.errors import CyclicInheritance, DuplicateSchema, UnknownParent, UnknownSchema
from pika_core.models import ResolvedProperty
from pika_core.repositories.schemas import SchemaRegistry, make_schema


def test_define_and_resolve(conn) -> None:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    registry.define_schema("agent", abstract=True, properties={"name": "name"})
    registry.define_schema("person", properties={"name": "string", "born": "date"}, parent="agent")

    assert registry.get_schema("person").parent == "agent"
    assert registry.is_instantiable("person") is True
    assert registry.is_instantiable("agent") is False
    assert registry.resolve_properties("person") == {
        ResolvedProperty(declaring_schema="person", name="name", type="string"),
        ResolvedProperty(declaring_schema="person", name="born", type="date"),
    }
    assert [s.name for s in registry.list_schemas()] == ["agent", "person"]


def test_define_errors(conn) -> None:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    registry.define_schema("thing")

    with pytest.raises(DuplicateSchema):
        registry.define_schema("thing")
    with pytest.raises(UnknownParent):
        registry.define_schema("robot", parent="machine")
    with pytest.raises(CyclicInheritance):
        registry.define_schema("loop", parent="loop")
    with pytest.raises(UnknownSchema):
        registry.resolve_properties("robot")
    with pytest.raises(UnknownSchema):
        registry.is_instantiable("robot")

    assert [s.name for s in registry.list_schemas()] == ["thing"]


def test_batch_allows_forward_references(conn) -> None:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    registry.define_schemas(
        [
            make_schema("person", properties={"name": "string"}, parent="agent"),
            make_schema("agent", abstract=True, properties={"email": "string"}),
        ]
    )
    names = {p.name for p in registry.resolve_properties("person")}
    assert names == {"name", "email"}


def test_batch_failure_is_atomic(conn) -> None:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    with pytest.raises(UnknownParent):
        registry.define_schemas(
            [
                make_schema("ok", properties={"x": "string"}),
                make_schema("broken", parent="nowhere"),
            ]
        )
    assert registry.list_schemas() == []

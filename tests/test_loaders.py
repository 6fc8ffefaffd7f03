from pathlib import Path

import pytest

from pika_core.errors import CyclicInheritance
from pika_core.loaders import LoadError, import_entities, load_schemas, read_entity_file, read_schema_dir
from pika_core.repositories.entities import EntityStore
from pika_core.repositories.schemas import SchemaRegistry


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture()
def schema_dir(tmp_path: Path) -> Path:
    d = tmp_path / "schema"
    _write(d / "thing.toml", 'abstract = true\n\n[properties.name]\ntype = "name"\n')
    _write(
        d / "person.toml",
        'abstract = false\nextends = ["thing"]\n\n[properties.age]\ntype = "integer"\n',
    )
    return d


def test_read_schema_dir(schema_dir: Path) -> None:
    schemas = {s.name: s for s in read_schema_dir(schema_dir)}
    assert set(schemas) == {"thing", "person"}
    assert schemas["thing"].abstract is True
    assert schemas["person"].parent == "thing"
    assert [p.name for p in schemas["person"].properties] == ["age"]


def test_read_schema_dir_rejects_multiple_parents(tmp_path: Path) -> None:
    _write(tmp_path / "s" / "bad.toml", 'extends = ["a", "b"]\n')
    with pytest.raises(LoadError):
        read_schema_dir(tmp_path / "s")


def test_read_schema_dir_rejects_invalid_toml(tmp_path: Path) -> None:
    _write(tmp_path / "s" / "bad.toml", "abstract = \n")
    with pytest.raises(LoadError):
        read_schema_dir(tmp_path / "s")


def test_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(LoadError):
        read_schema_dir(tmp_path / "nope")


def test_read_entity_file_renders_scalars(tmp_path: Path) -> None:
    props = read_entity_file(tmp_path / "x.toml", {"thing": {"name": "Pikachu"}, "person": {"age": 25}})
    assert props == {"thing": {"name": "Pikachu"}, "person": {"age": "25"}}


def test_read_entity_file_rejects_nested_values(tmp_path: Path) -> None:
    with pytest.raises(LoadError):
        read_entity_file(tmp_path / "x.toml", {"thing": {"name": ["a", "b"]}})


def test_load_schemas_and_import(conn, schema_dir: Path, tmp_path: Path) -> None:  # noqa: ANN001
    registry = SchemaRegistry(conn)
    assert len(load_schemas(registry, schema_dir)) == 2

    data = tmp_path / "data"
    _write(data / "person" / "pikachu.toml", '[thing]\nname = "Pikachu"\n\n[person]\nage = 25\n')
    store = EntityStore(conn, registry)
    assert import_entities(store, data) == 1

    assert store.get_properties("person", "pikachu", "thing") == {"name": "Pikachu"}
    assert store.get_entity("person", "pikachu").properties["person"] == {"age": "25"}


def test_load_schemas_cycle_persists_nothing(conn, tmp_path: Path) -> None:  # noqa: ANN001
    d = tmp_path / "cyclic"
    _write(d / "a.toml", 'extends = "b"\n')
    _write(d / "b.toml", 'extends = "a"\n')
    registry = SchemaRegistry(conn)
    with pytest.raises(CyclicInheritance):
        load_schemas(registry, d)
    assert registry.list_schemas() == []

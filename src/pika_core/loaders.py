from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from pika_core.models import Schema, SchemaProperty
from pika_core.repositories.entities import EntityStore
from pika_core.repositories.schemas import SchemaRegistry
from pika_core.values import render_value

logger = logging.getLogger(__name__)


class LoadError(RuntimeError):
    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class PropertySpec(BaseModel):
    type: str


class SchemaFile(BaseModel):
    """
    One schema per TOML file; the file stem is the schema name.
    """

    abstract: bool = False
    extends: str | None = None
    properties: dict[str, PropertySpec] = Field(default_factory=dict)

    @field_validator("extends", mode="before")
    @classmethod
    def _single_parent(cls, value: Any) -> Any:
        if isinstance(value, list):
            if len(value) > 1:
                raise ValueError("a schema may extend at most one schema")
            return value[0] if value else None
        return value

    def to_schema(self, name: str) -> Schema:
        return Schema(
            name=name,
            abstract=self.abstract,
            properties=tuple(SchemaProperty(name=k, type=v.type) for k, v in self.properties.items()),
            parent=self.extends,
        )


def iter_toml(dir_path: Path) -> Iterator[tuple[str, dict[str, Any]]]:
    """
    Yields (file stem, parsed document) for every *.toml file in a directory, sorted by name.
    """
    if not dir_path.is_dir():
        raise LoadError(dir_path, "not a directory")
    for path in sorted(dir_path.glob("*.toml")):
        if not path.is_file():
            continue
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
            raise LoadError(path, f"could not parse: {exc}") from exc
        yield path.stem, data


def read_schema_dir(dir_path: Path) -> list[Schema]:
    schemas: list[Schema] = []
    for name, data in iter_toml(dir_path):
        try:
            schemas.append(SchemaFile.model_validate(data).to_schema(name))
        except ValidationError as exc:
            raise LoadError(dir_path / f"{name}.toml", str(exc)) from exc
    return schemas


def read_entity_file(path: Path, data: dict[str, Any]) -> dict[str, dict[str, str]]:
    """
    Top-level tables name property schemas; their scalar entries are property values.
    """
    properties: dict[str, dict[str, str]] = {}
    for property_schema, values in data.items():
        if not isinstance(values, dict):
            raise LoadError(path, f"expected a table for property schema {property_schema!r}")
        rendered: dict[str, str] = {}
        for name, value in values.items():
            if isinstance(value, (dict, list)):
                raise LoadError(path, f"property {property_schema}.{name} must be a scalar")
            rendered[name] = render_value(value)
        properties[property_schema] = rendered
    return properties


def load_schemas(registry: SchemaRegistry, dir_path: Path) -> list[Schema]:
    schemas = read_schema_dir(dir_path)
    if not schemas:
        logger.info("no schema files found in %s", dir_path)
        return []
    return registry.define_schemas(schemas)


def import_entities(store: EntityStore, data_dir: Path) -> int:
    """
    Imports `<data_dir>/<schema>/<id>.toml` files. Each entity is written in its own transaction.
    """
    if not data_dir.is_dir():
        raise LoadError(data_dir, "not a directory")
    imported = 0
    for schema_dir in sorted(p for p in data_dir.iterdir() if p.is_dir()):
        for entity_id, data in iter_toml(schema_dir):
            properties = read_entity_file(schema_dir / f"{entity_id}.toml", data)
            store.put_entity(schema_dir.name, entity_id, properties)
            imported += 1
        logger.info("imported entities for schema %s", schema_dir.name)
    return imported

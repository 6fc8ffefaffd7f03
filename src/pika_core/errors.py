from __future__ import annotations


class StoreError(RuntimeError):
    """Base class for validation failures raised by the stores."""


class UnknownSchema(StoreError, LookupError):
    def __init__(self, name: str):
        super().__init__(f"Unknown schema: {name}")
        self.name = name


class DuplicateSchema(StoreError):
    def __init__(self, name: str):
        super().__init__(f"Schema already defined: {name}")
        self.name = name


class UnknownParent(StoreError):
    def __init__(self, name: str, parent: str):
        super().__init__(f"Schema {name} extends unknown schema {parent}")
        self.name = name
        self.parent = parent


class CyclicInheritance(StoreError):
    def __init__(self, chain: list[str]):
        super().__init__(f"Cyclic schema inheritance: {' -> '.join(chain)}")
        self.chain = chain


class AbstractSchema(StoreError):
    def __init__(self, name: str):
        super().__init__(f"Schema is abstract and cannot be instantiated: {name}")
        self.name = name


class UnknownProperty(StoreError):
    def __init__(self, schema_name: str, property_schema: str, property_name: str):
        super().__init__(
            f"Property {property_schema}.{property_name} is not declared for schema {schema_name}"
        )
        self.schema_name = schema_name
        self.property_schema = property_schema
        self.property_name = property_name


class InvalidValue(StoreError):
    def __init__(self, type_name: str, value: str):
        super().__init__(f"Value {value!r} is not a valid {type_name}")
        self.type_name = type_name
        self.value = value


class DuplicateEntity(StoreError):
    def __init__(self, schema_name: str, entity_id: str):
        super().__init__(f"Entity already exists: {schema_name}/{entity_id}")
        self.schema_name = schema_name
        self.entity_id = entity_id


class NotFound(StoreError, LookupError):
    pass


class UnknownSource(StoreError, LookupError):
    def __init__(self, source_id: int):
        super().__init__(f"Unknown source: {source_id}")
        self.source_id = source_id


class SourceInUse(StoreError):
    def __init__(self, source_id: int, documents: int):
        super().__init__(f"Source {source_id} still has {documents} document(s)")
        self.source_id = source_id
        self.documents = documents


class IndexSyncFailed(StoreError):
    def __init__(self, document_id: int | None, reason: str):
        super().__init__(f"Search index update failed for document {document_id}: {reason}")
        self.document_id = document_id

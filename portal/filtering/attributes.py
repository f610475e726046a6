"""Per-entity attribute registry and dotted-path resolution.

Each mapped model gets an ``EntitySchema`` built once from its SQLAlchemy
mapper. Every scalar column is tagged with a ``Kind`` at that point so that
filtering never inspects column types per request.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from threading import Lock
from typing import Any

from sqlalchemy import inspect as sa_inspect

from portal.filtering.errors import AttributeNotFoundError


class Kind(enum.Enum):
    BOOL = "boolean"
    ENUM = "enum"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    STRING = "string"
    RELATION = "relation"

    @property
    def is_numeric(self) -> bool:
        return self in {Kind.INTEGER, Kind.FLOAT, Kind.DECIMAL}

    @property
    def is_ordered(self) -> bool:
        return self.is_numeric or self in {Kind.DATE, Kind.DATETIME, Kind.STRING}


@dataclass(frozen=True)
class AttributeSpec:
    name: str
    kind: Kind
    enum_class: type[enum.Enum] | None = None
    target: type | None = None
    collection: bool = False


@dataclass(frozen=True)
class EntitySchema:
    model: type
    attributes: dict[str, AttributeSpec] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> str:
        return self.model.__name__

    def get(self, name: str) -> AttributeSpec | None:
        return self.attributes.get(name)


@dataclass(frozen=True)
class ResolvedAttribute:
    """Terminal attribute of a dotted path plus the relation hops leading to it."""

    path: tuple[str, ...]
    spec: AttributeSpec
    schema: EntitySchema

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    @property
    def joins(self) -> tuple[str, ...]:
        return self.path[:-1]

    @property
    def kind(self) -> Kind:
        return self.spec.kind


def _kind_for_python_type(python_type: Any) -> Kind:
    if python_type is bool:
        return Kind.BOOL
    if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
        return Kind.ENUM
    if python_type is int:
        return Kind.INTEGER
    if python_type is float:
        return Kind.FLOAT
    if python_type is Decimal:
        return Kind.DECIMAL
    # datetime subclasses date, check it first
    if python_type is datetime:
        return Kind.DATETIME
    if python_type is date:
        return Kind.DATE
    return Kind.STRING


def _column_python_type(column) -> Any:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def build_schema(model: type) -> EntitySchema:
    """Tag every mapped column and relationship of ``model``.

    Names listed in the model's ``__unfilterable__`` are left out, so they can
    be neither filtered nor sorted on, even through a relation path.
    """
    mapper = sa_inspect(model)
    hidden = set(getattr(model, "__unfilterable__", ()))
    attributes: dict[str, AttributeSpec] = {}
    for prop in mapper.column_attrs:
        if prop.key in hidden:
            continue
        python_type = _column_python_type(prop.columns[0])
        kind = _kind_for_python_type(python_type)
        attributes[prop.key] = AttributeSpec(
            name=prop.key,
            kind=kind,
            enum_class=python_type if kind is Kind.ENUM else None,
        )
    for rel in mapper.relationships:
        if rel.key in hidden:
            continue
        attributes[rel.key] = AttributeSpec(
            name=rel.key,
            kind=Kind.RELATION,
            target=rel.mapper.class_,
            collection=bool(rel.uselist),
        )
    return EntitySchema(model=model, attributes=attributes)


_REGISTRY: dict[type, EntitySchema] = {}
_REGISTRY_LOCK = Lock()


def register_entity(model: type) -> EntitySchema:
    with _REGISTRY_LOCK:
        schema = _REGISTRY.get(model)
        if schema is None:
            schema = build_schema(model)
            _REGISTRY[model] = schema
        return schema


def schema_for(model_or_schema) -> EntitySchema:
    if isinstance(model_or_schema, EntitySchema):
        return model_or_schema
    schema = _REGISTRY.get(model_or_schema)
    if schema is None:
        schema = register_entity(model_or_schema)
    return schema


def resolve_path(schema: EntitySchema, dotted: str) -> ResolvedAttribute:
    """Walk ``dotted`` segment by segment; relation segments hop to the related schema.

    Raises ``AttributeNotFoundError`` for an empty path, an unknown segment, or a
    segment following a scalar attribute.
    """
    segments = dotted.split(".")
    current = schema
    spec: AttributeSpec | None = None
    for index, segment in enumerate(segments):
        if current is None:
            raise AttributeNotFoundError(dotted, segment, spec.name if spec else schema.name)
        spec = current.get(segment) if segment else None
        if spec is None:
            raise AttributeNotFoundError(dotted, segment, current.name)
        if spec.kind is Kind.RELATION and index < len(segments) - 1:
            current = schema_for(spec.target)
        else:
            current = None
    return ResolvedAttribute(path=tuple(segments), spec=spec, schema=schema)

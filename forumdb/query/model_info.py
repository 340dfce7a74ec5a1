"""Introspect SQLAlchemy mappings into the field/relation metadata the query layer needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Tuple, Type

from sqlalchemy import Boolean, DateTime, Float, Integer, Numeric, String, UniqueConstraint, inspect
from sqlalchemy.orm import RelationshipDirection

SCALAR_KINDS = ("string", "int", "float", "bool", "datetime")


@dataclass(frozen=True)
class RelationInfo:
    name: str
    target: type
    to_many: bool
    # Column on this model and the column it matches on the target model
    local_field: str
    remote_field: str
    # True when the local side holds the foreign key (Post.author, Comment.parent)
    owns_foreign_key: bool
    nullable: bool


@dataclass
class ModelInfo:
    model: type
    name: str
    primary_key: str
    fields: Dict[str, str] = field(default_factory=dict)
    nullable: Dict[str, bool] = field(default_factory=dict)
    unique_keys: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    relations: Dict[str, RelationInfo] = field(default_factory=dict)

    @property
    def compound_keys(self) -> Dict[str, Tuple[str, ...]]:
        return {name: cols for name, cols in self.unique_keys.items() if len(cols) > 1}

    @property
    def numeric_fields(self) -> List[str]:
        return [name for name, kind in self.fields.items() if kind in ("int", "float")]


def _column_kind(column) -> str:
    col_type = column.type
    if isinstance(col_type, Boolean):
        return "bool"
    if isinstance(col_type, Integer):
        return "int"
    if isinstance(col_type, (Float, Numeric)):
        return "float"
    if isinstance(col_type, DateTime):
        return "datetime"
    if isinstance(col_type, String):
        return "string"
    raise TypeError(f"Unsupported column type {col_type!r} on {column}")


@lru_cache(maxsize=None)
def get_model_info(model: Type) -> ModelInfo:
    """Build (once per model) the metadata used to validate and compile queries."""
    mapper = inspect(model)
    table = mapper.local_table
    pk_columns = [col.key for col in table.primary_key.columns]
    if len(pk_columns) != 1:
        raise TypeError(f"{model.__name__} must have a single-column primary key")

    info = ModelInfo(model=model, name=model.__name__, primary_key=pk_columns[0])
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        info.fields[attr.key] = _column_kind(column)
        info.nullable[attr.key] = bool(column.nullable)

    info.unique_keys[info.primary_key] = (info.primary_key,)
    for column in table.columns:
        if column.unique:
            info.unique_keys[column.key] = (column.key,)
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            cols = tuple(col.key for col in constraint.columns)
            info.unique_keys["_".join(cols)] = cols

    for rel in mapper.relationships:
        local_col, remote_col = rel.local_remote_pairs[0]
        owns_fk = rel.direction is RelationshipDirection.MANYTOONE
        info.relations[rel.key] = RelationInfo(
            name=rel.key,
            target=rel.mapper.class_,
            to_many=bool(rel.uselist),
            local_field=local_col.key,
            remote_field=remote_col.key,
            owns_foreign_key=owns_fk,
            nullable=bool(local_col.nullable) if owns_fk else True,
        )
    return info

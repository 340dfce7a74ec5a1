"""Compile `where` mappings into SQLAlchemy boolean clauses.

Grammar (per scalar field)::

    {"title": "exact"}                              # equals
    {"title": {"contains": "py", "mode": "insensitive"}}
    {"credit_score": {"gte": 80, "not": {"in": [90, 95]}}}
    {"ban_until": None}                             # null membership

Composites ``AND``/``OR``/``NOT`` take a mapping or a list of mappings.
Relations accept ``is``/``is_not`` (to-one) and ``some``/``every``/``none``
(to-many). Compound unique keys (``post_id_admin_id``) expand to equalities.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, false, func, not_, or_, select, true
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from ..core.exceptions import QueryValidationError
from ..utils.datetime_utils import parse_to_utc_naive
from .model_info import ModelInfo, get_model_info

COMMON_OPERATORS = {"equals", "in", "not_in", "lt", "lte", "gt", "gte", "not"}
OPERATORS_BY_KIND = {
    "string": COMMON_OPERATORS | {"contains", "starts_with", "ends_with", "mode"},
    "int": COMMON_OPERATORS,
    "float": COMMON_OPERATORS,
    "datetime": COMMON_OPERATORS,
    "bool": {"equals", "not"},
}
COMPOSITE_KEYS = ("AND", "OR", "NOT")


def coerce_value(field: str, kind: str, value: Any) -> Any:
    """Check a filter/cursor operand against the field kind and normalise datetimes."""
    if value is None:
        return None
    if kind == "bool":
        if not isinstance(value, bool):
            raise QueryValidationError(field, f"expected a boolean, got {value!r}")
        return value
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise QueryValidationError(field, f"expected an integer, got {value!r}")
        return value
    if kind == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise QueryValidationError(field, f"expected a number, got {value!r}")
        return value
    if kind == "datetime":
        if not isinstance(value, (str, datetime)):
            raise QueryValidationError(field, f"expected a datetime, got {value!r}")
        try:
            return parse_to_utc_naive(value)
        except ValueError:
            raise QueryValidationError(field, f"expected an ISO datetime, got {value!r}")
    if not isinstance(value, str):
        raise QueryValidationError(field, f"expected a string, got {value!r}")
    return value


def _coerce_list(field: str, kind: str, value: Any) -> List[Any]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise QueryValidationError(field, f"expected a list, got {value!r}")
    return [coerce_value(field, kind, item) for item in value]


def compile_scalar_filter(expr, field: str, kind: str, value: Any) -> ColumnElement:
    """Compile the filter for one scalar expression (a column or an aggregate)."""
    if value is None:
        return expr.is_(None)
    if not isinstance(value, dict):
        return expr == coerce_value(field, kind, value)

    allowed = OPERATORS_BY_KIND[kind]
    for op in value:
        if op not in allowed:
            raise QueryValidationError(field, f"operator '{op}' is not supported for {kind} fields")

    mode = value.get("mode", "default")
    if mode not in ("default", "insensitive"):
        raise QueryValidationError(field, f"unknown mode {mode!r}")
    insensitive = mode == "insensitive"
    target = func.lower(expr) if insensitive else expr

    def operand(raw):
        coerced = coerce_value(field, kind, raw)
        return coerced.lower() if insensitive and isinstance(coerced, str) else coerced

    clauses = []
    for op, raw in value.items():
        if op == "mode":
            continue
        if op == "equals":
            clauses.append(expr.is_(None) if raw is None else target == operand(raw))
        elif op == "in":
            items = _coerce_list(field, kind, raw)
            items = [i.lower() if insensitive and isinstance(i, str) else i for i in items]
            clauses.append(target.in_(items) if items else false())
        elif op == "not_in":
            items = _coerce_list(field, kind, raw)
            items = [i.lower() if insensitive and isinstance(i, str) else i for i in items]
            clauses.append(target.not_in(items) if items else true())
        elif op == "lt":
            clauses.append(target < operand(raw))
        elif op == "lte":
            clauses.append(target <= operand(raw))
        elif op == "gt":
            clauses.append(target > operand(raw))
        elif op == "gte":
            clauses.append(target >= operand(raw))
        elif op == "contains":
            clauses.append(expr.icontains(operand(raw), autoescape=True) if insensitive
                           else expr.contains(operand(raw), autoescape=True))
        elif op == "starts_with":
            clauses.append(expr.istartswith(operand(raw), autoescape=True) if insensitive
                           else expr.startswith(operand(raw), autoescape=True))
        elif op == "ends_with":
            clauses.append(expr.iendswith(operand(raw), autoescape=True) if insensitive
                           else expr.endswith(operand(raw), autoescape=True))
        elif op == "not":
            if raw is None:
                clauses.append(expr.is_not(None))
            elif isinstance(raw, dict):
                nested = dict(raw)
                if insensitive and "mode" not in nested:
                    nested["mode"] = "insensitive"
                clauses.append(not_(compile_scalar_filter(expr, field, kind, nested)))
            else:
                clauses.append(target != operand(raw))
    return and_(*clauses) if clauses else true()


def _as_list(field: str, value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, dict):
        return [value]
    if isinstance(value, (list, tuple)):
        for item in value:
            if not isinstance(item, dict):
                raise QueryValidationError(field, "composite filters take mappings")
        return list(value)
    raise QueryValidationError(field, "composite filters take a mapping or a list of mappings")


def _relation_filter(info: ModelInfo, entity, name: str, value: Any) -> ColumnElement:
    rel = info.relations[name]
    target_info = get_model_info(rel.target)
    local_col = getattr(entity, rel.local_field)

    if not rel.to_many:
        if value is None:
            return local_col.is_(None)
        if not isinstance(value, dict):
            raise QueryValidationError(name, "to-one relation filters take a mapping or None")
        if set(value) & {"is", "is_not"}:
            clauses = []
            for op, inner in value.items():
                if op not in ("is", "is_not"):
                    raise QueryValidationError(name, f"operator '{op}' is not supported for to-one relations")
                if inner is None:
                    clauses.append(local_col.is_(None) if op == "is" else local_col.is_not(None))
                    continue
                exists = _related_exists(rel, target_info, local_col, inner)
                clauses.append(exists if op == "is" else not_(exists))
            return and_(*clauses)
        return _related_exists(rel, target_info, local_col, value)

    if not isinstance(value, dict):
        raise QueryValidationError(name, "to-many relation filters take some/every/none")
    clauses = []
    for op, inner in value.items():
        if op == "some":
            clauses.append(_related_exists(rel, target_info, local_col, inner or {}))
        elif op == "none":
            clauses.append(not_(_related_exists(rel, target_info, local_col, inner or {})))
        elif op == "every":
            clauses.append(not_(_related_exists(rel, target_info, local_col, inner or {}, negate=True)))
        else:
            raise QueryValidationError(name, f"operator '{op}' is not supported for to-many relations")
    return and_(*clauses) if clauses else true()


def _related_exists(rel, target_info: ModelInfo, local_col, inner: Dict[str, Any], negate: bool = False):
    alias = aliased(target_info.model)
    criterion = build_where(target_info, inner, entity=alias)
    if criterion is None:
        criterion = true()
    if negate:
        criterion = not_(criterion)
    return (
        select(getattr(alias, target_info.primary_key))
        .where(getattr(alias, rel.remote_field) == local_col, criterion)
        .exists()
    )


def build_where(info: ModelInfo, where: Optional[Dict[str, Any]], entity=None) -> Optional[ColumnElement]:
    """Compile `where` against `entity` (the model or an alias of it)."""
    if where is None:
        return None
    if not isinstance(where, dict):
        raise QueryValidationError("where", f"expected a mapping for {info.name}", model=info.name)
    entity = entity if entity is not None else info.model

    clauses = []
    for key, value in where.items():
        if key == "AND":
            parts = [build_where(info, part, entity) for part in _as_list(key, value)]
            clauses.append(and_(*[p for p in parts if p is not None]) if parts else true())
        elif key == "OR":
            parts = [build_where(info, part, entity) for part in _as_list(key, value)]
            clauses.append(or_(*[p if p is not None else true() for p in parts]) if parts else false())
        elif key == "NOT":
            parts = [build_where(info, part, entity) for part in _as_list(key, value)]
            clauses.append(and_(*[not_(p) for p in parts if p is not None]) if parts else true())
        elif key in info.fields:
            clauses.append(compile_scalar_filter(getattr(entity, key), key, info.fields[key], value))
        elif key in info.relations:
            clauses.append(_relation_filter(info, entity, key, value))
        elif key in info.compound_keys:
            columns = info.compound_keys[key]
            if not isinstance(value, dict) or set(value) != set(columns):
                raise QueryValidationError(key, f"compound key expects exactly {list(columns)}", model=info.name)
            clauses.extend(
                compile_scalar_filter(getattr(entity, col), col, info.fields[col], value[col]) for col in columns
            )
        else:
            raise QueryValidationError(key, f"unknown argument for {info.name} filter", model=info.name)
    if not clauses:
        return true()
    return and_(*clauses)


def _pins_value(value: Any) -> bool:
    if isinstance(value, dict):
        return set(value) == {"equals"} and value["equals"] is not None
    return value is not None


def unique_key_in(info: ModelInfo, where: Optional[Dict[str, Any]]) -> Optional[str]:
    """Name of the unique key fully pinned by `where`, if any."""
    if not isinstance(where, dict):
        return None
    for name, columns in info.unique_keys.items():
        if len(columns) == 1 and name in where and _pins_value(where[name]):
            return name
        if len(columns) > 1 and isinstance(where.get(name), dict):
            return name
    return None


def build_unique_where(info: ModelInfo, where: Optional[Dict[str, Any]], entity=None) -> ColumnElement:
    """Compile a `where` that must select at most one row through a unique key."""
    if unique_key_in(info, where) is None:
        keys = ", ".join(sorted(info.unique_keys))
        raise QueryValidationError(
            "where", f"{info.name} unique filter needs at least one of: {keys}", model=info.name
        )
    return build_where(info, where, entity)


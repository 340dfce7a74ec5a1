"""group_by: validation of by/order_by/having consistency, then execution.

Every plain field referenced by `order_by` or `having` must be listed in
`by`; the check runs before any SQL is emitted. Aggregate references
(``{"_avg": {"credit_score": "desc"}}`` or
``{"credit_score": {"_avg": {"gt": 90}}}``) only need the field to exist.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, not_, or_, select, true
from sqlalchemy.orm import Session

from ..core.exceptions import QueryValidationError
from .aggregates import (
    AGGREGATE_KEYS,
    aggregate_columns,
    aggregate_function,
    assemble,
    check_aggregate_field,
    parse_aggregates,
)
from .filters import COMPOSITE_KEYS, build_where, compile_scalar_filter
from .model_info import ModelInfo
from .ordering import _parse_direction, normalize_order_by


def _aggregate_kind(info: ModelInfo, group: str, field: str) -> str:
    if group == "_count":
        return "int"
    if group == "_avg":
        return "float"
    return info.fields[field]


def _parse_by(info: ModelInfo, by: Any) -> List[str]:
    fields = [by] if isinstance(by, str) else list(by or [])
    if not fields:
        raise QueryValidationError("by", "group_by needs at least one field", model=info.name)
    for field in fields:
        if field not in info.fields:
            raise QueryValidationError(field, f"unknown field in by for {info.name}", model=info.name)
    return fields


def _check_order_by(info: ModelInfo, by: Sequence[str], order_by: Any) -> None:
    for key, value in normalize_order_by(order_by):
        if key in AGGREGATE_KEYS:
            if not isinstance(value, dict) or not value:
                raise QueryValidationError(key, "aggregate ordering takes {field: 'asc'|'desc'}", model=info.name)
            for field, direction in value.items():
                check_aggregate_field(info, key, field)
                _parse_direction(field, direction)
            continue
        if key not in info.fields:
            raise QueryValidationError(key, f"unknown field in order_by for {info.name}", model=info.name)
        if key not in by:
            raise QueryValidationError(
                key,
                f"Every field used for order_by must be included in the by-arguments of the query ({', '.join(by)})",
                model=info.name,
            )
        _parse_direction(key, value)


def _check_having(info: ModelInfo, by: Sequence[str], having: Any) -> None:
    if having is None:
        return
    if not isinstance(having, dict):
        raise QueryValidationError("having", "expected a mapping", model=info.name)
    for key, value in having.items():
        if key in COMPOSITE_KEYS:
            parts = value if isinstance(value, (list, tuple)) else [value]
            for part in parts:
                _check_having(info, by, part)
            continue
        if key not in info.fields:
            raise QueryValidationError(key, f"unknown field in having for {info.name}", model=info.name)
        plain = not isinstance(value, dict) or any(op not in AGGREGATE_KEYS for op in value)
        if plain and key not in by:
            raise QueryValidationError(
                key,
                f"Every field used in having filters must either be an aggregation filter "
                f"or be included in the by-arguments of the query ({', '.join(by)})",
                model=info.name,
            )
        if isinstance(value, dict):
            for op in value:
                if op in AGGREGATE_KEYS:
                    check_aggregate_field(info, op, key)


def validate_group_by(
    info: ModelInfo,
    *,
    by: Any,
    order_by: Any = None,
    having: Any = None,
    take: Optional[int] = None,
    skip: Optional[int] = None,
    aggregates: Optional[Dict[str, Any]] = None,
) -> List[str]:
    """Run every group_by precondition; returns the normalised `by` list."""
    fields = _parse_by(info, by)
    _check_order_by(info, fields, order_by)
    _check_having(info, fields, having)
    if (take is not None or skip is not None) and not order_by:
        raise QueryValidationError("order_by", "order_by is required when take or skip is used", model=info.name)
    parse_aggregates(info, aggregates or {})
    return fields


def _compile_having(info: ModelInfo, source, having: Dict[str, Any]):
    clauses = []
    for key, value in having.items():
        if key in COMPOSITE_KEYS:
            parts = value if isinstance(value, (list, tuple)) else [value]
            compiled = [_compile_having(info, source, part) for part in parts]
            if key == "AND":
                clauses.append(and_(*compiled) if compiled else true())
            elif key == "OR":
                clauses.append(or_(*compiled) if compiled else not_(true()))
            else:
                clauses.append(and_(*[not_(c) for c in compiled]) if compiled else true())
            continue
        column = source.c[key]
        if isinstance(value, dict):
            plain_ops = {op: v for op, v in value.items() if op not in AGGREGATE_KEYS}
            for group in AGGREGATE_KEYS:
                if group in value:
                    expr = aggregate_function(group, column)
                    kind = _aggregate_kind(info, group, key)
                    clauses.append(compile_scalar_filter(expr, key, kind, value[group]))
            if plain_ops:
                clauses.append(compile_scalar_filter(column, key, info.fields[key], plain_ops))
        else:
            clauses.append(compile_scalar_filter(column, key, info.fields[key], value))
    return and_(*clauses) if clauses else true()


def _order_clauses(info: ModelInfo, source, order_by: Any) -> list:
    clauses = []
    for key, value in normalize_order_by(order_by):
        if key in AGGREGATE_KEYS:
            for field, direction in value.items():
                column = None if field == "_all" else source.c[field]
                expr = aggregate_function(key, column)
                descending, _ = _parse_direction(field, direction)
                clauses.append(expr.desc() if descending else expr.asc())
            continue
        descending, nulls_first = _parse_direction(key, value)
        ordered = source.c[key].desc() if descending else source.c[key].asc()
        if nulls_first is not None:
            ordered = ordered.nulls_first() if nulls_first else ordered.nulls_last()
        clauses.append(ordered)
    return clauses


def run_group_by(
    session: Session,
    info: ModelInfo,
    *,
    by: Any,
    where: Optional[Dict[str, Any]] = None,
    having: Optional[Dict[str, Any]] = None,
    order_by: Any = None,
    take: Optional[int] = None,
    skip: Optional[int] = None,
    aggregates: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    fields = validate_group_by(
        info, by=by, order_by=order_by, having=having, take=take, skip=skip, aggregates=aggregates
    )
    if take is not None and (isinstance(take, bool) or not isinstance(take, int) or take < 0):
        raise QueryValidationError("take", "group_by take must be a non-negative integer", model=info.name)
    specs = parse_aggregates(info, aggregates or {})

    inner = select(info.model)
    criterion = build_where(info, where)
    if criterion is not None:
        inner = inner.where(criterion)
    source = inner.subquery()

    group_cols = [source.c[field] for field in fields]
    stmt = select(*group_cols, *aggregate_columns(specs, source)).group_by(*group_cols)
    if having:
        stmt = stmt.having(_compile_having(info, source, having))
    order = _order_clauses(info, source, order_by)
    if order:
        stmt = stmt.order_by(*order)
    if skip:
        stmt = stmt.offset(skip)
    if take is not None:
        stmt = stmt.limit(take)

    results = []
    for row in session.execute(stmt).all():
        mapping = row._mapping
        record = {field: mapping[field] for field in fields}
        record.update(assemble(specs, row))
        results.append(record)
    return results


__all__ = ["validate_group_by", "run_group_by"]

"""Aggregate groups (`_count`, `_avg`, `_sum`, `_min`, `_max`) shared by aggregate and group_by."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from ..core.exceptions import QueryValidationError
from .model_info import ModelInfo

AGGREGATE_KEYS = ("_count", "_avg", "_sum", "_min", "_max")
NUMERIC_ONLY = ("_avg", "_sum")

# (group, field or None for `_count: True`, label)
AggregateSpec = Tuple[str, Optional[str], str]


def aggregate_function(group: str, column):
    if group == "_count":
        return func.count() if column is None else func.count(column)
    if group == "_avg":
        return func.avg(column)
    if group == "_sum":
        return func.sum(column)
    if group == "_min":
        return func.min(column)
    return func.max(column)


def check_aggregate_field(info: ModelInfo, group: str, field: str) -> None:
    if group == "_count" and field == "_all":
        return
    if field not in info.fields:
        raise QueryValidationError(field, f"unknown field in {group} for {info.name}", model=info.name)
    if group in NUMERIC_ONLY and field not in info.numeric_fields:
        raise QueryValidationError(field, f"{group} only applies to numeric fields", model=info.name)


def parse_aggregates(info: ModelInfo, requested: Dict[str, Any]) -> List[AggregateSpec]:
    """Validate the requested aggregate groups and flatten them into labelled specs."""
    specs: List[AggregateSpec] = []
    for group in AGGREGATE_KEYS:
        value = requested.get(group)
        if value is None or value is False:
            continue
        if group == "_count" and value is True:
            specs.append((group, None, "_count"))
            continue
        if not isinstance(value, dict):
            raise QueryValidationError(group, "expected a mapping of field -> True", model=info.name)
        for field, flag in value.items():
            check_aggregate_field(info, group, field)
            if flag:
                specs.append((group, field, f"{group}__{field}"))
    return specs


def aggregate_columns(specs: List[AggregateSpec], source) -> list:
    """Labelled SQL expressions for `specs` over `source` (a subquery)."""
    columns = []
    for group, field, label in specs:
        column = None if field in (None, "_all") else source.c[field]
        columns.append(aggregate_function(group, column).label(label))
    return columns


def _normalize(group: str, value: Any) -> Any:
    if group == "_count":
        return int(value or 0)
    if value is None:
        return None
    if group == "_avg":
        return float(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def assemble(specs: List[AggregateSpec], row) -> Dict[str, Any]:
    """Fold one result row back into the nested `{group: {field: value}}` shape."""
    out: Dict[str, Any] = {}
    mapping = row._mapping
    for group, field, label in specs:
        value = _normalize(group, mapping[label])
        if field is None:
            out[group] = value
        else:
            out.setdefault(group, {})[field] = value
    return out

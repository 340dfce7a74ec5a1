"""Result shaping: `select`, `include`, `omit` and relation loading.

Records are plain dicts. Relations are loaded with one batched query per
relation and level, never per row.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.exceptions import QueryValidationError
from .filters import build_where
from .model_info import ModelInfo, get_model_info
from .ordering import distinct_rows, parse_distinct, parse_order_by, slice_window, with_tiebreaker

SHAPE_KEYS = ("select", "include", "omit")
TO_MANY_ARGS = {"select", "include", "omit", "where", "order_by", "skip", "take", "distinct"}
TO_ONE_ARGS = {"select", "include", "omit"}


def validate_shape(
    info: ModelInfo,
    select: Optional[Dict[str, Any]] = None,
    include: Optional[Dict[str, Any]] = None,
    omit: Optional[Dict[str, Any]] = None,
    *,
    to_one_only: bool = False,
) -> None:
    """Reject malformed shaping arguments before any query runs."""
    if select is not None and include is not None:
        raise QueryValidationError(
            "include", "Please either use `include` or `select`, but not both at the same time.", model=info.name
        )
    if select is not None and omit is not None:
        raise QueryValidationError(
            "omit", "Please either use `omit` or `select`, but not both at the same time.", model=info.name
        )

    if omit is not None:
        if not isinstance(omit, dict):
            raise QueryValidationError("omit", "expected a mapping of field -> bool", model=info.name)
        for key, flag in omit.items():
            if key not in info.fields:
                raise QueryValidationError(key, f"omit only accepts scalar fields of {info.name}", model=info.name)
            if not isinstance(flag, bool):
                raise QueryValidationError(key, "omit values must be booleans", model=info.name)

    for arg_name, spec in (("select", select), ("include", include)):
        if spec is None:
            continue
        if not isinstance(spec, dict):
            raise QueryValidationError(arg_name, "expected a mapping", model=info.name)
        for key, value in spec.items():
            if key == "_count":
                _validate_count(info, value)
            elif key in info.fields:
                if arg_name == "include":
                    raise QueryValidationError(key, f"include only accepts relations of {info.name}", model=info.name)
                if not isinstance(value, bool):
                    raise QueryValidationError(key, "scalar selections must be booleans", model=info.name)
            elif key in info.relations:
                rel = info.relations[key]
                if to_one_only and rel.to_many:
                    raise QueryValidationError(
                        key, "bulk write results can only include to-one relations", model=info.name
                    )
                validate_relation_args(info, key, value)
            else:
                raise QueryValidationError(key, f"unknown field in {arg_name} for {info.name}", model=info.name)


def validate_relation_args(info: ModelInfo, name: str, value: Any) -> None:
    if isinstance(value, bool):
        return
    if not isinstance(value, dict):
        raise QueryValidationError(name, "relation selections take a bool or a mapping of arguments", model=info.name)
    rel = info.relations[name]
    allowed = TO_MANY_ARGS if rel.to_many else TO_ONE_ARGS
    for key in value:
        if key not in allowed:
            raise QueryValidationError(f"{name}.{key}", "argument not supported for this relation", model=info.name)
    target = get_model_info(rel.target)
    validate_shape(target, value.get("select"), value.get("include"), value.get("omit"))
    if rel.to_many:
        build_where(target, value.get("where"))
        parse_order_by(target, value.get("order_by"))
        parse_distinct(target, value.get("distinct"))


def _count_targets(info: ModelInfo, spec: Any) -> Dict[str, Any]:
    """Resolve a `_count` spec into {relation: relation-args}."""
    if spec is True:
        return {name: {} for name, rel in info.relations.items() if rel.to_many}
    if spec is False or spec is None:
        return {}
    if isinstance(spec, dict) and set(spec) == {"select"} and isinstance(spec["select"], dict):
        targets = {}
        for name, value in spec["select"].items():
            if not value:
                continue
            targets[name] = value if isinstance(value, dict) else {}
        return targets
    raise QueryValidationError("_count", "expected True or {'select': {relation: True}}", model=info.name)


def _validate_count(info: ModelInfo, spec: Any) -> None:
    for name, args in _count_targets(info, spec).items():
        rel = info.relations.get(name)
        if rel is None or not rel.to_many:
            raise QueryValidationError(f"_count.{name}", f"not a to-many relation of {info.name}", model=info.name)
        if set(args) - {"where"}:
            raise QueryValidationError(f"_count.{name}", "relation counts only accept `where`", model=info.name)
        build_where(get_model_info(rel.target), args.get("where"))


def scalar_projection(info: ModelInfo, select: Optional[Dict[str, Any]], omit: Optional[Dict[str, Any]]) -> List[str]:
    if select is not None:
        return [name for name in info.fields if select.get(name) is True]
    omitted = {name for name, flag in (omit or {}).items() if flag}
    return [name for name in info.fields if name not in omitted]


def shape_records(
    session: Session,
    info: ModelInfo,
    instances: Sequence[Any],
    select: Optional[Dict[str, Any]] = None,
    include: Optional[Dict[str, Any]] = None,
    omit: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Turn ORM instances into dicts and attach the requested relations."""
    fields = scalar_projection(info, select, omit)
    records = [{name: getattr(obj, name) for name in fields} for obj in instances]
    if not instances:
        return records

    spec = select if select is not None else (include or {})
    for name, value in spec.items():
        if name in info.relations and value:
            args = value if isinstance(value, dict) else {}
            loaded = load_relation(session, info, name, instances, args)
            for record, related in zip(records, loaded):
                record[name] = related

    count_targets = _count_targets(info, spec.get("_count"))
    if count_targets:
        counts = {name: count_relation(session, info, name, instances, args) for name, args in count_targets.items()}
        for index, record in enumerate(records):
            record["_count"] = {name: counts[name][index] for name in count_targets}
    return records


def load_relation(
    session: Session, info: ModelInfo, name: str, instances: Sequence[Any], args: Dict[str, Any]
) -> List[Any]:
    """Load relation `name` for every instance; result is aligned with `instances`."""
    rel = info.relations[name]
    target = get_model_info(rel.target)
    keys = [getattr(obj, rel.local_field) for obj in instances]
    wanted = {key for key in keys if key is not None}
    if not wanted:
        return [[] if rel.to_many else None for _ in instances]

    remote_col = getattr(target.model, rel.remote_field)
    stmt = select(target.model).where(remote_col.in_(wanted))

    if not rel.to_many:
        rows = session.execute(stmt).scalars().all()
        shaped = shape_records(session, target, rows, args.get("select"), args.get("include"), args.get("omit"))
        by_key = {getattr(row, rel.remote_field): record for row, record in zip(rows, shaped)}
        return [by_key.get(key) if key is not None else None for key in keys]

    criterion = build_where(target, args.get("where"))
    if criterion is not None:
        stmt = stmt.where(criterion)
    terms = with_tiebreaker(target, parse_order_by(target, args.get("order_by")))
    stmt = stmt.order_by(*[term.clause(target.model) for term in terms])
    rows = session.execute(stmt).scalars().all()

    grouped = defaultdict(list)
    for row in rows:
        grouped[getattr(row, rel.remote_field)].append(row)

    distinct_fields = parse_distinct(target, args.get("distinct"))
    skip, take = args.get("skip"), args.get("take")
    windows = {}
    for key, group in grouped.items():
        if distinct_fields:
            group = distinct_rows(group, distinct_fields)
        if take is not None and take < 0:
            window = slice_window(list(reversed(group)), skip, take)
            window.reverse()
        else:
            window = slice_window(group, skip, take)
        windows[key] = window

    flat = [row for window in windows.values() for row in window]
    shaped = shape_records(session, target, flat, args.get("select"), args.get("include"), args.get("omit"))
    shaped_by_id = {id(row): record for row, record in zip(flat, shaped)}
    return [
        [shaped_by_id[id(row)] for row in windows.get(key, [])] if key is not None else []
        for key in keys
    ]


def count_relation(
    session: Session, info: ModelInfo, name: str, instances: Sequence[Any], args: Dict[str, Any]
) -> List[int]:
    rel = info.relations[name]
    target = get_model_info(rel.target)
    keys = [getattr(obj, rel.local_field) for obj in instances]
    remote_col = getattr(target.model, rel.remote_field)
    stmt = (
        select(remote_col, func.count())
        .where(remote_col.in_({key for key in keys if key is not None}))
        .group_by(remote_col)
    )
    criterion = build_where(target, args.get("where"))
    if criterion is not None:
        stmt = stmt.where(criterion)
    counts = dict(session.execute(stmt).all())
    return [counts.get(key, 0) for key in keys]

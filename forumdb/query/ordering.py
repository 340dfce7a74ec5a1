"""Ordering, keyset (cursor) pagination and distinct handling for find queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, false, func, or_, select
from sqlalchemy.orm import Session, aliased

from ..core.exceptions import QueryValidationError
from .filters import build_unique_where, build_where
from .model_info import ModelInfo, RelationInfo, get_model_info

DIRECTIONS = ("asc", "desc")
RELATION_COUNT = "_count"


@dataclass(frozen=True)
class OrderTerm:
    field: str
    descending: bool = False
    # None: asc puts nulls first, desc puts them last
    nulls_first: Optional[bool] = None
    # Set when sorting by a related record: `field` is a scalar of the related
    # model (to-one) or RELATION_COUNT (to-many)
    relation: Optional[RelationInfo] = None

    def reversed(self) -> "OrderTerm":
        return OrderTerm(self.field, not self.descending, not self.effective_nulls_first, self.relation)

    @property
    def effective_nulls_first(self) -> bool:
        if self.nulls_first is None:
            return not self.descending
        return self.nulls_first

    def is_column(self, name: str) -> bool:
        return self.relation is None and self.field == name

    def expression(self, entity):
        if self.relation is None:
            return getattr(entity, self.field)
        rel = self.relation
        alias = aliased(rel.target)
        joined = getattr(alias, rel.remote_field) == getattr(entity, rel.local_field)
        if self.field == RELATION_COUNT:
            return select(func.count()).select_from(alias).where(joined).scalar_subquery()
        return select(getattr(alias, self.field)).where(joined).scalar_subquery()

    def clause(self, entity):
        expression = self.expression(entity)
        ordered = expression.desc() if self.descending else expression.asc()
        return ordered.nulls_first() if self.effective_nulls_first else ordered.nulls_last()


def _parse_direction(field: str, value: Any) -> Tuple[bool, Optional[bool]]:
    if isinstance(value, str):
        if value not in DIRECTIONS:
            raise QueryValidationError(field, f"sort order must be 'asc' or 'desc', got {value!r}")
        return value == "desc", None
    if isinstance(value, dict):
        sort = value.get("sort")
        nulls = value.get("nulls")
        if sort not in DIRECTIONS or set(value) - {"sort", "nulls"}:
            raise QueryValidationError(field, "expected {'sort': 'asc'|'desc', 'nulls': 'first'|'last'}")
        if nulls not in (None, "first", "last"):
            raise QueryValidationError(field, f"nulls must be 'first' or 'last', got {nulls!r}")
        return sort == "desc", None if nulls is None else nulls == "first"
    raise QueryValidationError(field, f"invalid sort order {value!r}")


def normalize_order_by(order_by: Any) -> List[Tuple[str, Any]]:
    """Flatten a mapping or list of mappings into ordered (key, value) pairs."""
    if order_by is None:
        return []
    if isinstance(order_by, dict):
        items = [order_by]
    elif isinstance(order_by, (list, tuple)):
        items = list(order_by)
    else:
        raise QueryValidationError("order_by", "expected a mapping or a list of mappings")
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            raise QueryValidationError("order_by", "expected a mapping or a list of mappings")
        pairs.extend(item.items())
    return pairs


def _relation_terms(info: ModelInfo, name: str, value: Any) -> List[OrderTerm]:
    """`{"comments": {"_count": "desc"}}` or `{"author": {"username": "asc"}}`."""
    rel = info.relations[name]
    if not isinstance(value, dict) or not value:
        raise QueryValidationError(
            name,
            "relations are ordered by {'_count': ...} (to-many) or {'<field>': ...} (to-one)",
            model=info.name,
        )
    target = get_model_info(rel.target)
    terms = []
    for key, direction in value.items():
        path = f"{name}.{key}"
        if rel.to_many and key != RELATION_COUNT:
            raise QueryValidationError(path, f"to-many relation '{name}' can only be ordered by _count", model=info.name)
        if not rel.to_many and key not in target.fields:
            raise QueryValidationError(path, f"{target.name} has no scalar field '{key}' to order by", model=info.name)
        descending, nulls_first = _parse_direction(path, direction)
        terms.append(OrderTerm(key, descending, nulls_first, relation=rel))
    return terms


def parse_order_by(info: ModelInfo, order_by: Any) -> List[OrderTerm]:
    terms = []
    for field, value in normalize_order_by(order_by):
        if field in info.relations:
            terms.extend(_relation_terms(info, field, value))
            continue
        if field not in info.fields:
            raise QueryValidationError(field, f"{info.name} has no field or relation to order by", model=info.name)
        descending, nulls_first = _parse_direction(field, value)
        terms.append(OrderTerm(field, descending, nulls_first))
    return terms


def with_tiebreaker(info: ModelInfo, terms: Sequence[OrderTerm]) -> List[OrderTerm]:
    terms = list(terms)
    if not any(term.is_column(info.primary_key) for term in terms):
        terms.append(OrderTerm(info.primary_key))
    return terms


def _strictly_after(column, term: OrderTerm, value: Any):
    if value is None:
        return column.is_not(None) if term.effective_nulls_first else false()
    after = column < value if term.descending else column > value
    if not term.effective_nulls_first:
        after = or_(after, column.is_(None))
    return after


def cursor_values(session: Session, info: ModelInfo, terms: Sequence[OrderTerm], cursor_row) -> List[Any]:
    """The cursor row's value for each term; relation terms are read back from the database."""
    if all(term.relation is None for term in terms):
        return [getattr(cursor_row, term.field) for term in terms]
    model = info.model
    primary_key = getattr(model, info.primary_key)
    stmt = (
        select(*[term.expression(model) for term in terms])
        .select_from(model)
        .where(primary_key == getattr(cursor_row, info.primary_key))
    )
    return list(session.execute(stmt).one())


def keyset_clause(entity, terms: Sequence[OrderTerm], values: Sequence[Any]) -> Any:
    """Rows at or after the cursor `values` under `terms` (lexicographic comparison)."""
    alternatives = []
    equal_prefix = []
    for term, value in zip(terms, values):
        column = term.expression(entity)
        alternatives.append(and_(*equal_prefix, _strictly_after(column, term, value)))
        equal_prefix.append(column.is_(None) if value is None else column == value)
    alternatives.append(and_(*equal_prefix))
    return or_(*alternatives)


def _check_window(skip: Optional[int], take: Optional[int]):
    if skip is not None and (isinstance(skip, bool) or not isinstance(skip, int) or skip < 0):
        raise QueryValidationError("skip", f"expected a non-negative integer, got {skip!r}")
    if take is not None and (isinstance(take, bool) or not isinstance(take, int)):
        raise QueryValidationError("take", f"expected an integer, got {take!r}")


@dataclass
class FindPlan:
    """A compiled find query; `statement` is None when the cursor row does not exist."""

    statement: Any
    backwards: bool
    terms: List[OrderTerm]


def build_find_statement(
    session: Session,
    info: ModelInfo,
    *,
    where: Optional[Dict[str, Any]] = None,
    order_by: Any = None,
    cursor: Optional[Dict[str, Any]] = None,
    skip: Optional[int] = None,
    take: Optional[int] = None,
    paginate: bool = True,
) -> FindPlan:
    """Compile where/order/cursor/skip/take into a `select(Model)` statement.

    A negative `take` walks backwards from the cursor (or from the end): the
    ordering is flipped here and callers restore it after fetching.
    """
    _check_window(skip, take)
    model = info.model
    terms = with_tiebreaker(info, parse_order_by(info, order_by))
    criterion = build_where(info, where)
    backwards = take is not None and take < 0

    stmt = select(model)
    if criterion is not None:
        stmt = stmt.where(criterion)
    if cursor is not None:
        cursor_clause = build_unique_where(info, cursor)
        cursor_row = session.execute(select(model).where(cursor_clause)).scalars().first()
        if cursor_row is None:
            return FindPlan(None, backwards, terms)
        walk = [term.reversed() for term in terms] if backwards else terms
        stmt = stmt.where(keyset_clause(model, walk, cursor_values(session, info, walk, cursor_row)))

    effective = [term.reversed() for term in terms] if backwards else terms
    stmt = stmt.order_by(*[term.clause(model) for term in effective])
    if paginate:
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(abs(take))
    return FindPlan(stmt, backwards, terms)


def distinct_rows(rows: Sequence[Any], fields: Sequence[str]) -> List[Any]:
    seen = set()
    kept = []
    for row in rows:
        key = tuple(getattr(row, f) for f in fields)
        if key in seen:
            continue
        seen.add(key)
        kept.append(row)
    return kept


def slice_window(rows: List[Any], skip: Optional[int], take: Optional[int]) -> List[Any]:
    """Apply skip/take in memory to rows already in walking order."""
    start = skip or 0
    if take is None:
        return rows[start:]
    return rows[start:start + abs(take)]


def parse_distinct(info: ModelInfo, distinct: Any) -> List[str]:
    if distinct is None:
        return []
    fields = [distinct] if isinstance(distinct, str) else list(distinct)
    for field in fields:
        if field not in info.fields:
            raise QueryValidationError(field, f"{info.name} distinct takes scalar fields", model=info.name)
    return fields


def fetch_rows(
    session: Session,
    info: ModelInfo,
    *,
    where: Optional[Dict[str, Any]] = None,
    order_by: Any = None,
    cursor: Optional[Dict[str, Any]] = None,
    skip: Optional[int] = None,
    take: Optional[int] = None,
    distinct: Any = None,
) -> List[Any]:
    """Run a find query and return ORM instances in the requested order."""
    distinct_fields = parse_distinct(info, distinct)
    plan = build_find_statement(
        session, info, where=where, order_by=order_by, cursor=cursor,
        skip=skip, take=take, paginate=not distinct_fields,
    )
    if plan.statement is None:
        return []
    rows = list(session.execute(plan.statement).scalars().all())
    if distinct_fields:
        # The first row of each group in the requested order survives, whichever way we walk
        if plan.backwards:
            rows = list(reversed(distinct_rows(list(reversed(rows)), distinct_fields)))
        else:
            rows = distinct_rows(rows, distinct_fields)
        rows = slice_window(rows, skip, take)
    if plan.backwards:
        rows.reverse()
    return rows
"""Lazy relation traversal.

    client.post.record({"id": post_id}).author().execute()
    client.category.record({"id": cid}).posts(take=10).order_by({"created_at": "desc"}).execute()

Nothing touches the database until `execute()` (or iteration).
"""

from typing import Any, Dict, Iterator, Optional

RELATION_ARGS = ("where", "order_by", "skip", "take", "distinct", "select", "include", "omit")


class RelationQuery:
    """Immutable builder for one relation of one parent record."""

    def __init__(self, delegate, parent_where: Dict[str, Any], relation: str, args: Optional[Dict[str, Any]] = None):
        self._delegate = delegate
        self._parent_where = parent_where
        self._relation = relation
        self._args = dict(args or {})

    @property
    def relation(self) -> str:
        return self._relation

    @property
    def args(self) -> Dict[str, Any]:
        return dict(self._args)

    def _with(self, key: str, value: Any) -> "RelationQuery":
        args = dict(self._args)
        args[key] = value
        return RelationQuery(self._delegate, self._parent_where, self._relation, args)

    def where(self, where: Dict[str, Any]) -> "RelationQuery":
        return self._with("where", where)

    def order_by(self, order_by: Any) -> "RelationQuery":
        return self._with("order_by", order_by)

    def skip(self, skip: int) -> "RelationQuery":
        return self._with("skip", skip)

    def take(self, take: int) -> "RelationQuery":
        return self._with("take", take)

    def distinct(self, distinct: Any) -> "RelationQuery":
        return self._with("distinct", distinct)

    def select(self, select: Dict[str, Any]) -> "RelationQuery":
        return self._with("select", select)

    def include(self, include: Dict[str, Any]) -> "RelationQuery":
        return self._with("include", include)

    def omit(self, omit: Dict[str, Any]) -> "RelationQuery":
        return self._with("omit", omit)

    def execute(self) -> Any:
        """Run the query: a record or None for to-one relations, a list for to-many."""
        return self._delegate.find_related(where=self._parent_where, relation=self._relation, args=self._args)

    def __iter__(self) -> Iterator[Any]:
        result = self.execute()
        if isinstance(result, list):
            return iter(result)
        return iter([] if result is None else [result])

    def __repr__(self) -> str:
        return f"RelationQuery({self._delegate.name}{self._parent_where!r}.{self._relation}, {self._args!r})"


class RecordRef:
    """Handle on one record, addressed by a unique `where`, for relation traversal."""

    def __init__(self, delegate, where: Dict[str, Any]):
        self._delegate = delegate
        self._where = where

    def fetch(self, **shape) -> Optional[Dict[str, Any]]:
        """The referenced record itself (`select`/`include`/`omit` accepted)."""
        return self._delegate.find_unique(where=self._where, **shape)

    def relation(self, name: str, **args) -> RelationQuery:
        if name not in self._delegate.info.relations:
            raise AttributeError(f"{self._delegate.name} has no relation '{name}'")
        unknown = set(args) - set(RELATION_ARGS)
        if unknown:
            raise TypeError(f"unexpected relation arguments: {', '.join(sorted(unknown))}")
        return RelationQuery(self._delegate, self._where, name, args)

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in self._delegate.info.relations:
            raise AttributeError(f"{self._delegate.name} has no relation '{name}'")

        def accessor(**args) -> RelationQuery:
            return self.relation(name, **args)

        return accessor

    def __repr__(self) -> str:
        return f"RecordRef({self._delegate.name}, {self._where!r})"

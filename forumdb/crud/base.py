"""Generic model delegate: the query interface every entity exposes on the client."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy import and_, delete as sa_delete, false, func, select as sa_select, update as sa_update
from sqlalchemy.orm import Session

from ..core.exceptions import QueryValidationError, RecordNotFoundError
from ..database import Base
from ..operations import PendingOperation
from ..query.aggregates import aggregate_columns, assemble, parse_aggregates
from ..query.filters import build_unique_where, build_where, coerce_value
from ..query.group_by import run_group_by
from ..query.model_info import ModelInfo, get_model_info
from ..query.ordering import build_find_statement, fetch_rows
from ..query.shaping import load_relation, shape_records, validate_relation_args, validate_shape
from ..relations import RecordRef

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

Record = Dict[str, Any]
WriteData = Union[BaseModel, Dict[str, Any]]

ACTIONS = (
	"find_unique",
	"find_unique_or_throw",
	"find_first",
	"find_first_or_throw",
	"find_many",
	"find_related",
	"create",
	"create_many",
	"create_many_and_return",
	"update",
	"update_many",
	"update_many_and_return",
	"upsert",
	"delete",
	"delete_many",
	"count",
	"aggregate",
	"group_by",
)

ATOMIC_OPERATIONS = ("increment", "decrement", "multiply", "divide", "set")


def _atomic_expression(column, kind: str, op: str, operand: Any):
	if op == "increment":
		return column + operand
	if op == "decrement":
		return column - operand
	if op == "multiply":
		return column * operand
	return column // operand if kind == "int" else column / operand


def _check_limit(limit: Optional[int]) -> None:
	if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
		raise QueryValidationError("limit", f"expected a non-negative integer, got {limit!r}")


class ModelDelegate(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
	"""Query interface for one model, bound to a client.

	Public methods only describe the call; the client runs it through the
	middleware chain and a session, then calls back into the matching
	``_<action>`` handler. Results are plain dicts keyed by field name.
	"""

	# Attribute name on the client (``client.user``)
	client_attr: str = ""

	def __init__(
		self,
		client,
		model: Type[ModelType],
		create_schema: Type[CreateSchemaType],
		update_schema: Type[UpdateSchemaType],
	):
		self._client = client
		self.model = model
		self.create_schema = create_schema
		self.update_schema = update_schema
		self.info: ModelInfo = get_model_info(model)

	@property
	def name(self) -> str:
		return self.info.name

	def _run(self, action: str, **args) -> Any:
		args = {key: value for key, value in args.items() if value is not None}
		return self._client._dispatch(self, action, args)

	def _perform(self, session: Session, action: str, args: Dict[str, Any]) -> Any:
		"""Run `action` inside `session`; called by the client at the end of the middleware chain."""
		if action not in ACTIONS:
			raise QueryValidationError("action", f"unknown action '{action}'", model=self.name)
		return getattr(self, f"_{action}")(session, **args)

	# ----- Deferred calls and traversal -----
	def prepare(self, action: str, **kwargs) -> PendingOperation:
		"""Build a call without running it, for `client.transaction([...])`."""
		if action not in ACTIONS:
			raise QueryValidationError("action", f"unknown action '{action}'", model=self.name)
		try:
			inspect.signature(getattr(self, action)).bind(**kwargs)
		except TypeError as exc:
			raise QueryValidationError(action, str(exc), model=self.name) from exc
		return PendingOperation(self, action, kwargs)

	def record(self, where: Dict[str, Any]) -> RecordRef:
		"""Reference one record by a unique `where` to traverse its relations lazily."""
		return RecordRef(self, where)

	# ----- Read -----
	def find_unique(self, *, where, select=None, include=None, omit=None) -> Optional[Record]:
		return self._run("find_unique", where=where, select=select, include=include, omit=omit)

	def find_unique_or_throw(self, *, where, select=None, include=None, omit=None) -> Record:
		return self._run("find_unique_or_throw", where=where, select=select, include=include, omit=omit)

	def find_first(
		self, *, where=None, order_by=None, cursor=None, skip=None, take=None, distinct=None,
		select=None, include=None, omit=None,
	) -> Optional[Record]:
		return self._run(
			"find_first", where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
			distinct=distinct, select=select, include=include, omit=omit,
		)

	def find_first_or_throw(
		self, *, where=None, order_by=None, cursor=None, skip=None, take=None, distinct=None,
		select=None, include=None, omit=None,
	) -> Record:
		return self._run(
			"find_first_or_throw", where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
			distinct=distinct, select=select, include=include, omit=omit,
		)

	def find_many(
		self, *, where=None, order_by=None, cursor=None, skip=None, take=None, distinct=None,
		select=None, include=None, omit=None,
	) -> List[Record]:
		return self._run(
			"find_many", where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
			distinct=distinct, select=select, include=include, omit=omit,
		)

	def find_related(self, *, where, relation: str, args: Optional[Dict[str, Any]] = None) -> Any:
		"""Load one relation of the record matching the unique `where`."""
		return self._run("find_related", where=where, relation=relation, args=args or {})

	def count(self, *, where=None, order_by=None, cursor=None, skip=None, take=None, select=None) -> Union[int, Dict[str, int]]:
		return self._run("count", where=where, order_by=order_by, cursor=cursor, skip=skip, take=take, select=select)

	def aggregate(
		self, *, where=None, order_by=None, cursor=None, skip=None, take=None,
		_count=None, _avg=None, _sum=None, _min=None, _max=None,
	) -> Dict[str, Any]:
		return self._run(
			"aggregate", where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
			_count=_count, _avg=_avg, _sum=_sum, _min=_min, _max=_max,
		)

	def group_by(
		self, *, by, where=None, having=None, order_by=None, skip=None, take=None,
		_count=None, _avg=None, _sum=None, _min=None, _max=None,
	) -> List[Dict[str, Any]]:
		return self._run(
			"group_by", by=by, where=where, having=having, order_by=order_by, skip=skip, take=take,
			_count=_count, _avg=_avg, _sum=_sum, _min=_min, _max=_max,
		)

	# ----- Create -----
	def create(self, *, data: WriteData, select=None, include=None, omit=None) -> Record:
		return self._run("create", data=data, select=select, include=include, omit=omit)

	def create_many(self, *, data: List[WriteData], skip_duplicates: bool = False) -> int:
		return self._run("create_many", data=data, skip_duplicates=skip_duplicates)

	def create_many_and_return(
		self, *, data: List[WriteData], skip_duplicates: bool = False, select=None, include=None, omit=None,
	) -> List[Record]:
		return self._run(
			"create_many_and_return", data=data, skip_duplicates=skip_duplicates,
			select=select, include=include, omit=omit,
		)

	# ----- Update -----
	def update(self, *, where, data: WriteData, select=None, include=None, omit=None) -> Record:
		return self._run("update", where=where, data=data, select=select, include=include, omit=omit)

	def update_many(self, *, data: WriteData, where=None, limit: Optional[int] = None) -> int:
		return self._run("update_many", where=where, data=data, limit=limit)

	def update_many_and_return(
		self, *, data: WriteData, where=None, limit: Optional[int] = None, select=None, include=None, omit=None,
	) -> List[Record]:
		return self._run(
			"update_many_and_return", where=where, data=data, limit=limit,
			select=select, include=include, omit=omit,
		)

	def upsert(self, *, where, create: WriteData, update: WriteData, select=None, include=None, omit=None) -> Record:
		return self._run("upsert", where=where, create=create, update=update, select=select, include=include, omit=omit)

	# ----- Delete -----
	def delete(self, *, where, select=None, include=None, omit=None) -> Record:
		return self._run("delete", where=where, select=select, include=include, omit=omit)

	def delete_many(self, *, where=None, limit: Optional[int] = None) -> int:
		return self._run("delete_many", where=where, limit=limit)

	# ----- Handlers: read -----
	def _shape(self, session: Session, objs, select=None, include=None, omit=None) -> List[Record]:
		return shape_records(session, self.info, objs, select, include, omit)

	def _get_unique(self, session: Session, where, reason: str = "No record found") -> ModelType:
		stmt = sa_select(self.model).where(build_unique_where(self.info, where))
		obj = session.execute(stmt).scalars().first()
		if obj is None:
			raise RecordNotFoundError(self.name, where, reason=reason)
		return obj

	def _find_unique(self, session, *, where, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit)
		stmt = sa_select(self.model).where(build_unique_where(self.info, where))
		obj = session.execute(stmt).scalars().first()
		if obj is None:
			return None
		return self._shape(session, [obj], select, include, omit)[0]

	def _find_unique_or_throw(self, session, *, where, select=None, include=None, omit=None):
		record = self._find_unique(session, where=where, select=select, include=include, omit=omit)
		if record is None:
			raise RecordNotFoundError(self.name, where)
		return record

	def _find_many(
		self, session, *, where=None, order_by=None, cursor=None, skip=None, take=None, distinct=None,
		select=None, include=None, omit=None,
	):
		validate_shape(self.info, select, include, omit)
		rows = fetch_rows(
			session, self.info, where=where, order_by=order_by, cursor=cursor,
			skip=skip, take=take, distinct=distinct,
		)
		return self._shape(session, rows, select, include, omit)

	def _find_first(self, session, *, take=None, **args):
		backwards = isinstance(take, int) and not isinstance(take, bool) and take < 0
		records = self._find_many(session, take=-1 if backwards else 1, **args)
		return records[0] if records else None

	def _find_first_or_throw(self, session, *, where=None, **args):
		record = self._find_first(session, where=where, **args)
		if record is None:
			raise RecordNotFoundError(self.name, where)
		return record

	def _find_related(self, session, *, where, relation, args=None):
		args = args or {}
		if relation not in self.info.relations:
			raise QueryValidationError(relation, f"{self.name} has no relation '{relation}'", model=self.name)
		validate_relation_args(self.info, relation, args)
		stmt = sa_select(self.model).where(build_unique_where(self.info, where))
		parent = session.execute(stmt).scalars().first()
		if parent is None:
			return [] if self.info.relations[relation].to_many else None
		return load_relation(session, self.info, relation, [parent], args)[0]

	def _count(self, session, *, where=None, order_by=None, cursor=None, skip=None, take=None, select=None):
		if select is not None and select is not True:
			if not isinstance(select, dict):
				raise QueryValidationError("select", "count select takes {'_all': True, '<field>': True}", model=self.name)
			for key in select:
				if key != "_all" and key not in self.info.fields:
					raise QueryValidationError(key, f"unknown field in count select for {self.name}", model=self.name)
		plan = build_find_statement(
			session, self.info, where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
		)
		statement = plan.statement if plan.statement is not None else sa_select(self.model).where(false())
		source = statement.subquery()

		if select is None or select is True:
			return int(session.execute(sa_select(func.count()).select_from(source)).scalar_one())
		wanted = [key for key, flag in select.items() if flag]
		columns = [
			(func.count() if key == "_all" else func.count(source.c[key])).label(key) for key in wanted
		]
		if not columns:
			return {}
		row = session.execute(sa_select(*columns).select_from(source)).one()
		return {key: int(row._mapping[key]) for key in wanted}

	def _aggregate(
		self, session, *, where=None, order_by=None, cursor=None, skip=None, take=None,
		_count=None, _avg=None, _sum=None, _min=None, _max=None,
	):
		requested = {"_count": _count, "_avg": _avg, "_sum": _sum, "_min": _min, "_max": _max}
		specs = parse_aggregates(self.info, requested)
		plan = build_find_statement(
			session, self.info, where=where, order_by=order_by, cursor=cursor, skip=skip, take=take,
		)
		if not specs:
			return {}
		statement = plan.statement if plan.statement is not None else sa_select(self.model).where(false())
		source = statement.subquery()
		row = session.execute(sa_select(*aggregate_columns(specs, source))).one()
		return assemble(specs, row)

	def _group_by(
		self, session, *, by, where=None, having=None, order_by=None, skip=None, take=None,
		_count=None, _avg=None, _sum=None, _min=None, _max=None,
	):
		aggregates = {"_count": _count, "_avg": _avg, "_sum": _sum, "_min": _min, "_max": _max}
		return run_group_by(
			session, self.info, by=by, where=where, having=having, order_by=order_by,
			take=take, skip=skip, aggregates=aggregates,
		)

	# ----- Handlers: write data -----
	def _coerce_data(self, data: Any, field: str = "data") -> Dict[str, Any]:
		if isinstance(data, BaseModel):
			return data.model_dump(exclude_unset=True)
		if not isinstance(data, dict):
			raise QueryValidationError(field, "expected a mapping or a pydantic model", model=self.name)
		return dict(data)

	def _validate(self, schema: Type[BaseModel], values: Dict[str, Any]) -> Dict[str, Any]:
		try:
			validated = schema.model_validate(values)
		except ValidationError as exc:
			error = exc.errors()[0]
			field = ".".join(str(part) for part in error["loc"]) or None
			raise QueryValidationError(field, error["msg"], model=self.name) from exc
		out = validated.model_dump(exclude_unset=True)
		for field, value in out.items():
			if value is None and not self.info.nullable.get(field, True):
				raise QueryValidationError(field, "this field cannot be null", model=self.name)
		return out

	def _resolve_relations(self, session: Session, values: Dict[str, Any], *, updating: bool = False) -> None:
		"""Replace `{relation: {"connect": where}}` (and `disconnect` on update) by foreign-key values."""
		for name in [key for key in values if key in self.info.relations]:
			rel = self.info.relations[name]
			op = values.pop(name)
			if not rel.owns_foreign_key:
				raise QueryValidationError(
					name, f"write {rel.target.__name__} rows through their own delegate", model=self.name
				)
			if not isinstance(op, dict) or len(op) != 1:
				raise QueryValidationError(name, "expected {'connect': {...}}", model=self.name)
			if rel.local_field in values:
				raise QueryValidationError(
					name, f"set either '{name}' or '{rel.local_field}', not both", model=self.name
				)
			(kind, arg), = op.items()
			if kind == "connect":
				target = get_model_info(rel.target)
				stmt = sa_select(rel.target).where(build_unique_where(target, arg))
				related = session.execute(stmt).scalars().first()
				if related is None:
					raise RecordNotFoundError(target.name, arg, reason=f"No record to connect as '{name}'")
				values[rel.local_field] = getattr(related, rel.remote_field)
			elif kind == "disconnect" and updating:
				if arg is not True:
					raise QueryValidationError(name, "disconnect takes True", model=self.name)
				if not rel.nullable:
					raise QueryValidationError(name, "a required relation cannot be disconnected", model=self.name)
				values[rel.local_field] = None
			else:
				raise QueryValidationError(name, f"unsupported relation write '{kind}'", model=self.name)

	def _prepare_create(self, session: Session, data: WriteData) -> Dict[str, Any]:
		values = self._coerce_data(data)
		self._resolve_relations(session, values)
		for field, value in list(values.items()):
			if isinstance(value, dict) and set(value) == {"set"}:
				values[field] = value["set"]
		return self._validate(self.create_schema, values)

	def _prepare_update(self, session: Session, data: WriteData) -> Tuple[Dict[str, Any], Dict[str, Tuple[str, Any]]]:
		"""Split update data into validated plain values and atomic number operations."""
		values = self._coerce_data(data)
		self._resolve_relations(session, values, updating=True)
		atomic: Dict[str, Tuple[str, Any]] = {}
		for field, value in list(values.items()):
			if not isinstance(value, dict) or field not in self.info.fields:
				continue
			if len(value) != 1:
				raise QueryValidationError(field, "expected exactly one update operation", model=self.name)
			(op, operand), = value.items()
			if op == "set":
				values[field] = operand
				continue
			kind = self.info.fields[field]
			if op not in ATOMIC_OPERATIONS or kind not in ("int", "float"):
				raise QueryValidationError(field, f"operation '{op}' is not supported for {kind} fields", model=self.name)
			if operand is None:
				raise QueryValidationError(field, f"'{op}' needs a number", model=self.name)
			coerce_value(field, kind, operand)
			if op == "divide" and operand == 0:
				raise QueryValidationError(field, "division by zero", model=self.name)
			atomic[field] = (op, operand)
			del values[field]
		return self._validate(self.update_schema, values), atomic

	# ----- Hooks -----
	def _check_write(self, session: Session, values: Dict[str, Any], existing: Optional[ModelType] = None) -> None:
		"""Cross-row checks before one row is inserted (`existing` is None) or updated."""

	def _check_bulk_update(self, session: Session, ids: List[Any], values: Dict[str, Any]) -> None:
		"""Cross-row checks before `values` is applied to every row in `ids`."""

	# ----- Handlers: create -----
	def _insert(self, session: Session, values: Dict[str, Any]) -> ModelType:
		self._check_write(session, values)
		db_obj = self.model(**values)
		session.add(db_obj)
		session.flush()
		return db_obj

	def _create(self, session, *, data, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit)
		db_obj = self._insert(session, self._prepare_create(session, data))
		return self._shape(session, [db_obj], select, include, omit)[0]

	def _prepare_many(self, session: Session, data: Any) -> List[Dict[str, Any]]:
		if isinstance(data, (dict, BaseModel)):
			data = [data]
		if not isinstance(data, (list, tuple)):
			raise QueryValidationError("data", "expected a list of rows", model=self.name)
		return [self._prepare_create(session, item) for item in data]

	def _drop_duplicates(self, session: Session, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
		"""Drop rows colliding with stored rows or earlier rows of the batch on any unique key."""
		seen = {name: set() for name in self.info.unique_keys}
		kept = []
		for values in rows:
			duplicate = False
			for name, columns in self.info.unique_keys.items():
				if any(values.get(col) is None for col in columns):
					continue
				key = tuple(values[col] for col in columns)
				if key in seen[name]:
					duplicate = True
					break
				criterion = and_(*[getattr(self.model, col) == values[col] for col in columns])
				pk = getattr(self.model, self.info.primary_key)
				if session.execute(sa_select(pk).where(criterion).limit(1)).first() is not None:
					duplicate = True
					break
			if duplicate:
				logger.debug(f"Skipping duplicate {self.name} row {values!r}")
				continue
			for name, columns in self.info.unique_keys.items():
				if all(values.get(col) is not None for col in columns):
					seen[name].add(tuple(values[col] for col in columns))
			kept.append(values)
		return kept

	def _create_rows(self, session: Session, data: Any, skip_duplicates: bool) -> List[ModelType]:
		rows = self._prepare_many(session, data)
		if skip_duplicates:
			rows = self._drop_duplicates(session, rows)
		return [self._insert(session, values) for values in rows]

	def _create_many(self, session, *, data, skip_duplicates=False):
		return len(self._create_rows(session, data, skip_duplicates))

	def _create_many_and_return(self, session, *, data, skip_duplicates=False, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit, to_one_only=True)
		created = self._create_rows(session, data, skip_duplicates)
		return self._shape(session, created, select, include, omit)

	# ----- Handlers: update -----
	def _apply_update(
		self, session: Session, db_obj: ModelType, values: Dict[str, Any], atomic: Dict[str, Tuple[str, Any]]
	) -> ModelType:
		self._check_write(session, values, existing=db_obj)
		for field, value in values.items():
			setattr(db_obj, field, value)
		for field, (op, operand) in atomic.items():
			column = getattr(self.model, field)
			setattr(db_obj, field, _atomic_expression(column, self.info.fields[field], op, operand))
		session.flush()
		return db_obj

	def _update(self, session, *, where, data, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit)
		db_obj = self._get_unique(session, where, reason="Record to update not found")
		values, atomic = self._prepare_update(session, data)
		self._apply_update(session, db_obj, values, atomic)
		return self._shape(session, [db_obj], select, include, omit)[0]

	def _matching_ids(self, session: Session, where, limit: Optional[int]) -> List[Any]:
		_check_limit(limit)
		pk = getattr(self.model, self.info.primary_key)
		stmt = sa_select(pk)
		criterion = build_where(self.info, where)
		if criterion is not None:
			stmt = stmt.where(criterion)
		if limit is not None:
			stmt = stmt.order_by(pk).limit(limit)
		return list(session.execute(stmt).scalars().all())

	def _bulk_update(self, session: Session, where, data, limit) -> List[Any]:
		ids = self._matching_ids(session, where, limit)
		values, atomic = self._prepare_update(session, data)
		if not ids:
			return ids
		self._check_bulk_update(session, ids, values)
		statement_values = dict(values)
		for field, (op, operand) in atomic.items():
			column = getattr(self.model, field)
			statement_values[field] = _atomic_expression(column, self.info.fields[field], op, operand)
		if statement_values:
			pk = getattr(self.model, self.info.primary_key)
			session.execute(sa_update(self.model).where(pk.in_(ids)).values(**statement_values))
		return ids

	def _update_many(self, session, *, data, where=None, limit=None):
		return len(self._bulk_update(session, where, data, limit))

	def _update_many_and_return(self, session, *, data, where=None, limit=None, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit, to_one_only=True)
		ids = self._bulk_update(session, where, data, limit)
		if not ids:
			return []
		pk = getattr(self.model, self.info.primary_key)
		stmt = sa_select(self.model).where(pk.in_(ids)).order_by(pk).execution_options(populate_existing=True)
		rows = session.execute(stmt).scalars().all()
		return self._shape(session, rows, select, include, omit)

	def _upsert(self, session, *, where, create, update, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit)
		stmt = sa_select(self.model).where(build_unique_where(self.info, where))
		db_obj = session.execute(stmt).scalars().first()
		if db_obj is None:
			db_obj = self._insert(session, self._prepare_create(session, create))
		else:
			values, atomic = self._prepare_update(session, update)
			self._apply_update(session, db_obj, values, atomic)
		return self._shape(session, [db_obj], select, include, omit)[0]

	# ----- Handlers: delete -----
	def _delete(self, session, *, where, select=None, include=None, omit=None):
		validate_shape(self.info, select, include, omit)
		db_obj = self._get_unique(session, where, reason="Record to delete does not exist")
		record = self._shape(session, [db_obj], select, include, omit)[0]
		pk = getattr(self.model, self.info.primary_key)
		session.execute(sa_delete(self.model).where(pk == getattr(db_obj, self.info.primary_key)))
		return record

	def _delete_many(self, session, *, where=None, limit=None):
		ids = self._matching_ids(session, where, limit)
		if not ids:
			return 0
		pk = getattr(self.model, self.info.primary_key)
		session.execute(sa_delete(self.model).where(pk.in_(ids)))
		return len(ids)

"""Translate SQLAlchemy driver errors into the forumdb error taxonomy."""

import re
from typing import Optional

from sqlalchemy import exc as sa_exc

from .exceptions import (
    DatabaseConnectionError,
    ForeignKeyConstraintError,
    ForumDBError,
    QueryValidationError,
    TransactionAbortedError,
    UniqueConstraintError,
)

# SQLite: "UNIQUE constraint failed: post_violations.post_id, post_violations.admin_id"
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<cols>.+)")
_SQLITE_NOT_NULL = re.compile(r"NOT NULL constraint failed: (?P<col>\S+)")
# PostgreSQL detail: 'Key (post_id, admin_id)=(..., ...) already exists.'
_PG_KEY = re.compile(r"Key \((?P<cols>[^)]*)\)=")

PG_UNIQUE_VIOLATION = "23505"
PG_FOREIGN_KEY_VIOLATION = "23503"
PG_NOT_NULL_VIOLATION = "23502"


def _strip_table(column: str) -> str:
    return column.strip().split(".")[-1]


def _pgcode(orig) -> Optional[str]:
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _translate_integrity(error: sa_exc.IntegrityError, model: Optional[str]) -> ForumDBError:
    orig = error.orig
    text = str(orig)
    code = _pgcode(orig)

    match = _SQLITE_UNIQUE.search(text)
    if match or code == PG_UNIQUE_VIOLATION:
        if match:
            fields = [_strip_table(col) for col in match.group("cols").split(",")]
        else:
            key = _PG_KEY.search(text)
            fields = [col.strip() for col in key.group("cols").split(",")] if key else []
        return UniqueConstraintError(model, fields, original=error)

    if "FOREIGN KEY constraint failed" in text or code == PG_FOREIGN_KEY_VIOLATION:
        key = _PG_KEY.search(text)
        field = key.group("cols").strip() if key else None
        return ForeignKeyConstraintError(model, field, original=error)

    match = _SQLITE_NOT_NULL.search(text)
    if match or code == PG_NOT_NULL_VIOLATION:
        if match:
            column = _strip_table(match.group("col"))
        else:
            column = getattr(getattr(orig, "diag", None), "column_name", None)
        return QueryValidationError(column, "null value violates a not-null constraint", model=model)

    return ForumDBError(text, model=model)


def translate_db_error(error: Exception, model: Optional[str] = None) -> Optional[ForumDBError]:
    """Map a SQLAlchemy exception onto a ForumDBError, or None if it is not a database error."""
    if isinstance(error, sa_exc.PendingRollbackError):
        err = TransactionAbortedError()
        err.model = model
        return err
    if isinstance(error, sa_exc.IntegrityError):
        return _translate_integrity(error, model)
    if isinstance(error, (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.DisconnectionError)):
        return DatabaseConnectionError(getattr(error, "orig", None) or error, model=model)
    if isinstance(error, sa_exc.TimeoutError):
        return DatabaseConnectionError(error, model=model)
    return None

"""forumdb: typed data access for the forum schema."""

from .client import ForumClient, TransactionClient
from .core.exceptions import (
    ActionNotAllowedError,
    DatabaseConnectionError,
    ForeignKeyConstraintError,
    ForumDBError,
    QueryValidationError,
    RecordNotFoundError,
    TransactionAbortedError,
    TransactionClosedError,
    TransactionError,
    TransactionStartError,
    TransactionTimeoutError,
    UniqueConstraintError,
)
from .database import Base, make_engine
from .middleware import logging_middleware
from .operations import PendingOperation, QueryParams
from .relations import RecordRef, RelationQuery

__all__ = [
    "ForumClient",
    "TransactionClient",
    "QueryParams",
    "PendingOperation",
    "RecordRef",
    "RelationQuery",
    "Base",
    "make_engine",
    "logging_middleware",
    "ForumDBError",
    "ActionNotAllowedError",
    "RecordNotFoundError",
    "UniqueConstraintError",
    "ForeignKeyConstraintError",
    "QueryValidationError",
    "DatabaseConnectionError",
    "TransactionError",
    "TransactionStartError",
    "TransactionTimeoutError",
    "TransactionAbortedError",
    "TransactionClosedError",
]

"""Core module exports."""

from .exceptions import (
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
from .security import get_password_hash, verify_password

__all__ = [
    "ActionNotAllowedError",
    "DatabaseConnectionError",
    "ForeignKeyConstraintError",
    "ForumDBError",
    "QueryValidationError",
    "RecordNotFoundError",
    "TransactionAbortedError",
    "TransactionClosedError",
    "TransactionError",
    "TransactionStartError",
    "TransactionTimeoutError",
    "UniqueConstraintError",
    "get_password_hash",
    "verify_password",
]

"""Exceptions raised by the forum data-access layer."""

from typing import Any, Dict, Optional, Sequence

ERROR_FORMATS = {"pretty", "colorless", "minimal"}


class ForumDBError(Exception):
    """Base exception for every error surfaced by the client.

    `code` identifies the category; `error_format` only changes how the
    message renders (see `render`).
    """

    code = "error"

    def __init__(self, message: str, *, model: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        self.message = message
        self.model = model
        self.meta = meta or {}
        self.action: Optional[str] = None
        self.error_format = "colorless"
        super().__init__(message)

    def render(self, error_format: Optional[str] = None) -> str:
        fmt = error_format or self.error_format
        if fmt == "minimal":
            return f"[{self.code}] {self.message}"
        if fmt == "pretty":
            lines = [f"{type(self).__name__} ({self.code})"]
            if self.model:
                target = f"{self.model}.{self.action}" if self.action else self.model
                lines.append(f"  in: {target}")
            for key, value in self.meta.items():
                lines.append(f"  {key}: {value!r}")
            lines.append(f"  {self.message}")
            return "\n".join(lines)
        if self.model and self.action:
            return f"{self.model}.{self.action}: {self.message}"
        return self.message

    def __str__(self) -> str:
        return self.render()


class RecordNotFoundError(ForumDBError):
    """Raised when an operation requires a record that does not exist."""

    code = "not_found"

    def __init__(self, model: str, where: Any = None, reason: str = "No record found"):
        self.where = where
        super().__init__(f"{reason} for {model} where {where!r}", model=model, meta={"where": where})


class UniqueConstraintError(ForumDBError):
    """Raised when a write collides with a unique or compound-unique key."""

    code = "unique_violation"

    def __init__(self, model: Optional[str], fields: Sequence[str], original: Optional[Exception] = None):
        self.fields = tuple(fields)
        self.original = original
        target = ", ".join(self.fields) or "unknown"
        super().__init__(
            f"Unique constraint failed on the fields: ({target})",
            model=model,
            meta={"target": self.fields},
        )


class ForeignKeyConstraintError(ForumDBError):
    """Raised when a relation target is missing or a restricted parent is deleted."""

    code = "foreign_key_violation"

    def __init__(self, model: Optional[str], field: Optional[str] = None, original: Optional[Exception] = None):
        self.field = field
        self.original = original
        detail = f" on the field: {field}" if field else ""
        super().__init__(f"Foreign key constraint failed{detail}", model=model, meta={"field": field})


class QueryValidationError(ForumDBError):
    """Raised before execution when arguments do not fit the model or the operation."""

    code = "validation"

    def __init__(self, field: Optional[str], reason: str, model: Optional[str] = None):
        self.field = field
        self.reason = reason
        prefix = f"Invalid field reference '{field}': " if field else ""
        super().__init__(f"{prefix}{reason}", model=model, meta={"field": field})


class DatabaseConnectionError(ForumDBError):
    """Raised when the database cannot be reached or the connection breaks."""

    code = "connection"

    def __init__(self, original: Exception, model: Optional[str] = None):
        self.original = original
        super().__init__(f"Can't reach database: {original}", model=model)


class TransactionError(ForumDBError):
    """Base class for interactive transaction failures."""

    code = "transaction"


class TransactionStartError(TransactionError):
    """Raised when a transaction could not start within `max_wait`."""

    def __init__(self, waited_ms: float, max_wait_ms: float):
        self.waited_ms = waited_ms
        self.max_wait_ms = max_wait_ms
        super().__init__(
            f"Unable to start a transaction in the given time ({waited_ms:.0f}ms > max_wait {max_wait_ms}ms)",
            meta={"max_wait": max_wait_ms},
        )


class TransactionTimeoutError(TransactionError):
    """Raised when a transaction outlives its `timeout`."""

    def __init__(self, elapsed_ms: float, timeout_ms: float):
        self.elapsed_ms = elapsed_ms
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Transaction expired after {elapsed_ms:.0f}ms (timeout {timeout_ms}ms); it was rolled back",
            meta={"timeout": timeout_ms},
        )


class TransactionAbortedError(TransactionError):
    """Raised when a transaction is used after one of its statements failed.

    The database has already discarded the work; the transaction can only be
    rolled back.
    """

    def __init__(self, cause: Optional[str] = None):
        detail = f" ({cause})" if cause else ""
        super().__init__(
            f"Transaction aborted by an earlier failed operation{detail}; it will be rolled back",
            meta={"cause": cause} if cause else None,
        )


class TransactionClosedError(TransactionError):
    """Raised when a transaction handle is used after commit or rollback."""

    def __init__(self):
        super().__init__("Transaction already closed: operations must run inside the callback")


class ActionNotAllowedError(ForumDBError):
    """Raised by the forum services when a community rule forbids the action."""

    code = "not_allowed"

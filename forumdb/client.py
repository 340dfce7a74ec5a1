"""Forum client: delegates per entity, middleware chain, sessions and transactions.

    client = ForumClient("sqlite:///./forum.db")
    post = client.post.create(data={...})
    author = client.post.record({"id": post["id"]}).author().execute()

    client.transaction([
        client.user.prepare("update", where={"id": uid}, data={"credit_score": {"decrement": 5}}),
        client.user_inbox.prepare("create", data={...}),
    ])

    def move(tx):
        ...
    client.transaction(move, timeout=2000)
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as CheckoutTimeout
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from . import database
from .config import settings
from .core.db_errors import translate_db_error
from .core.exceptions import (
    ERROR_FORMATS,
    ForumDBError,
    QueryValidationError,
    RecordNotFoundError,
    TransactionAbortedError,
    TransactionClosedError,
    TransactionStartError,
    TransactionTimeoutError,
)
from .crud import DELEGATES
from .crud.category import CategoryDelegate
from .crud.comment import CommentDelegate
from .crud.post import PostDelegate
from .crud.user import UserDelegate
from .crud.user_inbox import UserInboxDelegate
from .crud.violation import CommentViolationDelegate, PostViolationDelegate
from .operations import PendingOperation, QueryParams

logger = logging.getLogger(__name__)

LOG_LEVELS = ("info", "query", "warn", "error")

ISOLATION_LEVELS = {
    "readuncommitted": "READ UNCOMMITTED",
    "readcommitted": "READ COMMITTED",
    "repeatableread": "REPEATABLE READ",
    "serializable": "SERIALIZABLE",
    "snapshot": "SNAPSHOT",
}

Middleware = Callable[[QueryParams, Callable[[QueryParams], Any]], Any]


def configure_log_levels(levels: Sequence[str]) -> None:
    """Map client log levels onto the `forumdb` and `forumdb.query` loggers."""
    levels = [level.lower() for level in levels]
    unknown = set(levels) - set(LOG_LEVELS)
    if unknown:
        raise ValueError(f"Unknown log level(s) {sorted(unknown)}; expected any of {list(LOG_LEVELS)}")

    package_logger = logging.getLogger("forumdb")
    if "info" in levels:
        package_logger.setLevel(logging.INFO)
    elif "warn" in levels:
        package_logger.setLevel(logging.WARNING)
    elif "error" in levels:
        package_logger.setLevel(logging.ERROR)
    else:
        package_logger.setLevel(logging.CRITICAL)
    logging.getLogger("forumdb.query").setLevel(logging.INFO if "query" in levels else logging.WARNING)


def resolve_isolation_level(level: Optional[str]) -> Optional[str]:
    """Accept `ReadCommitted` style names and SQLAlchemy's `READ COMMITTED` spelling."""
    if level is None:
        return None
    key = level.replace(" ", "").replace("_", "").lower()
    if key not in ISOLATION_LEVELS:
        raise QueryValidationError(
            "isolation_level", f"unknown isolation level {level!r}; expected one of {sorted(ISOLATION_LEVELS)}"
        )
    return ISOLATION_LEVELS[key]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _close_late_checkout(future: Future) -> None:
    # A checkout that finished after its deadline goes straight back to the pool
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class _ClientBase:
    """Delegates and the middleware chain shared by clients and transaction clients."""

    user: UserDelegate
    category: CategoryDelegate
    post: PostDelegate
    comment: CommentDelegate
    post_violation: PostViolationDelegate
    comment_violation: CommentViolationDelegate
    user_inbox: UserInboxDelegate

    run_in_transaction = False

    def __init__(self, *, middlewares: Optional[Sequence[Middleware]] = None, error_format: Optional[str] = None):
        error_format = error_format or settings.ERROR_FORMAT
        if error_format not in ERROR_FORMATS:
            raise ValueError(f"Unknown error format {error_format!r}; expected one of {sorted(ERROR_FORMATS)}")
        self.error_format = error_format
        self._middlewares: List[Middleware] = list(middlewares or [])
        self._delegates = {}
        for attr, delegate_cls in DELEGATES.items():
            delegate = delegate_cls(self)
            setattr(self, attr, delegate)
            self._delegates[delegate.name] = delegate

    @property
    def middlewares(self) -> List[Middleware]:
        return list(self._middlewares)

    def _dispatch(self, delegate, action: str, args: Dict[str, Any]) -> Any:
        params = QueryParams(model=delegate.name, action=action, args=args, run_in_transaction=self.run_in_transaction)
        middlewares = self._middlewares

        def call(index: int, current: QueryParams) -> Any:
            if index == len(middlewares):
                return self._execute(current)
            return middlewares[index](current, lambda next_params: call(index + 1, next_params))

        return call(0, params)

    def _execute(self, params: QueryParams) -> Any:
        delegate = self._delegates.get(params.model)
        if delegate is None:
            raise QueryValidationError("model", f"unknown model '{params.model}'")
        try:
            with self._session_scope() as session:
                return delegate._perform(session, params.action, params.args)
        except ForumDBError as err:
            self._report(err, params)
            raise
        except sa_exc.SQLAlchemyError as exc:
            err = translate_db_error(exc, params.model)
            self._statement_failed(err or exc)
            if err is None:
                logger.error(f"{params.model}.{params.action} failed: {exc}")
                raise
            self._report(err, params)
            raise err from exc

    def _statement_failed(self, error: Exception) -> None:
        """Hook for clients that must remember a failed statement."""

    def _report(self, err: ForumDBError, params: QueryParams) -> None:
        err.model = err.model or params.model
        err.action = err.action or params.action
        err.error_format = self.error_format
        if isinstance(err, RecordNotFoundError):
            logger.debug(err.render())
        elif err.code in ("validation", "unique_violation", "foreign_key_violation"):
            logger.warning(err.render())
        else:
            logger.error(err.render())


class TransactionClient(_ClientBase):
    """Client handed to an interactive transaction callback.

    Every operation runs on the transaction's session. There is no nested
    `transaction`; once the transaction commits or rolls back, any further
    call raises TransactionClosedError. After a statement fails at the
    database, further calls (and the commit) raise TransactionAbortedError.
    """

    run_in_transaction = True

    def __init__(
        self,
        parent: "ForumClient",
        session: Session,
        *,
        started: Optional[float] = None,
        timeout_ms: Optional[float] = None,
    ):
        super().__init__(middlewares=parent._middlewares, error_format=parent.error_format)
        self._session = session
        self._started = started if started is not None else time.perf_counter()
        self._timeout_ms = timeout_ms
        self._closed = False
        self._failure: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._failure is not None

    def _statement_failed(self, error: Exception) -> None:
        if self._failure is None:
            self._failure = type(error).__name__

    def _ensure_active(self) -> None:
        if self._closed:
            raise TransactionClosedError()
        if self._timeout_ms is not None:
            elapsed = _elapsed_ms(self._started)
            if elapsed > self._timeout_ms:
                raise TransactionTimeoutError(elapsed, self._timeout_ms)
        if self._failure is not None:
            raise TransactionAbortedError(self._failure)

    def _close(self) -> None:
        self._closed = True

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        self._ensure_active()
        yield self._session


class ForumClient(_ClientBase):
    """Entry point: one delegate per entity (`client.user`, `client.post`, ...)."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        session_factory: Optional[sessionmaker] = None,
        log: Optional[Sequence[str]] = None,
        error_format: Optional[str] = None,
        middlewares: Optional[Sequence[Middleware]] = None,
        max_wait: Optional[float] = None,
        timeout: Optional[float] = None,
        isolation_level: Optional[str] = None,
    ):
        super().__init__(middlewares=middlewares, error_format=error_format)
        self._owns_engine = False
        if session_factory is not None:
            engine = engine or session_factory.kw.get("bind")
        elif engine is None:
            if database_url:
                engine = database.make_engine(database_url)
                self._owns_engine = True
            else:
                engine = database.engine
        self.engine = engine
        self._session_factory = session_factory or sessionmaker(autocommit=False, autoflush=False, bind=engine)

        # Levels live on the shared `forumdb` loggers: only an explicit `log`
        # changes them, and settings fill in while nothing has been configured.
        if log is not None:
            configure_log_levels(log)
        elif logging.getLogger("forumdb").level == logging.NOTSET:
            configure_log_levels(settings.log_levels)

        self.max_wait = max_wait if max_wait is not None else settings.TRANSACTION_MAX_WAIT_MS
        self.timeout = timeout if timeout is not None else settings.TRANSACTION_TIMEOUT_MS
        self.isolation_level = isolation_level or settings.TRANSACTION_ISOLATION_LEVEL
        resolve_isolation_level(self.isolation_level)

    def __enter__(self) -> "ForumClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Dispose of the engine if this client created it."""
        if self._owns_engine and self.engine is not None:
            self.engine.dispose()

    def with_middleware(self, middleware: Middleware) -> "ForumClient":
        """A new client on the same engine with `middleware` appended to the chain."""
        return ForumClient(
            engine=self.engine,
            session_factory=self._session_factory,
            error_format=self.error_format,
            middlewares=self._middlewares + [middleware],
            max_wait=self.max_wait,
            timeout=self.timeout,
            isolation_level=self.isolation_level,
        )

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ----- Transactions -----
    def transaction(
        self,
        operations: Union[Sequence[PendingOperation], Callable[[TransactionClient], Any]],
        *,
        max_wait: Optional[float] = None,
        timeout: Optional[float] = None,
        isolation_level: Optional[str] = None,
    ) -> Any:
        """Run a batch of prepared operations, or a callback, in one transaction.

        A list of PendingOperation runs in order and returns the results in
        order. A callable receives a TransactionClient; its return value is
        returned after commit. Any exception rolls everything back and is
        re-raised unchanged. `max_wait` and `timeout` are milliseconds.
        """
        level = resolve_isolation_level(isolation_level or self.isolation_level)
        if callable(operations):
            return self._run_interactive(
                operations,
                max_wait=self.max_wait if max_wait is None else max_wait,
                timeout=self.timeout if timeout is None else timeout,
                isolation_level=level,
            )
        return self._run_batch(operations, isolation_level=level)

    def _checkout(self, max_wait_ms: Optional[float]) -> Connection:
        """Check a connection out of the engine's pool, giving up after `max_wait_ms`.

        The pool's own `pool_timeout` still applies; whichever deadline comes
        first wins.
        """
        if max_wait_ms is None:
            return self.engine.connect()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forumdb-checkout")
        future = executor.submit(self.engine.connect)
        executor.shutdown(wait=False)
        try:
            return future.result(timeout=max(max_wait_ms, 0) / 1000)
        except CheckoutTimeout:
            future.cancel()
            future.add_done_callback(_close_late_checkout)
            raise

    def _begin(self, isolation_level: Optional[str], max_wait_ms: Optional[float]) -> Tuple[Session, Connection]:
        started = time.perf_counter()
        try:
            connection = self._checkout(max_wait_ms)
        except (CheckoutTimeout, sa_exc.TimeoutError):
            waited = _elapsed_ms(started)
            logger.warning(f"Transaction could not start: no connection after {waited:.0f}ms")
            raise TransactionStartError(waited, max_wait_ms or 0)
        except sa_exc.SQLAlchemyError as exc:
            err = translate_db_error(exc)
            if err is None:
                raise
            err.error_format = self.error_format
            raise err from exc

        waited = _elapsed_ms(started)
        if max_wait_ms is not None and waited > max_wait_ms:
            connection.close()
            raise TransactionStartError(waited, max_wait_ms)
        if isolation_level:
            try:
                connection.execution_options(isolation_level=isolation_level)
            except sa_exc.ArgumentError as exc:
                connection.close()
                raise QueryValidationError("isolation_level", str(exc)) from exc
        return self._session_factory(bind=connection), connection

    def _commit(self, session: Session) -> None:
        try:
            session.commit()
        except sa_exc.SQLAlchemyError as exc:
            err = translate_db_error(exc)
            if err is None:
                raise
            err.error_format = self.error_format
            raise err from exc

    def _run_batch(self, operations: Sequence[PendingOperation], *, isolation_level: Optional[str]) -> List[Any]:
        operations = list(operations)
        for op in operations:
            if not isinstance(op, PendingOperation):
                raise QueryValidationError(
                    "transaction", "batch transactions take operations built with delegate.prepare(...)"
                )
        session, connection = self._begin(isolation_level, None)
        tx = TransactionClient(self, session)
        try:
            results = [op.run_on(tx) for op in operations]
            self._commit(session)
        except Exception:
            session.rollback()
            logger.info(f"Batch transaction rolled back ({len(operations)} operations)")
            raise
        finally:
            tx._close()
            session.close()
            connection.close()
        logger.info(f"Batch transaction committed ({len(operations)} operations)")
        return results

    def _run_interactive(
        self,
        callback: Callable[[TransactionClient], Any],
        *,
        max_wait: Optional[float],
        timeout: Optional[float],
        isolation_level: Optional[str],
    ) -> Any:
        session, connection = self._begin(isolation_level, max_wait)
        tx = TransactionClient(self, session, started=time.perf_counter(), timeout_ms=timeout)
        try:
            result = callback(tx)
            tx._ensure_active()
            self._commit(session)
        except Exception as exc:
            session.rollback()
            logger.info(f"Interactive transaction rolled back: {type(exc).__name__}")
            raise
        finally:
            tx._close()
            session.close()
            connection.close()
        logger.info("Interactive transaction committed")
        return result

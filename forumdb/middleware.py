"""Ready-made middlewares for `ForumClient(middlewares=[...])`.

A middleware is any callable ``(params, call_next) -> result``.
"""

import logging
import time
from typing import Any, Callable, Iterable

from .core.exceptions import QueryValidationError
from .operations import QueryParams

logger = logging.getLogger(__name__)

WRITE_ACTIONS = {
    "create",
    "create_many",
    "create_many_and_return",
    "update",
    "update_many",
    "update_many_and_return",
    "upsert",
    "delete",
    "delete_many",
}


def logging_middleware(params: QueryParams, call_next: Callable[[QueryParams], Any]) -> Any:
    """Log every operation with its duration at INFO."""
    started = time.perf_counter()
    try:
        return call_next(params)
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        scope = " (transaction)" if params.run_in_transaction else ""
        logger.info(f"{params.model}.{params.action}{scope} took {elapsed_ms:.1f}ms")


def read_only_middleware(models: Iterable[str]):
    """Reject write operations on the given models before they reach the database."""
    blocked = set(models)

    def middleware(params: QueryParams, call_next: Callable[[QueryParams], Any]) -> Any:
        if params.model in blocked and params.action in WRITE_ACTIONS:
            raise QueryValidationError("action", f"{params.model} is read-only here", model=params.model)
        return call_next(params)

    return middleware

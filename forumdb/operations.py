"""Operation descriptors passed through the middleware chain and into batch transactions."""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class QueryParams:
    """What a middleware sees for one delegate call.

    Middlewares may rewrite `args` (or return without calling `call_next`);
    the final handler executes whatever `args` holds when it is reached.
    """

    model: str
    action: str
    args: Dict[str, Any] = field(default_factory=dict)
    run_in_transaction: bool = False


class PendingOperation:
    """A delegate call that has been built but not run.

    Created by ``delegate.prepare(action, **kwargs)``. It runs either on its
    own (``execute()``) or as one step of ``client.transaction([...])``.
    """

    def __init__(self, delegate, action: str, args: Dict[str, Any]):
        self.delegate = delegate
        self.action = action
        self.args = args

    @property
    def model(self) -> str:
        return self.delegate.name

    def run_on(self, client) -> Any:
        """Run the call against `client` (usually a transaction client)."""
        target = getattr(client, self.delegate.client_attr)
        return getattr(target, self.action)(**self.args)

    def execute(self) -> Any:
        return getattr(self.delegate, self.action)(**self.args)

    def __repr__(self) -> str:
        return f"PendingOperation({self.model}.{self.action}, {self.args!r})"

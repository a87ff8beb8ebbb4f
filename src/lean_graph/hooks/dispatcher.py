"""
Ordered Approval Hook Dispatcher
================================

A named-event registry that folds a chain of handlers over one shared,
mutable context.

Dispatch Semantics
------------------

::

    context = {result: None} | globals | seed

    for handler in handlers[event]:          (registration order)
        context.result = handler(context, *args)

    return context

Three properties matter to callers:

1. **No short-circuit.** Every handler runs. A later handler can reverse the
   decision of an earlier one, so the last handler in the chain wins.

2. **Seeded defaults.** Callers pre-set `result=True` in the seed. With no
   handlers registered the seed survives untouched, which gives
   default-approve semantics when no policy is installed.

3. **Shared context.** The context object is the same for the whole chain.
   Handlers may mutate any field (notably `state`) and the caller reads the
   mutations back from the returned context.

Handlers may be plain functions or coroutine functions. Handlers of one
dispatch run strictly one after another; dispatches for different events
or different peers can interleave freely on the event loop.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Mapping
from types import SimpleNamespace
from typing import Any

logger = logging.getLogger(__name__)


class HandlerContext(SimpleNamespace):
    """
    Per-dispatch context threaded through one handler chain.

    An attribute bag: well-known fields are `result`, `sender`, `state`,
    `data` and the injected `fail` capability, but callers may seed any
    custom field. `result` always exists and starts as None.
    """

    result: Any

    def __init__(self, **fields: Any) -> None:
        super().__init__(**({"result": None} | fields))


HookHandler = Callable[..., Any | Awaitable[Any]]
"""A handler called as `handler(context, *args)`, sync or async."""


class HookDispatcher:
    """Registry of ordered handler chains keyed by event name."""

    def __init__(self, globals_: Mapping[str, Any] | None = None) -> None:
        """
        Initialize an empty dispatcher.

        Args:
            globals_: Fields injected into every context, below the seed.
        """
        self._globals: dict[str, Any] = dict(globals_ or {})
        self._handlers: defaultdict[str, list[HookHandler]] = defaultdict(list)

    def register(self, event_name: str, handler: HookHandler) -> None:
        """Append a handler to the chain for `event_name`."""
        self._handlers[event_name].append(handler)

    def handlers(self, event_name: str) -> list[HookHandler]:
        """Snapshot of the handlers registered for `event_name`, in order."""
        return list(self._handlers.get(event_name, ()))

    async def dispatch(
        self,
        event_name: str,
        args: Any = (),
        seed: Mapping[str, Any] | None = None,
    ) -> HandlerContext:
        """
        Run the handler chain for an event and return the final context.

        Args:
            event_name: Chain to run.
            args: Positional arguments passed after the context. A value that
                is not a list or tuple is passed as the single argument.
            seed: Per-dispatch fields. Override the injected globals.

        Returns:
            The context after the last handler ran. `result` holds the return
            value of the last handler, or the seeded value if none ran.

        Raises:
            Exception: Whatever a handler raises. The rest of the chain is
                skipped.
        """
        if not isinstance(args, (list, tuple)):
            args = (args,)

        context = HandlerContext(**(self._globals | dict(seed or {})))

        for handler in self.handlers(event_name):
            outcome = handler(context, *args)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            context.result = outcome

        logger.debug("Dispatched %s hooks, result=%r", event_name, context.result)
        return context

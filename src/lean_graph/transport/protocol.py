"""
Transport contract required by the connection graph.

The graph does not own sockets, brokers or serialization. It only needs a
unicast request/response primitive addressed by peer identity, plus the
ability to register inbound request handlers that learn who sent the call.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, NoReturn, Protocol, runtime_checkable

from lean_graph.types import PeerId, RequestFailed


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Context handed to an inbound request handler."""

    sender: PeerId
    """Identity of the peer that issued the request."""

    def fail(self, message: str, *, error_name: str) -> NoReturn:
        """
        Abort the inbound call with a named condition.

        The caller observes this as a RemoteError with the same `error_name`.

        Raises:
            RequestFailed: Always.
        """
        raise RequestFailed(message, error_name=error_name)


RequestHandler = Callable[..., Awaitable[Any]]
"""Inbound handler, called as `await handler(ctx, *payload)`."""


@runtime_checkable
class Transport(Protocol):
    """
    Unicast request/response transport.

    Implementations must raise a TransportError subclass for every failed
    round trip: unknown or unreachable peer, remote handler failure, or a
    transport-level timeout.
    """

    @property
    def peer_id(self) -> PeerId:
        """Stable identity of the local endpoint."""
        ...

    async def request(self, remote: PeerId, channel: str, *payload: Any) -> Any:
        """
        Send a request to `remote` and wait for its response.

        Raises:
            TransportError: If no response could be obtained.
        """
        ...

    def on_request(self, channel: str, handler: RequestHandler) -> None:
        """Register the handler for inbound requests on `channel`."""
        ...

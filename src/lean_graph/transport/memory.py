"""
In-Memory Transport
===================

A process-local request/response broker implementing the Transport contract.

Used by the test suite and by the CLI demo. Every endpoint lives on the same
event loop, so a request is a direct coroutine call into the remote handler,
wrapped to behave like a real network hop:

- Delivery always yields to the event loop, plus optional artificial latency
  on each direction.
- Payloads and responses are deep-copied, emulating serialization. Nothing
  the remote handler receives aliases the caller's objects.
- Handler failures come back as RemoteError, exactly as they would from a
  broker that relays remote exceptions.

Closing an endpoint simulates a crashed process. The endpoint can no longer
send, and requests addressed to it fail with PeerUnreachableError. A request
whose target closes while the request is in flight loses its response.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Final

from lean_graph.types import PeerId, PeerUnreachableError, RemoteError, RequestFailed

from .protocol import RequestContext, RequestHandler

logger = logging.getLogger(__name__)

NO_HANDLER: Final = "no-handler"
"""Error name reported when the remote has no handler for the channel."""

REMOTE_ERROR: Final = "remote-error"
"""Error name reported when the remote handler raised an unexpected exception."""


@dataclass(eq=False)
class MemoryTransport:
    """One endpoint attached to a MemoryNetwork."""

    network: MemoryNetwork = field(repr=False)
    """Broker this endpoint is attached to."""

    _peer_id: PeerId
    """Local identity."""

    _handlers: dict[str, RequestHandler] = field(default_factory=dict)
    """Inbound handlers by channel."""

    closed: bool = False
    """Whether the endpoint has been shut down."""

    @property
    def peer_id(self) -> PeerId:
        """Stable identity of this endpoint."""
        return self._peer_id

    async def request(self, remote: PeerId, channel: str, *payload: Any) -> Any:
        """
        Send a request through the broker.

        Raises:
            PeerUnreachableError: If this endpoint or the remote is closed or unknown.
            RemoteError: If the remote handler failed the call.
        """
        if self.closed:
            raise PeerUnreachableError(remote, "local endpoint is closed")
        return await self.network.deliver(self._peer_id, remote, channel, payload)

    def on_request(self, channel: str, handler: RequestHandler) -> None:
        """Register the inbound handler for `channel`, replacing any previous one."""
        self._handlers[channel] = handler

    def close(self) -> None:
        """Simulate a crash: stop sending and stop answering."""
        self.closed = True
        logger.debug("Memory endpoint %s closed", self._peer_id)


@dataclass
class MemoryNetwork:
    """Broker connecting MemoryTransport endpoints by identity."""

    latency_secs: float = 0.0
    """Artificial one-way delay applied to requests and responses."""

    _endpoints: dict[PeerId, MemoryTransport] = field(default_factory=dict)
    """Attached endpoints by identity."""

    def transport(self, peer_id: PeerId) -> MemoryTransport:
        """
        Attach a new endpoint.

        A closed endpoint may be replaced, which models a process restart.

        Raises:
            ValueError: If a live endpoint already uses `peer_id`.
        """
        existing = self._endpoints.get(peer_id)
        if existing is not None and not existing.closed:
            raise ValueError(f"Endpoint {peer_id!r} is already attached")

        endpoint = MemoryTransport(network=self, _peer_id=peer_id)
        self._endpoints[peer_id] = endpoint
        return endpoint

    def endpoint(self, peer_id: PeerId) -> MemoryTransport | None:
        """Return the endpoint attached under `peer_id`, if any."""
        return self._endpoints.get(peer_id)

    async def deliver(
        self,
        sender: PeerId,
        remote: PeerId,
        channel: str,
        payload: tuple[Any, ...],
    ) -> Any:
        """Carry one request to `remote` and its response back to `sender`."""
        await asyncio.sleep(self.latency_secs)

        target = self._endpoints.get(remote)
        if target is None or target.closed:
            raise PeerUnreachableError(remote)

        handler = target._handlers.get(channel)
        if handler is None:
            raise RemoteError(NO_HANDLER, f"No handler for channel {channel!r}")

        ctx = RequestContext(sender=sender)
        try:
            response = await handler(ctx, *copy.deepcopy(payload))
        except RequestFailed as e:
            raise RemoteError(e.error_name, e.message) from e
        except Exception as e:
            logger.debug("Handler on %s raised for %s: %r", remote, sender, e)
            raise RemoteError(REMOTE_ERROR, str(e)) from e

        await asyncio.sleep(self.latency_secs)

        # The response dies with the process that produced it.
        if target.closed:
            raise PeerUnreachableError(remote, "closed before responding")

        return copy.deepcopy(response)

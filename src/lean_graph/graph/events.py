"""
Passive Topology Notifications
==============================

One-way events fired after a connection was established or torn down.

Observers receive the remote identity only. They cannot veto anything: by the
time a notification fires the peer table has already changed. Approval
belongs to the hooks in `lean_graph.hooks`.

Two ways to observe:

- Listeners: plain callables registered per event name, invoked
  synchronously in registration order at the moment of the transition.
- Streams: async iterators yielding event objects, for consumers that
  prefer to process topology changes in their own task.

::

    node.events.on("disconnect", lambda peer_id: print("lost", peer_id))

    async for event in node.events.stream():
        match event:
            case PeerConnectedEvent(peer_id=peer_id): ...
            case PeerDisconnectedEvent(peer_id=peer_id): ...

Exactly one notification fires per transition. Denied handshakes fire none.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar, Final

from lean_graph.types import PeerId

logger = logging.getLogger(__name__)

CONNECT: Final = "connect"
"""Event name for established connections (also the approval hook name)."""

DISCONNECT: Final = "disconnect"
"""Event name for torn-down connections (also the approval hook name)."""


@dataclass(frozen=True, slots=True)
class PeerConnectedEvent:
    """A connection to `peer_id` was established."""

    kind: ClassVar[str] = CONNECT

    peer_id: PeerId
    """Remote side of the new connection."""


@dataclass(frozen=True, slots=True)
class PeerDisconnectedEvent:
    """
    The connection to `peer_id` was torn down.

    Fired for every teardown path: approved disconnect in either direction,
    local force disconnect, liveness failure, or a force notice from the remote.
    """

    kind: ClassVar[str] = DISCONNECT

    peer_id: PeerId
    """Remote side of the closed connection."""


TopologyEvent = PeerConnectedEvent | PeerDisconnectedEvent
"""Union of all topology events for pattern matching."""

TopologyListener = Callable[[PeerId], object]
"""Synchronous listener receiving the remote identity."""


class TopologyEventStream:
    """Async iterator over topology events, fed by a TopologyEvents hub."""

    def __init__(self, hub: TopologyEvents) -> None:
        self._hub = hub
        self._queue: asyncio.Queue[TopologyEvent | None] = asyncio.Queue()
        self._closed = False

    def __aiter__(self) -> TopologyEventStream:
        return self

    async def __anext__(self) -> TopologyEvent:
        """
        Yield the next topology event.

        Raises:
            StopAsyncIteration: After close() once queued events are drained.
        """
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def push(self, event: TopologyEvent) -> None:
        """Queue an event for the consumer."""
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        """Detach from the hub and end iteration after pending events."""
        if self._closed:
            return
        self._closed = True
        self._hub.detach(self)
        self._queue.put_nowait(None)


class TopologyEvents:
    """Fan-out hub for passive topology notifications."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[TopologyListener]] = defaultdict(list)
        self._streams: list[TopologyEventStream] = []

    def on(self, event_name: str, listener: TopologyListener) -> None:
        """Register a listener for "connect" or "disconnect"."""
        if event_name not in (CONNECT, DISCONNECT):
            raise ValueError(f"Unknown topology event {event_name!r}")
        self._listeners[event_name].append(listener)

    def off(self, event_name: str, listener: TopologyListener) -> None:
        """Remove a previously registered listener. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def stream(self) -> TopologyEventStream:
        """Open a new event stream receiving every event from now on."""
        stream = TopologyEventStream(self)
        self._streams.append(stream)
        return stream

    def detach(self, stream: TopologyEventStream) -> None:
        """Stop feeding `stream`."""
        if stream in self._streams:
            self._streams.remove(stream)

    def emit(self, event: TopologyEvent) -> None:
        """
        Deliver `event` to every listener and stream.

        A failing listener is logged and skipped. It never blocks delivery to
        the others and never undoes the topology change.
        """
        for listener in list(self._listeners.get(event.kind, ())):
            try:
                listener(event.peer_id)
            except Exception:
                logger.exception("Topology listener %r failed on %s", listener, event.kind)

        for stream in list(self._streams):
            stream.push(event)

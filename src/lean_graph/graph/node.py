"""
Graph Node (Connection Manager)
===============================

Owns the peer table of one node and runs the pairwise connection handshake
over an existing request/response transport.

Handshake
---------

Both directions follow the same request/approve pattern::

    requester                               receiver
    ---------                               --------
    connect(remote, data)
        |---- "connect", data ------------>  already connected? -> True
        |                                    else run "connect" hooks
        |                                         on a fresh state
        |<--- approved ---------------------  approved? establish
    approved? establish

    disconnect(remote, data)
        |---- "disconnect", data --------->  not connected? -> True
        |                                    else run "disconnect" hooks
        |                                         on the existing state
        |<--- approved ---------------------  approved? tear down
    approved? tear down

Any error raised by the round trip counts as a transport failure, whatever
its type. A transport failure during connect is a denial. During
disconnect it degrades to a force disconnect: the link is severed locally and
the remote is told, best effort.

Force Disconnect
----------------

`force_disconnect` cannot be refused and never consults hooks. It tears the
connection down locally and fires a "force-disconnect" notice at the remote
without waiting for it. If the notice is lost, the remote notices on its
next liveness probe, which the local side now answers with "not-connected".

Peer State Machine
------------------

Local perspective only. The link is not guaranteed symmetric at every
instant: one side may still hold a connection the other already dropped,
until the next probe reconciles it.

::

    Disconnected --(connect approved, either direction)--> Connected
    Connected --(disconnect approved, either direction)--> Disconnected
    Connected --(force disconnect, liveness failure,
                 force notice from remote)---------------> Disconnected

Denied handshakes are self-loops and fire no notification.

Concurrency
-----------

Everything runs on one event loop, so the peer table has a single writer.
Inbound connect/disconnect requests from the same sender are serialized with
a per-sender lock, so a sender cannot race two handshakes through the hooks.
Pings and force notices are not serialized; both only read or drop the entry.
Outbound requests hold no lock, so two nodes connecting to each other at the
same moment cannot deadlock.

Once `stop` begins the node refuses connections in both directions and keeps
severing links until no peer and no background task remains.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from lean_graph.hooks import HookDispatcher, HookHandler
from lean_graph.transport import RequestContext, Transport
from lean_graph.types import ConnectionState, PeerId, RequestTimeoutError

from .config import GraphConfig
from .events import CONNECT, DISCONNECT, PeerConnectedEvent, PeerDisconnectedEvent, TopologyEvents
from .liveness import liveness_loop
from .messages import NOT_CONNECTED, RequestTag

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class GraphNode:
    """
    Connection manager for one node.

    Attach it to a transport endpoint and it registers itself as the handler
    of the connection sub-protocol on `config.channel`.
    """

    transport: Transport
    """Request/response endpoint of this node."""

    config: GraphConfig = field(default_factory=GraphConfig)
    """Probe period, request bound and channel name."""

    events: TopologyEvents = field(default_factory=TopologyEvents)
    """Passive notifications fired after every topology change."""

    extra: dict[str, Any] = field(default_factory=dict)
    """Free-form slot for collaborators. Never read by the node itself."""

    hooks: HookDispatcher = field(init=False, repr=False)
    """Approval hooks for "connect" and "disconnect"."""

    _peers: dict[PeerId, ConnectionState] = field(default_factory=dict, repr=False)
    """Peer table. Key set is exactly the set of connected peers."""

    _probes: dict[PeerId, asyncio.Task[None]] = field(default_factory=dict, repr=False)
    """One liveness task per peer table entry."""

    _inbound_locks: dict[PeerId, asyncio.Lock] = field(default_factory=dict, repr=False)
    """Serializes inbound handshakes per sender. Only senders with a handshake in flight."""

    _inbound_users: Counter[PeerId] = field(default_factory=Counter, repr=False)
    """Handshakes holding or waiting for each sender's lock."""

    _background_tasks: set[asyncio.Task[None]] = field(default_factory=set, repr=False)
    """Probe tasks and force notices still running. Kept to prevent garbage collection."""

    _stopping: bool = field(default=False, repr=False)
    """Set by stop(). A stopping node neither requests nor approves connections."""

    def __post_init__(self) -> None:
        """Create the hook chain and claim the sub-protocol channel."""
        self.hooks = HookDispatcher({"node": self})
        self.transport.on_request(self.config.channel, self._handle_request)

    @property
    def peer_id(self) -> PeerId:
        """Identity of this node."""
        return self.transport.peer_id

    # =========================================================================
    # Public API
    # =========================================================================

    def on(self, event_name: str, handler: HookHandler) -> None:
        """
        Register an approval hook for "connect" or "disconnect".

        The hook is called as `handler(ctx, data)` when a remote asks this node
        to connect or disconnect. `ctx` carries `result`, `sender`, `state`,
        `data`, `fail` and `node`. The return value becomes the new `result`;
        the last hook in registration order decides.
        """
        self.hooks.register(event_name, handler)

    async def connect(self, remote: PeerId, data: Any = None) -> bool:
        """
        Ask `remote` to connect.

        Returns:
            True if the remote approved. False if it refused, could not be
            reached, or this node is stopping. Never raises for transport
            trouble.
        """
        if self._stopping:
            logger.debug("%s is stopping, not connecting to %s", self.peer_id, remote)
            return False

        logger.debug("%s sending connection request to %s", self.peer_id, remote)

        try:
            approved = bool(await self.request(remote, RequestTag.CONNECT, data))
        except Exception as e:
            logger.debug("%s connection request to %s failed: %r", self.peer_id, remote, e)
            return False

        logger.debug(
            "%s connection request to %s was %s",
            self.peer_id,
            remote,
            "approved" if approved else "denied",
        )
        if approved and self._stopping:
            # Stopped while waiting for the answer; the remote already holds the link.
            await self._send_force_notice(remote)
            return False
        if approved:
            self._establish(remote)
        return approved

    async def disconnect(self, remote: PeerId, data: Any = None) -> bool:
        """
        Ask `remote` to disconnect gracefully.

        Returns:
            True if this node no longer holds a connection to `remote` as a
            result of the call: the remote approved, or the remote could not
            be reached and the link was severed unilaterally. False only if
            the remote refused, in which case the connection is left intact.
        """
        logger.debug("%s sending disconnect request to %s", self.peer_id, remote)

        try:
            approved = bool(await self.request(remote, RequestTag.DISCONNECT, data))
        except Exception as e:
            logger.info(
                "%s could not reach %s for a graceful disconnect, forcing it: %r",
                self.peer_id,
                remote,
                e,
            )
            self.force_disconnect(remote)
            return True

        logger.debug(
            "%s disconnect request to %s was %s",
            self.peer_id,
            remote,
            "approved" if approved else "denied",
        )
        if approved:
            self._teardown(remote)
        return approved

    def force_disconnect(self, remote: PeerId) -> bool:
        """
        Sever the connection to `remote` without asking.

        Returns:
            True if a connection existed and was removed, False if there was
            nothing to remove.
        """
        if remote not in self._peers:
            return False

        # Fire and forget.
        self._spawn_background_task(self._send_force_notice(remote))

        logger.info("%s forcefully disconnected %s", self.peer_id, remote)
        self._teardown(remote)
        return True

    def is_connected(self, remote: PeerId) -> bool:
        """Check whether this node currently holds a connection to `remote`."""
        return remote in self._peers

    @property
    def connections(self) -> list[PeerId]:
        """Snapshot of the identities this node is connected to."""
        return list(self._peers)

    @property
    def states(self) -> dict[PeerId, ConnectionState]:
        """
        Snapshot of the peer table.

        The mapping is a copy but its values are the live ConnectionState
        objects, not copies. Writing into `node.states[peer]` changes the
        state that later hooks for that connection will see.
        """
        return dict(self._peers)

    async def stop(self) -> None:
        """
        Force-disconnect every peer and wait for outstanding background work.

        From the first call on the node refuses every connection in either
        direction. A connect whose approval arrives after stopping began is
        not established, and the remote is told to drop it.
        """
        self._stopping = True

        while self._peers or self._background_tasks:
            for remote in list(self._peers):
                self.force_disconnect(remote)

            tasks = list(self._background_tasks)
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("%s stopped", self.peer_id)

    async def request(self, remote: PeerId, tag: RequestTag, *payload: Any) -> Any:
        """
        Send one sub-protocol request, bounded by the configured timeout.

        Raises:
            TransportError: If the round trip failed or timed out. Transports
                outside this package may raise their own exception types,
                which pass through unchanged.
        """
        timeout = self.config.request_timeout_secs
        try:
            return await asyncio.wait_for(
                self.transport.request(remote, self.config.channel, tag.value, *payload),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise RequestTimeoutError(remote, timeout) from e

    def on_probe_failure(self, remote: PeerId) -> None:
        """React to a failed liveness probe: the connection is considered lost."""
        self.force_disconnect(remote)

    # =========================================================================
    # Inbound Requests
    # =========================================================================

    async def _handle_request(self, ctx: RequestContext, request: Any = None, *args: Any) -> Any:
        """Dispatch an inbound sub-protocol request on its tag."""
        try:
            tag = RequestTag(request)
        except ValueError:
            # Unknown tags are dropped.
            logger.debug("%s dropped unknown request %r from %s", self.peer_id, request, ctx.sender)
            return None

        data = args[0] if args else None

        match tag:
            case RequestTag.PING:
                return self._receive_ping(ctx)
            case RequestTag.CONNECT:
                return await self._receive_connect(ctx, data)
            case RequestTag.DISCONNECT:
                return await self._receive_disconnect(ctx, data)
            case RequestTag.FORCE_DISCONNECT:
                self._receive_force_disconnect(ctx)
                return None

    def _receive_ping(self, ctx: RequestContext) -> bool:
        """Answer a probe only while connected to the sender."""
        logger.debug("%s got pinged by %s", self.peer_id, ctx.sender)
        if ctx.sender not in self._peers:
            ctx.fail("Node is not connected", error_name=NOT_CONNECTED)
        return True

    async def _receive_connect(self, ctx: RequestContext, data: Any) -> bool:
        """Decide on a connection request, consulting the "connect" hooks."""
        remote = ctx.sender
        logger.debug("%s received connection request from %s", self.peer_id, remote)

        if self._stopping:
            return False

        async with self._inbound_turn(remote):
            if remote in self._peers:
                return True

            state: ConnectionState = {}
            context = await self.hooks.dispatch(
                CONNECT,
                (data,),
                {"result": True, "state": state, "sender": remote, "data": data, "fail": ctx.fail},
            )
            approved = bool(context.result) and not self._stopping

            logger.debug(
                "%s %s %s's connection request",
                self.peer_id,
                "approved" if approved else "denied",
                remote,
            )
            if approved:
                self._establish(remote, state)
            return approved

    async def _receive_disconnect(self, ctx: RequestContext, data: Any) -> bool:
        """Decide on a disconnect request, consulting the "disconnect" hooks."""
        remote = ctx.sender
        logger.debug("%s received disconnect request from %s", self.peer_id, remote)

        async with self._inbound_turn(remote):
            state = self._peers.get(remote)
            if state is None:
                return True

            context = await self.hooks.dispatch(
                DISCONNECT,
                (data,),
                {"result": True, "state": state, "sender": remote, "data": data, "fail": ctx.fail},
            )
            approved = bool(context.result)

            logger.debug(
                "%s %s %s's disconnect request",
                self.peer_id,
                "approved" if approved else "denied",
                remote,
            )
            if approved:
                self._teardown(remote)
            return approved

    def _receive_force_disconnect(self, ctx: RequestContext) -> None:
        """Drop the connection to the sender, no questions asked."""
        if self._teardown(ctx.sender):
            logger.info("%s was forcefully disconnected by %s", self.peer_id, ctx.sender)

    # =========================================================================
    # Connection Control
    # =========================================================================

    @asynccontextmanager
    async def _inbound_turn(self, remote: PeerId) -> AsyncIterator[None]:
        """
        Hold the inbound handshake lock for `remote`.

        The lock exists only while some handshake from `remote` holds or
        waits for it. The last one out drops it.
        """
        lock = self._inbound_locks.setdefault(remote, asyncio.Lock())
        self._inbound_users[remote] += 1
        try:
            async with lock:
                yield
        finally:
            self._inbound_users[remote] -= 1
            if not self._inbound_users[remote]:
                del self._inbound_users[remote]
                del self._inbound_locks[remote]

    def _establish(self, remote: PeerId, state: ConnectionState | None = None) -> bool:
        """Insert the peer table entry, start its probe and notify observers."""
        if remote in self._peers:
            return False

        self._peers[remote] = {} if state is None else state
        self._probes[remote] = self._spawn_background_task(liveness_loop(self, remote))

        logger.info("%s connected to %s", self.peer_id, remote)
        self.events.emit(PeerConnectedEvent(peer_id=remote))
        return True

    def _teardown(self, remote: PeerId) -> bool:
        """Drop the peer table entry, stop its probe and notify observers."""
        if remote not in self._peers:
            return False

        del self._peers[remote]

        # The probe may be the caller; it then exits on its own.
        probe = self._probes.pop(remote, None)
        if probe is not None and probe is not asyncio.current_task():
            probe.cancel()

        logger.info("%s disconnected from %s", self.peer_id, remote)
        self.events.emit(PeerDisconnectedEvent(peer_id=remote))
        return True

    async def _send_force_notice(self, remote: PeerId) -> None:
        """Tell `remote` the connection is gone. Failures are expected and ignored."""
        try:
            await self.request(remote, RequestTag.FORCE_DISCONNECT)
        except Exception as e:
            logger.debug("%s force-disconnect notice to %s was lost: %r", self.peer_id, remote, e)

    def _spawn_background_task(self, coro: Coroutine[None, None, None]) -> asyncio.Task[None]:
        """Create a tracked background task with exception logging."""
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_task_done)
        return task

    def _on_background_task_done(self, task: asyncio.Task[None]) -> None:
        """Remove completed task and log any exception."""
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background task failed: %s", task.exception())

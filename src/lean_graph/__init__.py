"""Pairwise connection management for nodes sharing a request/response transport."""

from .graph import GraphConfig, GraphNode, PeerConnectedEvent, PeerDisconnectedEvent
from .hooks import HandlerContext, HookDispatcher
from .transport import MemoryNetwork, MemoryTransport, RequestContext, Transport
from .types import ConnectionState, PeerId

__all__ = [
    "ConnectionState",
    "GraphConfig",
    "GraphNode",
    "HandlerContext",
    "HookDispatcher",
    "MemoryNetwork",
    "MemoryTransport",
    "PeerConnectedEvent",
    "PeerDisconnectedEvent",
    "PeerId",
    "RequestContext",
    "Transport",
]

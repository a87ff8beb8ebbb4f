"""
Connection Graph
================

Pairwise logical connections between named nodes.

Overview
--------

A GraphNode sits on top of an existing request/response transport and
manages direct links to other nodes:

1. **Handshake**: symmetric connect/disconnect that the receiving side can
   veto through approval hooks
2. **State**: one caller-extensible record per active connection
3. **Liveness**: periodic pings that detect peers which vanished silently
4. **Notifications**: passive connect/disconnect events for observers

Only direct links are tracked. There is no routing and no reasoning about
the topology beyond a node's own neighbours.
"""

from .config import DEFAULT_CHANNEL, GraphConfig
from .events import (
    CONNECT,
    DISCONNECT,
    PeerConnectedEvent,
    PeerDisconnectedEvent,
    TopologyEvent,
    TopologyEvents,
    TopologyEventStream,
)
from .messages import NOT_CONNECTED, RequestTag
from .node import GraphNode

__all__ = [
    "CONNECT",
    "DEFAULT_CHANNEL",
    "DISCONNECT",
    "GraphConfig",
    "GraphNode",
    "NOT_CONNECTED",
    "PeerConnectedEvent",
    "PeerDisconnectedEvent",
    "RequestTag",
    "TopologyEvent",
    "TopologyEventStream",
    "TopologyEvents",
]

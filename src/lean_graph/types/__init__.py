"""Core types shared by every layer of the connection graph."""

from typing import Any

from .base import CamelModel, StrictBaseModel
from .exceptions import (
    GraphError,
    PeerUnreachableError,
    RemoteError,
    RequestFailed,
    RequestTimeoutError,
    TransportError,
)

PeerId = str
"""Opaque, stable identity of a node. Used as the peer table key."""

ConnectionState = dict[str, Any]
"""
Caller-extensible record scoped to one active connection.

Created empty when the connection is established and dropped on teardown.
Approval hooks receive the live object, never a copy.
"""

__all__ = [
    "CamelModel",
    "ConnectionState",
    "GraphError",
    "PeerId",
    "PeerUnreachableError",
    "RemoteError",
    "RequestFailed",
    "RequestTimeoutError",
    "StrictBaseModel",
    "TransportError",
]

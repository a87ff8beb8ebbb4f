"""
Transport Layer
===============

The connection graph rides on an existing request/response transport.

This package defines the contract (`Transport`, `RequestContext`) and ships
one implementation, an in-memory broker used for tests and local demos.
Real deployments plug in any transport that satisfies the protocol.
"""

from .memory import NO_HANDLER, REMOTE_ERROR, MemoryNetwork, MemoryTransport
from .protocol import RequestContext, RequestHandler, Transport

__all__ = [
    "MemoryNetwork",
    "MemoryTransport",
    "NO_HANDLER",
    "REMOTE_ERROR",
    "RequestContext",
    "RequestHandler",
    "Transport",
]

"""
Approval Hooks
==============

Pluggable policy for the connect/disconnect handshake.

Hooks registered for "connect" or "disconnect" are consulted by the
receiving node before it agrees to a handshake. Each hook may veto the
request by returning False, or approve it by returning True, and may write
into the per-connection state it receives.
"""

from .dispatcher import HandlerContext, HookDispatcher, HookHandler

__all__ = [
    "HandlerContext",
    "HookDispatcher",
    "HookHandler",
]

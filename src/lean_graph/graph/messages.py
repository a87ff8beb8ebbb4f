"""
Wire vocabulary of the connection sub-protocol.

All requests travel on a single transport channel. The first payload
element is the request tag; the rest depends on the tag:

    tag                 payload         response
    ---------------     -----------     -------------------------------
    ping                none            True, or fails "not-connected"
    connect             opaque data     approval (bool)
    disconnect          opaque data     approval (bool)
    force-disconnect    none            none, sender does not wait
"""

from enum import Enum
from typing import Final


class RequestTag(str, Enum):
    """Request discriminator sent as the first payload element."""

    PING = "ping"
    """Liveness probe."""

    CONNECT = "connect"
    """Ask the remote to approve a new connection."""

    DISCONNECT = "disconnect"
    """Ask the remote to approve a graceful teardown."""

    FORCE_DISCONNECT = "force-disconnect"
    """Tell the remote the connection is gone. Cannot be refused."""


NOT_CONNECTED: Final = "not-connected"
"""Error name a node fails a ping with when it holds no connection to the sender."""

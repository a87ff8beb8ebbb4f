"""
Connection Liveness Probing
===========================

Every established connection owns one background probe task. The task
pings the remote at a fixed period (no backoff, no jitter) for as long as
the connection exists.

Ticks are scheduled against event loop deadlines, not by sleeping a full
interval after each ping, so the round trip does not stretch the period.
A ping that outlasts the interval makes the next one go out immediately;
missed ticks are skipped, never bunched up.

A probe fails when the ping:

1. times out (remote silent or overloaded),
2. is answered with "not-connected" (remote already dropped us), or
3. fails at the transport level (remote unreachable, crashed, or the
   transport raised any other error).

Any failure ends the loop and forces a local disconnect. This is the only
mechanism that notices a peer which vanished without saying goodbye.

The task is cancelled by the node on every other teardown path. When the
probe itself triggers the teardown it is the running task, so the node
skips cancelling it and the loop simply returns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from lean_graph.types import PeerId, RemoteError, TransportError

from .messages import NOT_CONNECTED, RequestTag

if TYPE_CHECKING:
    from .node import GraphNode

logger = logging.getLogger(__name__)


async def liveness_loop(node: GraphNode, remote: PeerId) -> None:
    """Probe `remote` every interval until a ping fails, then force a local disconnect."""
    interval = node.config.ping_interval_secs
    loop = asyncio.get_running_loop()
    deadline = loop.time()

    while True:
        deadline = max(deadline + interval, loop.time())
        await asyncio.sleep(deadline - loop.time())
        if not await probe(node, remote):
            break

    node.on_probe_failure(remote)


async def probe(node: GraphNode, remote: PeerId) -> bool:
    """Send one ping to `remote`. Returns False if the connection is lost."""
    logger.debug("%s pinging %s", node.peer_id, remote)

    try:
        await node.request(remote, RequestTag.PING)
    except RemoteError as e:
        if e.error_name == NOT_CONNECTED:
            logger.info("%s is no longer connected to %s", remote, node.peer_id)
        else:
            logger.warning("%s ping to %s failed: %s", node.peer_id, remote, e)
        return False
    except TransportError as e:
        logger.warning("%s failed to reach %s: %s", node.peer_id, remote, e)
        return False
    except Exception:
        logger.exception("%s ping to %s raised unexpectedly", node.peer_id, remote)
        return False

    return True

"""
Connection graph demo CLI.

Spin up a handful of nodes on the in-memory transport, link them in a chain,
crash the last one and watch liveness probing drop it.

Usage::

    python -m lean_graph
    python -m lean_graph --nodes 5 --latency 0.01 --ping-interval 0.2 -v

Options:
    --nodes           Number of nodes in the chain (default: 3)
    --latency         One-way latency of the in-memory transport, in seconds (default: 0)
    --ping-interval   Liveness probe period, in seconds (default: 1.0)
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from lean_graph.graph import GraphConfig, GraphNode
from lean_graph.transport import MemoryNetwork
from lean_graph.types import PeerId

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        return f"{colored_time} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure root logging with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


async def run_demo(
    node_count: int,
    latency: float = 0.0,
    ping_interval: float = 1.0,
) -> dict[PeerId, list[PeerId]]:
    """
    Run the chain demo and return each surviving node's final connections.

    Args:
        node_count: Number of nodes, at least 2.
        latency: One-way latency of the in-memory transport.
        ping_interval: Liveness probe period.

    Returns:
        Mapping of node identity to its connections after the crash was detected.
        The crashed node is not included.
    """
    if node_count < 2:
        raise ValueError("The demo needs at least 2 nodes")

    network = MemoryNetwork(latency_secs=latency)

    # A request is two hops; leave headroom so latency alone never looks like loss.
    config = GraphConfig(
        ping_interval_secs=ping_interval,
        request_timeout_secs=max(ping_interval, 4 * latency + 0.1),
    )
    nodes = [GraphNode(network.transport(f"node{i}"), config) for i in range(node_count)]

    for left, right in zip(nodes, nodes[1:]):
        approved = await left.connect(right.peer_id, {"greeting": f"hello from {left.peer_id}"})
        logger.info("%s -> %s: %s", left.peer_id, right.peer_id, approved)

    for node in nodes:
        logger.info("%s connections: %s", node.peer_id, sorted(node.connections))

    crashed = nodes[-1]
    endpoint = network.endpoint(crashed.peer_id)
    assert endpoint is not None
    logger.info("Crashing %s", crashed.peer_id)
    endpoint.close()

    # Detection takes at most one period plus one timed-out probe.
    await asyncio.sleep(2 * ping_interval + config.request_timeout_secs)

    survivors = nodes[:-1]
    for node in survivors:
        logger.info("%s connections: %s", node.peer_id, sorted(node.connections))

    result = {node.peer_id: sorted(node.connections) for node in survivors}

    for node in nodes:
        await node.stop()

    return result


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Connection graph demo on the in-memory transport",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--nodes",
        type=int,
        default=3,
        help="Number of nodes in the chain (default: 3)",
    )
    parser.add_argument(
        "--latency",
        type=float,
        default=0.0,
        help="One-way transport latency in seconds (default: 0)",
    )
    parser.add_argument(
        "--ping-interval",
        type=float,
        default=1.0,
        help="Liveness probe period in seconds (default: 1.0)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    args = parser.parse_args(argv)
    if args.nodes < 2:
        parser.error("--nodes must be at least 2")

    setup_logging(args.verbose, args.no_color)

    try:
        asyncio.run(run_demo(args.nodes, args.latency, args.ping_interval))
    except KeyboardInterrupt:
        logger.info("Shutting down...")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

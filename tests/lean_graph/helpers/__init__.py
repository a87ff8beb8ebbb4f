"""Shared helpers for connection graph tests."""

from .network import BreakableTransport, GraphTestNetwork, GraphTestNode, fast_config, wait_until

__all__ = [
    "BreakableTransport",
    "GraphTestNetwork",
    "GraphTestNode",
    "fast_config",
    "wait_until",
]

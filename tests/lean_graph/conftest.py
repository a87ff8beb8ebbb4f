"""
Shared pytest fixtures for connection graph tests.

Provides an in-memory network with automatic teardown and a connected pair.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from tests.lean_graph.helpers import GraphTestNetwork, GraphTestNode


@pytest.fixture
async def network() -> AsyncGenerator[GraphTestNetwork]:
    """Provide a test network with automatic teardown.

    Teardown stops all nodes, cancelling probe tasks. This prevents leaked
    coroutines between tests.
    """
    net = GraphTestNetwork()
    yield net
    await net.stop_all()


@pytest.fixture
def foo_bar(network: GraphTestNetwork) -> tuple[GraphTestNode, GraphTestNode]:
    """Two unconnected nodes named "foo" and "bar"."""
    foo, bar = network.create_nodes("foo", "bar")
    return foo, bar

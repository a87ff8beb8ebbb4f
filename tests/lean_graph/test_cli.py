"""Tests for the demo command line entry point."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from lean_graph.__main__ import main, run_demo


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    """Remove handlers that setup_logging attaches to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


class TestRunDemo:
    """Tests for the chain demo."""

    @pytest.mark.asyncio
    async def test_crashed_tail_is_dropped(self) -> None:
        """Survivors keep their links and forget the crashed node."""
        result = await run_demo(3, ping_interval=0.05)

        assert result == {"node0": ["node1"], "node1": ["node0"]}

    @pytest.mark.asyncio
    async def test_with_latency(self) -> None:
        """Transport latency alone never looks like peer loss."""
        result = await run_demo(4, latency=0.005, ping_interval=0.05)

        assert result == {
            "node0": ["node1"],
            "node1": ["node0", "node2"],
            "node2": ["node1"],
        }

    @pytest.mark.asyncio
    async def test_too_few_nodes(self) -> None:
        """A chain needs at least two nodes."""
        with pytest.raises(ValueError, match="at least 2"):
            await run_demo(1)


class TestMain:
    """Tests for argument handling."""

    def test_rejects_single_node(self) -> None:
        """argparse exits with a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--nodes", "1"])

        assert exc_info.value.code == 2

    @pytest.mark.usefixtures("restore_root_logging")
    def test_runs_to_completion(self) -> None:
        """A short demo run exits cleanly."""
        assert main(["--ping-interval", "0.05", "--no-color"]) == 0

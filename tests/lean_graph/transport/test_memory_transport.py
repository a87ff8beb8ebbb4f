"""Tests for the in-memory request/response transport."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from lean_graph.transport import (
    NO_HANDLER,
    REMOTE_ERROR,
    MemoryNetwork,
    RequestContext,
    Transport,
)
from lean_graph.types import PeerUnreachableError, RemoteError


async def echo(ctx: RequestContext, *payload: Any) -> dict[str, Any]:
    """Handler returning who called and with what."""
    return {"sender": ctx.sender, "payload": list(payload)}


class TestAttach:
    """Tests for endpoint registration."""

    def test_endpoint_satisfies_transport_protocol(self) -> None:
        """MemoryTransport is a structural Transport."""
        endpoint = MemoryNetwork().transport("foo")
        assert isinstance(endpoint, Transport)
        assert endpoint.peer_id == "foo"

    def test_duplicate_identity_rejected(self) -> None:
        """Two live endpoints cannot share an identity."""
        network = MemoryNetwork()
        network.transport("foo")

        with pytest.raises(ValueError, match="already attached"):
            network.transport("foo")

    def test_closed_endpoint_can_be_replaced(self) -> None:
        """A crashed identity may come back as a fresh endpoint."""
        network = MemoryNetwork()
        old = network.transport("foo")
        old.close()

        new = network.transport("foo")

        assert new is not old
        assert network.endpoint("foo") is new


class TestRequest:
    """Tests for request delivery."""

    @pytest.mark.asyncio
    async def test_delivers_payload_and_sender(self) -> None:
        """The remote handler sees the caller identity and the payload."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")
        bar.on_request("chan", echo)

        response = await foo.request("bar", "chan", "connect", {"x": 1})

        assert response == {"sender": "foo", "payload": ["connect", {"x": 1}]}

    @pytest.mark.asyncio
    async def test_payload_is_copied(self) -> None:
        """Mutations on the receiving side never reach the caller's objects."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")

        async def mutate(ctx: RequestContext, data: dict[str, Any]) -> dict[str, Any]:
            data["touched"] = True
            return data

        bar.on_request("chan", mutate)
        sent: dict[str, Any] = {}

        response = await foo.request("bar", "chan", sent)

        assert sent == {}
        assert response == {"touched": True}

    @pytest.mark.asyncio
    async def test_fail_becomes_named_remote_error(self) -> None:
        """ctx.fail on the remote surfaces as RemoteError with the same name."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")

        async def refuse(ctx: RequestContext) -> None:
            ctx.fail("Node is not connected", error_name="not-connected")

        bar.on_request("chan", refuse)

        with pytest.raises(RemoteError) as exc_info:
            await foo.request("bar", "chan")

        assert exc_info.value.error_name == "not-connected"
        assert exc_info.value.detail == "Node is not connected"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_remote_error(self) -> None:
        """Any other handler failure is reported generically."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")

        async def explode(ctx: RequestContext) -> None:
            raise RuntimeError("boom")

        bar.on_request("chan", explode)

        with pytest.raises(RemoteError) as exc_info:
            await foo.request("bar", "chan")

        assert exc_info.value.error_name == REMOTE_ERROR
        assert "boom" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_missing_handler(self) -> None:
        """A channel nobody listens on fails with no-handler."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        network.transport("bar")

        with pytest.raises(RemoteError) as exc_info:
            await foo.request("bar", "chan")

        assert exc_info.value.error_name == NO_HANDLER

    @pytest.mark.asyncio
    async def test_unknown_peer_unreachable(self) -> None:
        """Requests to an identity nobody attached are undeliverable."""
        foo = MemoryNetwork().transport("foo")

        with pytest.raises(PeerUnreachableError) as exc_info:
            await foo.request("ghost", "chan")

        assert exc_info.value.peer_id == "ghost"

    @pytest.mark.asyncio
    async def test_closed_remote_unreachable(self) -> None:
        """A crashed remote cannot be reached."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")
        bar.on_request("chan", echo)
        bar.close()

        with pytest.raises(PeerUnreachableError):
            await foo.request("bar", "chan")

    @pytest.mark.asyncio
    async def test_closed_local_cannot_send(self) -> None:
        """A crashed endpoint cannot send anything."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        network.transport("bar").on_request("chan", echo)
        foo.close()

        with pytest.raises(PeerUnreachableError):
            await foo.request("bar", "chan")

    @pytest.mark.asyncio
    async def test_response_lost_when_remote_closes_mid_request(self) -> None:
        """A remote that dies while handling never delivers its answer."""
        network = MemoryNetwork()
        foo = network.transport("foo")
        bar = network.transport("bar")

        async def die(ctx: RequestContext) -> bool:
            bar.close()
            return True

        bar.on_request("chan", die)

        with pytest.raises(PeerUnreachableError):
            await foo.request("bar", "chan")

    @pytest.mark.asyncio
    async def test_latency_delays_delivery(self) -> None:
        """Configured latency applies to both directions."""
        network = MemoryNetwork(latency_secs=0.02)
        foo = network.transport("foo")
        network.transport("bar").on_request("chan", echo)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await foo.request("bar", "chan")

        assert loop.time() - started >= 0.035

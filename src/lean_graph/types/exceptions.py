"""
Exception hierarchy for the connection graph.

Only two families exist:

- TransportError: the round trip to a remote did not produce a response.
  The graph node absorbs these as denials or as triggers for a unilateral
  teardown. They never reach the caller of the public API.
- RequestFailed: raised inside an inbound request handler to abort the call
  with a named condition. The transport delivers it to the caller as a
  RemoteError carrying the same name.
"""

from __future__ import annotations


class GraphError(Exception):
    """
    Base exception for all connection graph errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class TransportError(GraphError):
    """Base class for failed round trips."""


class PeerUnreachableError(TransportError):
    """
    Raised when a request cannot be delivered to the remote at all.

    Attributes:
        peer_id: The remote that could not be reached.
    """

    def __init__(self, peer_id: str, detail: str | None = None) -> None:
        self.peer_id = peer_id

        msg = f"Peer {peer_id} is unreachable"
        if detail:
            msg = f"{msg}: {detail}"

        super().__init__(msg)


class RequestTimeoutError(TransportError):
    """
    Raised when a request gets no response within the configured bound.

    Attributes:
        peer_id: The remote that did not answer.
        timeout: The bound that expired, in seconds.
    """

    def __init__(self, peer_id: str, timeout: float) -> None:
        self.peer_id = peer_id
        self.timeout = timeout
        super().__init__(f"Request to {peer_id} timed out after {timeout}s")


class RemoteError(TransportError):
    """
    Raised when the remote handler aborted the call.

    Attributes:
        error_name: Machine-readable condition name (e.g. "not-connected").
        detail: Human-readable description sent by the remote.
    """

    def __init__(self, error_name: str, detail: str = "") -> None:
        self.error_name = error_name
        self.detail = detail

        msg = f"Remote failed the request with {error_name!r}"
        if detail:
            msg = f"{msg}: {detail}"

        super().__init__(msg)


class RequestFailed(GraphError):
    """
    Raised by an inbound handler to fail the current call deliberately.

    Attributes:
        error_name: Machine-readable condition name observed by the caller.
    """

    def __init__(self, message: str, *, error_name: str) -> None:
        self.error_name = error_name
        super().__init__(message)

"""Configuration for a connection graph node."""

from typing import Final

from pydantic import Field

from lean_graph.types import StrictBaseModel

DEFAULT_CHANNEL: Final = "lean-graph"
"""Transport channel carrying the connection sub-protocol."""


class GraphConfig(StrictBaseModel):
    """Tunable parameters of a GraphNode."""

    channel: str = DEFAULT_CHANNEL
    """Transport channel for ping/connect/disconnect/force-disconnect requests."""

    ping_interval_secs: float = Field(default=1.0, gt=0)
    """Period of the liveness probe sent to every connected peer."""

    request_timeout_secs: float = Field(default=1.0, gt=0)
    """
    Upper bound on every outbound request, probes included.

    A request that gets no answer within this bound counts as a transport
    failure: a connect is denied, a disconnect degrades to a force
    disconnect, and a probe tears the connection down.
    """

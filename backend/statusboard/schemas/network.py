"""Pydantic schemas for the network status view."""

from typing import Literal

from pydantic import BaseModel

ComponentStatus = Literal["active", "down", "unknown"]


class NetworkStatusResponse(BaseModel):
    """Liveness of the rollup components; "unknown" when a probe failed."""

    sequencer: ComponentStatus = "unknown"
    rpc_endpoint: ComponentStatus = "unknown"
    bundler_endpoint: ComponentStatus = "unknown"

"""Streaming status: wait on a platform channel for an asynchronous result."""

from sfdx_core.status.bayeux import BayeuxClient, CometClient, CometExtension
from sfdx_core.status.streaming_client import (
    StatusResult,
    StreamingClient,
    StreamingConnectionState,
    StreamingOptions,
    StreamingState,
)

__all__ = [
    "BayeuxClient",
    "CometClient",
    "CometExtension",
    "StatusResult",
    "StreamingClient",
    "StreamingConnectionState",
    "StreamingOptions",
    "StreamingState",
]

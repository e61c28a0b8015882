"""Transport and correlation layer for the robot link.

- ConnectionManager: socket lifecycle, feeds bytes to the frame splitter
- MessageRouter: sends each message to a pending request or to subscribers
- RequestCorrelator: send a token, await the matching response or time out
"""

from .connection import ConnectionManager, ConnectionState
from .correlator import RequestCorrelator
from .router import Listener, MessageRouter, PendingRequest

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "RequestCorrelator",
    "MessageRouter",
    "PendingRequest",
    "Listener",
]

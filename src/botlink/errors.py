"""Exception hierarchy for the robot control link.

Connection and timeout errors reach the caller through the awaitable it is
already holding. Parse errors are logged and dropped by the frame splitter.
"""

from __future__ import annotations

from typing import Any


class BotLinkError(Exception):
    """Base class for all botlink errors."""

    pass


class BotConnectionError(BotLinkError, ConnectionError):
    """Socket-level failure before or during establishment, or on write."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ConnectionLostError(BotConnectionError):
    """The connection closed while a request was still outstanding."""

    pass


class NotConnectedError(BotConnectionError):
    """An operation needing a live connection was attempted while disconnected.

    Only raised when the client runs with ``strict=True``.
    """

    pass


class AlreadyConnectedError(BotLinkError):
    """connect() was called while a connection exists or is in flight.

    Only raised when the client runs with ``strict=True``.
    """

    pass


class FrameParseError(BotLinkError, ValueError):
    """A frame extracted from the byte stream could not be decoded."""

    def __init__(self, message: str, raw: bytes | str = b""):
        super().__init__(message)
        self.raw = raw


class RequestTimeoutError(BotLinkError, TimeoutError):
    """No correlated response arrived within the request window."""

    def __init__(self, transaction_id: Any, timeout: float):
        super().__init__(f"Response to {transaction_id} timed out after {timeout:g}s")
        self.transaction_id = transaction_id
        self.timeout = timeout


class DuplicateTransactionError(BotLinkError, ValueError):
    """A request with this transaction id is already pending."""

    def __init__(self, transaction_id: Any):
        super().__init__(f"Transaction {transaction_id} is already pending")
        self.transaction_id = transaction_id

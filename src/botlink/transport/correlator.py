"""Request/response correlation.

send_token() writes a token once and waits for the robot's response with the
same transaction id. The wait ends in exactly one of two ways:

- the router resolves the pending request (response arrived), or
- the deadline timer fires first (RequestTimeoutError).

Whichever runs first removes the pending entry and cancels the other, so a
request can never settle twice. Responses arriving after a timeout find no
entry and are discarded by the router.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import DEFAULT_REQUEST_TIMEOUT
from ..errors import ConnectionLostError, NotConnectedError, RequestTimeoutError
from ..protocol.tokens import Token
from .connection import ConnectionManager
from .router import MessageRouter, PendingRequest

logger = logging.getLogger(__name__)


class RequestCorrelator:
    """Sends tokens and pairs them with their responses."""

    def __init__(
        self,
        connection: ConnectionManager,
        router: MessageRouter,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        strict: bool = False,
    ):
        self._connection = connection
        self._router = router
        self._timeout = timeout
        self._strict = strict
        connection.on_close(self._on_connection_closed)

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a response."""
        return self._router.pending_count

    async def send_token(self, token: Token, timeout: float | None = None) -> Any:
        """Send a token and wait for its correlated response.

        Args:
            token: The token to send
            timeout: Seconds to wait (defaults to the correlator's timeout)

        Returns:
            The response body, or None if not connected (non-strict mode)

        Raises:
            RequestTimeoutError: If no response arrives in time
            DuplicateTransactionError: If the token's id is already pending
            ConnectionLostError: If the link drops while waiting
            NotConnectedError: If not connected (strict mode only)
            BotConnectionError: If the write fails
        """
        if not self._connection.is_connected:
            logger.debug(f"Not connected, not sending {token.type} ({token.transaction_id})")
            if self._strict:
                raise NotConnectedError("Not connected to robot")
            return None

        wait = self._timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        request = PendingRequest(
            transaction_id=token.transaction_id,
            future=loop.create_future(),
            deadline=loop.time() + wait,
        )
        self._router.add_pending(request)
        request.timer = loop.call_at(request.deadline, self._expire, request, wait)

        try:
            logger.debug(f"Sending token: {token.to_json()}")
            await self._connection.write(token.to_bytes())
            return await request.future
        finally:
            # No-op after a response or timeout; cleans up after a failed
            # write or a cancelled caller.
            self._discard(request)

    def fail_all(self, error: BaseException) -> int:
        """Reject every pending request with `error`.

        Returns:
            Number of requests rejected
        """
        count = 0
        for request in self._router.drain_pending():
            if request.reject(error):
                count += 1
        return count

    def _expire(self, request: PendingRequest, timeout: float) -> None:
        if not self._router.remove_pending(request):
            return
        logger.error(
            f"Response from robot {request.transaction_id} timed out after {timeout:g}s"
        )
        request.reject(RequestTimeoutError(request.transaction_id, timeout))

    def _discard(self, request: PendingRequest) -> None:
        if request.timer is not None:
            request.timer.cancel()
        self._router.remove_pending(request)

    def _on_connection_closed(self, had_error: bool) -> None:
        if not self._router.pending_count:
            return
        count = self.fail_all(ConnectionLostError("Connection to robot closed"))
        logger.warning(f"Failed {count} pending requests after disconnect")

"""Message routing.

Each inbound message goes to exactly one place:

1. The pending request whose transaction id it carries, if any
2. Otherwise every listener subscribed to its response type
3. Otherwise nowhere (late responses to timed-out requests end up here)

Request correlation wins when both would match, so a READ_MAG response
tagged MAGDATA resolves the read and does not also fire a magData event.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from ..errors import DuplicateTransactionError
from ..protocol.messages import Message

logger = logging.getLogger(__name__)

# Listener receives the message body; may be sync or async
Listener = Callable[[Any], Any]


@dataclass
class PendingRequest:
    """A sent token waiting for its response."""

    transaction_id: str
    future: asyncio.Future[Any]
    deadline: float
    timer: asyncio.TimerHandle | None = None

    def resolve(self, body: Any) -> bool:
        """Settle with a response body. Returns False if already settled."""
        if self.timer is not None:
            self.timer.cancel()
        if self.future.done():
            return False
        self.future.set_result(body)
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with an error. Returns False if already settled."""
        if self.timer is not None:
            self.timer.cancel()
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True


class MessageRouter:
    """Per-client table of pending requests and stream subscriptions."""

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}
        self._subscriptions: dict[str, list[Listener]] = {}
        self._listener_tasks: set[asyncio.Future[Any]] = set()

    # -------------------------------------------------------------------------
    # Pending requests
    # -------------------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def has_pending(self, transaction_id: Any) -> bool:
        return str(transaction_id) in self._pending

    def add_pending(self, request: PendingRequest) -> None:
        """Register a request.

        Raises:
            DuplicateTransactionError: If the id is already pending
        """
        if request.transaction_id in self._pending:
            raise DuplicateTransactionError(request.transaction_id)
        self._pending[request.transaction_id] = request

    def remove_pending(self, request: PendingRequest) -> bool:
        """Remove this exact request if it is still registered."""
        if self._pending.get(request.transaction_id) is request:
            del self._pending[request.transaction_id]
            return True
        return False

    def drain_pending(self) -> list[PendingRequest]:
        """Remove and return every pending request."""
        requests = list(self._pending.values())
        self._pending.clear()
        return requests

    # -------------------------------------------------------------------------
    # Stream subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, response_type: str, listener: Listener) -> Callable[[], None]:
        """Subscribe to messages with a response-type tag.

        Args:
            response_type: Tag to match (e.g. "MAGDATA")
            listener: Called with the message body, in subscription order

        Returns:
            Unsubscribe function
        """
        key = str(getattr(response_type, "value", response_type))
        self._subscriptions.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._subscriptions.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def subscriber_count(self, response_type: str) -> int:
        key = str(getattr(response_type, "value", response_type))
        return len(self._subscriptions.get(key, []))

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def dispatch(self, message: Message) -> bool:
        """Route one message.

        Sync listeners run before this returns. Async listeners are started
        as tasks so a listener that sends a request of its own never blocks
        the read loop that has to deliver the response.

        Returns:
            True if a pending request or at least one listener claimed it
        """
        transaction_id = message.transaction_id
        if transaction_id is not None:
            request = self._pending.pop(transaction_id, None)
            if request is not None:
                request.resolve(message.body)
                logger.debug(f"Resolved request {transaction_id}")
                return True

        response_type = message.response_type
        # Copy so listeners can unsubscribe while we iterate
        listeners = list(self._subscriptions.get(response_type, [])) if response_type else []
        if not listeners:
            logger.debug(
                f"Discarding unclaimed message (transactionID={transaction_id}, "
                f"responseType={response_type})"
            )
            return False

        for listener in listeners:
            try:
                result = listener(message.body)
            except Exception:
                logger.exception(f"Error in listener for {response_type}")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(partial(self._listener_done, response_type))
        return True

    @property
    def running_listeners(self) -> int:
        return len(self._listener_tasks)

    def cancel_listeners(self) -> int:
        """Cancel every async listener still running. Returns how many."""
        tasks = list(self._listener_tasks)
        for task in tasks:
            task.cancel()
        return len(tasks)

    def _listener_done(self, response_type: str, task: asyncio.Future[Any]) -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in listener for {response_type}", exc_info=error)

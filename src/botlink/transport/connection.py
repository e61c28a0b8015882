"""Socket lifecycle for the robot link.

Owns the single TCP connection: opening it, reading bytes into the frame
splitter, writing tokens, and noticing when it goes away. Closing can happen
at any time (robot reboots, cable pulled); close listeners let higher layers
react.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from ..errors import AlreadyConnectedError, BotConnectionError, NotConnectedError
from ..protocol.framing import FrameSplitter
from ..protocol.messages import Message

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Awaitable[Any]]
CloseListener = Callable[[bool], Any]


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Single streaming connection to the robot.

    Transitions:
        DISCONNECTED --connect ok--> CONNECTED
        DISCONNECTED --connect fails--> DISCONNECTED
        CONNECTED --close/error--> DISCONNECTED

    CONNECTING only exists while a connect() is in flight and rejects any
    concurrent connect().
    """

    def __init__(
        self,
        splitter: FrameSplitter,
        on_message: MessageHandler,
        read_size: int = 4096,
        connect_timeout: float = 10.0,
        strict: bool = False,
    ):
        self._splitter = splitter
        self._on_message = on_message
        self._read_size = read_size
        self._connect_timeout = connect_timeout
        self._strict = strict

        self._state = ConnectionState.DISCONNECTED
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._closed: asyncio.Future[bool] | None = None
        self._close_listeners: list[CloseListener] = []
        self._peer: tuple[str, int] | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def peer(self) -> tuple[str, int] | None:
        """(host, port) of the current connection, if any."""
        return self._peer

    def on_close(self, listener: CloseListener) -> Callable[[], None]:
        """Register a listener called with `had_error` whenever the link drops.

        Returns:
            Unregister function
        """
        self._close_listeners.append(listener)

        def remove() -> None:
            if listener in self._close_listeners:
                self._close_listeners.remove(listener)

        return remove

    async def connect(self, host: str, port: int) -> None:
        """Open the connection.

        Ignored (with a warning) if a connection exists or is in flight,
        unless running in strict mode.

        Raises:
            BotConnectionError: If the socket cannot be opened
            AlreadyConnectedError: In strict mode, if already connecting/connected
        """
        if self._state == ConnectionState.CONNECTING:
            logger.warning("Still connecting")
            if self._strict:
                raise AlreadyConnectedError("A connection attempt is already in flight")
            return
        if self._state == ConnectionState.CONNECTED:
            logger.warning("Already connected")
            if self._strict:
                raise AlreadyConnectedError(f"Already connected to {self._peer}")
            return

        self._state = ConnectionState.CONNECTING
        logger.info(f"Connecting to robot at {host}:{port}")

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self._connect_timeout,
            )
        except (OSError, TimeoutError) as e:
            self._state = ConnectionState.DISCONNECTED
            logger.error(f"Connection error: {e!r}")
            raise BotConnectionError(f"Failed to connect to {host}:{port}: {e!r}", cause=e) from e
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise

        self._splitter.reset()
        self._writer = writer
        self._peer = (host, port)
        self._closed = asyncio.get_running_loop().create_future()
        self._state = ConnectionState.CONNECTED
        self._reader_task = asyncio.create_task(self._read_loop(reader))
        logger.info("Connected")

    async def disconnect(self) -> bool:
        """Close the connection and wait until it is gone.

        Safe to call in any state.

        Returns:
            True if the connection ended with an error
        """
        if self._state != ConnectionState.CONNECTED or self._writer is None:
            logger.warning("Not connected to anything")
            return False

        writer = self._writer
        closed = self._closed
        writer.close()
        had_error = await asyncio.shield(closed) if closed is not None else False
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing socket: {e!r}")
        return had_error

    async def write(self, data: bytes) -> None:
        """Write bytes to the robot.

        Raises:
            NotConnectedError: If there is no live connection
            BotConnectionError: If the write fails
        """
        if self._state != ConnectionState.CONNECTED or self._writer is None:
            raise NotConnectedError("Not connected to robot")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            raise BotConnectionError(f"Write failed: {e!r}", cause=e) from e

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        """Background task forwarding bytes to the splitter and router."""
        had_error = False
        try:
            while True:
                data = await reader.read(self._read_size)
                if not data:
                    # EOF - robot or we closed the socket
                    break
                for message in self._splitter.feed(data):
                    await self._on_message(message)
        except OSError as e:
            had_error = True
            logger.error(f"Connection error: {e!r}")
        except Exception:
            had_error = True
            logger.exception("Read loop error")
        finally:
            self._handle_close(had_error)

    def _handle_close(self, had_error: bool) -> None:
        if had_error:
            logger.warning("Disconnected with error")
        else:
            logger.info("Disconnected")

        writer = self._writer
        closed = self._closed

        self._state = ConnectionState.DISCONNECTED
        self._writer = None
        self._reader_task = None
        self._closed = None
        self._peer = None

        if writer is not None and not writer.is_closing():
            writer.close()
        if closed is not None and not closed.done():
            closed.set_result(had_error)

        for listener in list(self._close_listeners):
            try:
                listener(had_error)
            except Exception:
                logger.exception("Error in close listener")

"""Robot client.

Public surface for talking to the robot: one async method per command, each
returning the body of the robot's response, plus streaming telemetry events.

Usage:
    async with BotClient(ClientConfig(host="192.168.0.10", port=8080)) as bot:
        bot.on("magData", lambda data: print(data["heading"]))
        await bot.start_mag_stream(100)
        print(await bot.read_pi_temp())
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from ..config import ClientConfig
from ..protocol.framing import FrameSplitter
from ..protocol.messages import ResponseType
from ..protocol.tokens import Token
from ..transport.connection import CloseListener, ConnectionManager, ConnectionState
from ..transport.correlator import RequestCorrelator
from ..transport.router import Listener, MessageRouter

logger = logging.getLogger(__name__)

# Streaming event name -> response-type tag
STREAM_EVENTS: dict[str, ResponseType] = {
    "magData": ResponseType.MAGDATA,
    "piTempData": ResponseType.PITEMPDATA,
    "motorData": ResponseType.MOTORDATA,
}


class BotClient:
    """Client for one robot over one connection.

    Each client has its own router, so pending requests and subscriptions
    never leak between clients.
    """

    def __init__(self, config: ClientConfig | None = None):
        self.config = config or ClientConfig()
        self._router = MessageRouter()
        self._connection = ConnectionManager(
            FrameSplitter(max_frame_bytes=self.config.max_frame_bytes),
            on_message=self._router.dispatch,
            read_size=self.config.read_size,
            connect_timeout=self.config.connect_timeout,
            strict=self.config.strict,
        )
        self._correlator = RequestCorrelator(
            self._connection,
            self._router,
            timeout=self.config.request_timeout,
            strict=self.config.strict,
        )
        self._connection.on_close(self._cancel_listeners)

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def pending_count(self) -> int:
        return self._correlator.pending_count

    async def connect(self, host: str | None = None, port: int | None = None) -> None:
        """Connect to the robot (defaults come from the config)."""
        await self._connection.connect(
            host if host is not None else self.config.host,
            port if port is not None else self.config.port,
        )

    async def disconnect(self) -> bool:
        """Disconnect; returns True if the connection ended with an error."""
        return await self._connection.disconnect()

    def on_close(self, listener: CloseListener) -> Callable[[], None]:
        """Call `listener(had_error)` whenever the connection drops."""
        return self._connection.on_close(listener)

    def _cancel_listeners(self, had_error: bool) -> None:
        cancelled = self._router.cancel_listeners()
        if cancelled:
            logger.debug(f"Cancelled {cancelled} running listeners on close")

    async def __aenter__(self) -> BotClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Streaming events
    # -------------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Subscribe to a streaming event.

        Args:
            event: "magData", "piTempData", "motorData", or a raw response type
            listener: Called with each message body (sync or async)

        Returns:
            Unsubscribe function
        """
        return self._router.subscribe(_response_type(event), listener)

    async def stream(self, event: str) -> AsyncIterator[Any]:
        """Yield bodies of a streaming event as they arrive.

        The subscription starts on first iteration and ends when the
        iterator is closed.

        Usage:
            async for data in bot.stream("magData"):
                print(data["heading"])
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        unsubscribe = self.on(event, queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def send_token(self, token: Token, timeout: float | None = None) -> Any:
        """Send a token and wait for its unique response from the robot."""
        return await self._correlator.send_token(token, timeout=timeout)

    async def echo(self, data: Any) -> Any:
        """Send arbitrary data; the robot answers with the same data."""
        return await self.send_token(Token.echo(data))

    async def read_mag(self) -> Any:
        """Read the magnetometer.

        Returns:
            {"heading": ..., "pitch": ..., "roll": ...}
        """
        return await self.send_token(Token.read_mag())

    async def start_mag_stream(self, interval: int) -> Any:
        """Stream magnetometer data every `interval` ms as magData events."""
        return await self.send_token(Token.start_mag_stream(interval))

    async def stop_mag_stream(self) -> Any:
        return await self.send_token(Token.stop_mag_stream())

    async def send_controller_data(self, data: Any) -> Any:
        """Send controller input.

        Returns:
            Motor values as pulse length per motor in microseconds
        """
        return await self.send_token(Token.controller_data(data))

    async def read_pi_temp(self) -> Any:
        """Read the robot's CPU temperature in degrees Celsius."""
        return await self.send_token(Token.read_pi_temp())

    async def start_pi_temp_stream(self, interval: int) -> Any:
        """Stream CPU temperature every `interval` ms as piTempData events."""
        return await self.send_token(Token.start_pi_temp_stream(interval))

    async def stop_pi_temp_stream(self) -> Any:
        return await self.send_token(Token.stop_pi_temp_stream())

    async def set_depth_lock(self, value: bool) -> Any:
        """Start or stop holding the current depth."""
        return await self.send_token(Token.set_depth_lock(value))

    async def send_led_test_data(self, brightness: int) -> Any:
        return await self.send_token(Token.led_test(brightness))

    async def tune_pid_loop(self, z_kp: float, z_ki: float, z_kd: float) -> Any:
        """Change the depth PID constants on the robot."""
        return await self.send_token(Token.pid_tune(z_kp, z_ki, z_kd))

    async def special_delivery(self, token_type: str, body: Any = None) -> Any:
        """Send a command of any type with an arbitrary body."""
        return await self.send_token(Token.special(token_type, body))


def _response_type(event: str) -> str:
    tag = STREAM_EVENTS.get(event, event)
    return str(getattr(tag, "value", tag))


def create_client(
    host: str | None = None,
    port: int | None = None,
    request_timeout: float | None = None,
    strict: bool | None = None,
) -> BotClient:
    """Create a client configured from BOTLINK_* variables plus overrides.

    Args:
        host: Robot address
        port: Robot port
        request_timeout: Seconds to wait for each response
        strict: Raise on misuse instead of ignoring it

    Returns:
        BotClient ready to connect
    """
    config = ClientConfig.from_env(
        host=host,
        port=port,
        request_timeout=request_timeout,
        strict=strict,
    )
    return BotClient(config)

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio

from botlink.config import ClientConfig
from botlink.sdk import BotClient

# Token type -> (responseType, body builder); builder returning None means no reply
Handler = Callable[[Any], Any]

MAG_READING = {"heading": 10, "pitch": 0, "roll": 0}


class FakeRobot:
    """In-process robot speaking the concatenated-JSON protocol.

    Replies to every token with the same transactionID unless its type is
    listed in `silent`. Tokens are decoded with raw_decode so the robot does
    not depend on the code under test.
    """

    def __init__(self) -> None:
        self.port = 0
        self.received: list[dict[str, Any]] = []
        self.silent: set[str] = set()
        self.handlers: dict[str, tuple[str | None, Handler]] = {
            "ECHO": (None, lambda body: body),
            "READ_MAG": ("MAGDATA", lambda body: dict(MAG_READING)),
            "READ_PI_TEMP": ("PITEMPDATA", lambda body: {"temp": 48.3}),
        }
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []
        self._token_arrived = asyncio.Event()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self.drop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    @property
    def connection_count(self) -> int:
        return len([w for w in self._writers if not w.is_closing()])

    async def wait_for_tokens(self, count: int, timeout: float = 2.0) -> list[dict[str, Any]]:
        """Wait until at least `count` tokens have been received."""

        async def wait() -> None:
            while len(self.received) < count:
                self._token_arrived.clear()
                await self._token_arrived.wait()

        await asyncio.wait_for(wait(), timeout=timeout)
        return self.received

    async def send(self, data: bytes | dict[str, Any]) -> None:
        """Write raw bytes (or one object) to every connected client."""
        raw = data if isinstance(data, bytes) else json.dumps(data).encode("utf-8")
        for writer in self._writers:
            if not writer.is_closing():
                writer.write(raw)
                await writer.drain()

    async def push(self, response_type: str, body: Any, transaction_id: Any = None) -> None:
        """Send an unsolicited streaming message."""
        await self.send(
            {
                "headers": {"transactionID": transaction_id, "responseType": response_type},
                "body": body,
            }
        )

    async def reply(self, token: dict[str, Any], body: Any, response_type: str | None = None):
        headers: dict[str, Any] = {"transactionID": token["headers"]["transactionID"]}
        if response_type:
            headers["responseType"] = response_type
        await self.send({"headers": headers, "body": body})

    def drop(self) -> None:
        """Close every client connection from the robot side."""
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._writers.append(writer)
        decoder = json.JSONDecoder()
        buffer = ""
        while True:
            data = await reader.read(4096)
            if not data:
                break
            buffer += data.decode("utf-8")
            while buffer:
                try:
                    token, end = decoder.raw_decode(buffer)
                except json.JSONDecodeError:
                    break
                buffer = buffer[end:].lstrip()
                await self._on_token(token)

    async def _on_token(self, token: dict[str, Any]) -> None:
        self.received.append(token)
        self._token_arrived.set()

        token_type = token["headers"]["type"]
        if token_type in self.silent:
            return
        response_type, handler = self.handlers.get(token_type, (None, lambda body: {"ok": True}))
        body = handler(token.get("body"))
        if body is not None:
            await self.reply(token, body, response_type)


@pytest_asyncio.fixture
async def robot():
    """A running fake robot on an ephemeral localhost port."""
    fake = FakeRobot()
    await fake.start()
    yield fake
    await fake.stop()


@pytest.fixture
def config(robot: FakeRobot) -> ClientConfig:
    """Client config pointing at the fake robot with a short timeout."""
    return ClientConfig(port=robot.port, request_timeout=0.3, connect_timeout=2.0)


@pytest_asyncio.fixture
async def client(config: ClientConfig):
    """A BotClient connected to the fake robot."""
    bot = BotClient(config)
    await bot.connect()
    yield bot
    await bot.disconnect()

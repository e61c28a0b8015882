"""botlink SDK - client for the robot control link.

Usage:
    from botlink.sdk import create_client

    bot = create_client(host="192.168.0.10")
    await bot.connect()
    heading = (await bot.read_mag())["heading"]
"""

from ..config import ClientConfig
from ..transport.connection import ConnectionState
from .client import STREAM_EVENTS, BotClient, create_client

__all__ = [
    "BotClient",
    "ClientConfig",
    "ConnectionState",
    "STREAM_EVENTS",
    "create_client",
]

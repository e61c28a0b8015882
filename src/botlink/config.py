"""Client configuration.

Defaults can be overridden through environment variables:

    BOTLINK_HOST              robot address (default 127.0.0.1)
    BOTLINK_PORT              robot port (default 8080)
    BOTLINK_REQUEST_TIMEOUT   seconds to wait for a correlated response
    BOTLINK_CONNECT_TIMEOUT   seconds to wait for the socket to open
    BOTLINK_STRICT            raise instead of silently ignoring misuse
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_REQUEST_TIMEOUT = 5.0

_TRUTHY = ("1", "true", "yes")


@dataclass
class ClientConfig:
    """Configuration for a BotClient and its transport."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Timeouts in seconds
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    connect_timeout: float = 10.0

    # Socket reads
    read_size: int = 4096
    max_frame_bytes: int = 1024 * 1024

    # Raise NotConnectedError / AlreadyConnectedError instead of logging and
    # returning without effect.
    strict: bool = False

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> ClientConfig:
        """Build a config from BOTLINK_* environment variables.

        Keyword overrides whose value is not None win over the environment.
        """
        env = os.environ if environ is None else environ
        config = cls()

        if "BOTLINK_HOST" in env:
            config.host = env["BOTLINK_HOST"]
        if "BOTLINK_PORT" in env:
            config.port = _parse(env, "BOTLINK_PORT", int)
        if "BOTLINK_REQUEST_TIMEOUT" in env:
            config.request_timeout = _parse(env, "BOTLINK_REQUEST_TIMEOUT", float)
        if "BOTLINK_CONNECT_TIMEOUT" in env:
            config.connect_timeout = _parse(env, "BOTLINK_CONNECT_TIMEOUT", float)
        if "BOTLINK_STRICT" in env:
            config.strict = env["BOTLINK_STRICT"].lower() in _TRUTHY

        return replace(config, **{k: v for k, v in overrides.items() if v is not None})


def _parse(env: Mapping[str, str], name: str, kind: type) -> Any:
    try:
        return kind(env[name])
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {env[name]!r}") from e

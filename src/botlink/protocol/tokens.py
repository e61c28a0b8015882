"""Outbound command tokens.

A token is the request side of the protocol. Each token:
- Has a `transactionID` that the robot echoes in its response
- Has a `type` naming the command
- Has an optional `body` with command arguments

Example:
    {
        "headers": {"transactionID": "tok_1a2b3c4d_7", "type": "READ_MAG"},
        "body": null
    }

Tokens are sent once and never retried.
"""

from __future__ import annotations

import itertools
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Process-wide sequence behind a random prefix: ids never repeat within a
# process and are unlikely to collide across processes.
_PREFIX = uuid.uuid4().hex[:8]
_sequence = itertools.count(1)


def new_transaction_id() -> str:
    """Return a transaction id that is unique for the life of the process."""
    return f"tok_{_PREFIX}_{next(_sequence)}"


class TokenType(str, Enum):
    """All command types understood by the robot."""

    ECHO = "ECHO"

    # Magnetometer
    READ_MAG = "READ_MAG"
    START_MAG_STREAM = "START_MAG_STREAM"
    STOP_MAG_STREAM = "STOP_MAG_STREAM"

    # Motion
    CONTROLLER_DATA = "CONTROLLER_DATA"
    SET_DEPTH_LOCK = "SET_DEPTH_LOCK"
    PID_TUNE = "PID_TUNE"

    # CPU temperature
    READ_PI_TEMP = "READ_PI_TEMP"
    START_PI_TEMP_STREAM = "START_PI_TEMP_STREAM"
    STOP_PI_TEMP_STREAM = "STOP_PI_TEMP_STREAM"

    # Lights
    LED_TEST = "LED_TEST"


class TokenHeaders(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(default_factory=new_transaction_id, alias="transactionID")
    type: str


class Token(BaseModel):
    """A command from the operator station to the robot."""

    headers: TokenHeaders
    body: Any = None

    @property
    def transaction_id(self) -> str:
        return self.headers.transaction_id

    @property
    def type(self) -> str:
        return self.headers.type

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_bytes(self) -> bytes:
        """Serialize for the wire."""
        return self.to_json().encode("utf-8")

    @classmethod
    def create(
        cls,
        token_type: str | TokenType,
        body: Any = None,
        transaction_id: str | None = None,
    ) -> Token:
        """Factory method for creating tokens."""
        headers: dict[str, Any] = {
            "type": token_type.value if isinstance(token_type, TokenType) else token_type,
        }
        if transaction_id is not None:
            headers["transaction_id"] = transaction_id
        return cls(headers=TokenHeaders(**headers), body=body)

    # Convenience factories, one per robot command
    @classmethod
    def echo(cls, data: Any) -> Token:
        return cls.create(TokenType.ECHO, data)

    @classmethod
    def read_mag(cls) -> Token:
        return cls.create(TokenType.READ_MAG)

    @classmethod
    def start_mag_stream(cls, interval: int) -> Token:
        """Stream magnetometer data every `interval` milliseconds."""
        return cls.create(TokenType.START_MAG_STREAM, {"interval": interval})

    @classmethod
    def stop_mag_stream(cls) -> Token:
        return cls.create(TokenType.STOP_MAG_STREAM)

    @classmethod
    def controller_data(cls, data: Any) -> Token:
        return cls.create(TokenType.CONTROLLER_DATA, data)

    @classmethod
    def read_pi_temp(cls) -> Token:
        return cls.create(TokenType.READ_PI_TEMP)

    @classmethod
    def start_pi_temp_stream(cls, interval: int) -> Token:
        """Stream CPU temperature every `interval` milliseconds."""
        return cls.create(TokenType.START_PI_TEMP_STREAM, {"interval": interval})

    @classmethod
    def stop_pi_temp_stream(cls) -> Token:
        return cls.create(TokenType.STOP_PI_TEMP_STREAM)

    @classmethod
    def set_depth_lock(cls, value: bool) -> Token:
        return cls.create(TokenType.SET_DEPTH_LOCK, {"value": value})

    @classmethod
    def led_test(cls, brightness: int) -> Token:
        return cls.create(TokenType.LED_TEST, {"brightness": brightness})

    @classmethod
    def pid_tune(cls, z_kp: float, z_ki: float, z_kd: float) -> Token:
        return cls.create(TokenType.PID_TUNE, {"zKp": z_kp, "zKi": z_ki, "zKd": z_kd})

    @classmethod
    def special(cls, token_type: str, body: Any = None) -> Token:
        """Create a token of any type, for commands without a factory."""
        return cls.create(token_type, body)

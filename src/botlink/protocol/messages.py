"""Inbound message definitions.

Every object the robot sends has a header section and a body:

    {
        "headers": {"transactionID": "tok_1a2b3c4d_7", "responseType": "MAGDATA"},
        "body": {"heading": 10, "pitch": 0, "roll": 0}
    }

Responses to a command echo the command's transactionID. Streaming telemetry
is classified by responseType instead and is not tied to any command.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResponseType(str, Enum):
    """Response-type tags used for unsolicited streaming data."""

    MAGDATA = "MAGDATA"
    PITEMPDATA = "PITEMPDATA"
    MOTORDATA = "MOTORDATA"


class MessageHeaders(BaseModel):
    """Header section of an inbound message.

    Unknown header fields are kept so nothing the robot sends is lost.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    transaction_id: str | int | None = Field(default=None, alias="transactionID")
    response_type: str | None = Field(default=None, alias="responseType")


class Message(BaseModel):
    """A single decoded frame from the robot."""

    model_config = ConfigDict(extra="allow")

    headers: MessageHeaders
    body: Any = None

    @property
    def transaction_id(self) -> str | None:
        """Transaction id as a string, for correlation lookups."""
        tid = self.headers.transaction_id
        return None if tid is None else str(tid)

    @property
    def response_type(self) -> str | None:
        return self.headers.response_type

    def is_streaming(self) -> bool:
        """Check if this message carries a known telemetry tag."""
        return self.response_type in {t.value for t in ResponseType}

    def to_dict(self) -> dict[str, Any]:
        """Wire-shaped dict containing only the fields that were present."""
        return self.model_dump(by_alias=True, exclude_unset=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls.model_validate(data)

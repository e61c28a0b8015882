"""Wire protocol for the robot control link.

Key concepts:
- Tokens: operator → robot commands, each with a unique transactionID
- Messages: robot → operator frames, either a response (echoes the
  transactionID) or streaming telemetry (tagged by responseType)
- Framing: objects are concatenated on the wire with no delimiter
"""

from .framing import FrameSplitter, decode_frame
from .messages import Message, MessageHeaders, ResponseType
from .tokens import Token, TokenHeaders, TokenType, new_transaction_id

__all__ = [
    "FrameSplitter",
    "decode_frame",
    "Message",
    "MessageHeaders",
    "ResponseType",
    "Token",
    "TokenHeaders",
    "TokenType",
    "new_transaction_id",
]

"""Frame splitting for the robot byte stream.

The robot writes JSON objects back to back with no length prefix and no
delimiter:

    {"headers": {...}, "body": {...}}{"headers": {...}, "body": {...}}

A single socket read can hold several objects, or only part of one. The
splitter scans bytes incrementally, tracking brace depth and string state
across reads, and emits each object once its closing brace arrives.

A malformed object with an unbalanced brace or quote would leave that
state wrong for everything after it. Valid JSON never has "}{" outside a
string, and a piece holding a real "headers" key can never sit inside one,
so every "}{" inside an open object is remembered as a split point. When
the bytes since the last split point decode as a message, the splitter
drops what came before it and starts over from the next object.

Structural characters are all ASCII, so scanning raw UTF-8 bytes is safe.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

from pydantic import ValidationError

from ..errors import FrameParseError
from .messages import Message

logger = logging.getLogger(__name__)

OPEN_BRACE = ord("{")
CLOSE_BRACE = ord("}")
QUOTE = ord('"')
BACKSLASH = ord("\\")
WHITESPACE = frozenset(b" \t\r\n")

DEFAULT_MAX_FRAME_BYTES = 1024 * 1024


class FrameSplitter:
    """Turns a byte stream into a sequence of Messages.

    Usage:
        splitter = FrameSplitter()
        for message in splitter.feed(chunk):
            ...

    Scanner state survives between feed() calls, so an object split across
    two reads is yielded when the second read arrives. Frames that fail to
    decode are logged and dropped without affecting their neighbours.
    """

    def __init__(self, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES):
        self.max_frame_bytes = max_frame_bytes
        self._buffer = bytearray()
        self._depth = 0
        self._in_string = False
        self._escaped = False
        # Offsets in _buffer where a "}{" boundary starts a new piece
        self._splits: list[int] = []

    @property
    def pending_bytes(self) -> int:
        """Number of bytes buffered for an object that is not yet complete."""
        return len(self._buffer)

    def reset(self) -> None:
        """Discard any partial object (e.g. on a new connection)."""
        self._buffer.clear()
        self._splits.clear()
        self._depth = 0
        self._in_string = False
        self._escaped = False

    def feed(self, chunk: bytes) -> Iterator[Message]:
        """Consume a chunk and yield every message it completes.

        The chunk is scanned eagerly so scanner state is consistent even if
        the caller stops iterating early; decoding happens lazily.
        """
        frames = self._scan(chunk)
        return self._decode_all(frames)

    def _decode_all(self, frames: list[bytes]) -> Iterator[Message]:
        for raw in frames:
            try:
                yield decode_frame(raw)
            except FrameParseError as e:
                logger.error(f"Dropping unparseable frame: {e} (frame: {raw[:80]!r})")

    def _open_frame(self) -> None:
        self.reset()
        self._depth = 1
        self._buffer.append(OPEN_BRACE)

    def _resync(self, frames: list[bytes]) -> bool:
        """Recover from a malformed object at the last split point.

        If the piece after the last split decodes as a message, queue the
        bytes before it (they will fail to decode and be logged) and the
        piece itself, and clear the scanner.
        """
        start = self._splits[-1]
        piece = bytes(self._buffer[start:])
        try:
            decode_frame(piece)
        except FrameParseError:
            return False

        logger.debug(f"Resynchronised after {start} bytes of malformed input")
        frames.append(bytes(self._buffer[:start]))
        frames.append(piece)
        self.reset()
        return True

    def _scan(self, chunk: bytes) -> list[bytes]:
        frames: list[bytes] = []
        skipped = 0

        for byte in chunk:
            if self._depth == 0:
                # Between objects: wait for the next opening brace
                if byte == OPEN_BRACE:
                    self._open_frame()
                elif byte not in WHITESPACE:
                    skipped += 1
                continue

            if byte == OPEN_BRACE and self._buffer[-1] == CLOSE_BRACE:
                if self._splits and self._resync(frames):
                    self._open_frame()
                    continue
                self._splits.append(len(self._buffer))

            self._buffer.append(byte)

            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif byte == BACKSLASH:
                    self._escaped = True
                elif byte == QUOTE:
                    self._in_string = False
            elif byte == QUOTE:
                self._in_string = True
            elif byte == OPEN_BRACE:
                self._depth += 1
            elif byte == CLOSE_BRACE:
                self._depth -= 1
                if self._depth == 0:
                    frames.append(bytes(self._buffer))
                    self._buffer.clear()
                    self._splits.clear()
                    continue

            if len(self._buffer) > self.max_frame_bytes:
                logger.error(
                    f"Dropping partial frame larger than {self.max_frame_bytes} bytes"
                )
                self.reset()

        # A malformed object may have swallowed the last message of the chunk
        if self._depth and self._splits:
            self._resync(frames)

        if skipped:
            logger.debug(f"Skipped {skipped} bytes outside of any frame")

        return frames


def decode_frame(raw: bytes) -> Message:
    """Decode one complete frame.

    Raises:
        FrameParseError: If the frame is not valid JSON or not a message
    """
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FrameParseError(str(e), raw) from e

    if not isinstance(data, dict):
        raise FrameParseError(f"Expected an object, got {type(data).__name__}", raw)

    try:
        return Message.model_validate(data)
    except ValidationError as e:
        raise FrameParseError(f"Invalid message: {e.error_count()} validation errors", raw) from e

"""RESP encoder, decoder and streaming parser."""

from typing import List, Optional, Tuple, Union
import logging
import re

from resp_types import (
    INT64_MAX,
    INT64_MIN,
    NULL,
    Array,
    BulkString,
    Error,
    Integer,
    Null,
    SimpleString,
    Value,
)

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
MAX_NESTING = 128

_NUMBER = re.compile(rb"-?[0-9]+")

Buffer = Union[bytes, bytearray]


class ProtocolError(Exception):
    """Base class for RESP codec failures."""


class MalformedFrame(ProtocolError):
    """The buffer violates the RESP grammar and cannot be decoded."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (at byte {offset})")
        self.offset = offset


class RESPEncoder:
    """Encoder for RESP values."""

    @staticmethod
    def encode_simple_string(s: str) -> bytes:
        return b"+" + s.encode("utf-8") + CRLF

    @staticmethod
    def encode_error(msg: str) -> bytes:
        return b"-" + msg.encode("utf-8") + CRLF

    @staticmethod
    def encode_integer(n: int) -> bytes:
        return f":{n}\r\n".encode("ascii")

    @staticmethod
    def encode_bulk_string(data: Optional[bytes]) -> bytes:
        """Encode a bulk string; None is the null bulk string."""
        if data is None:
            return b"$-1\r\n"
        return f"${len(data)}\r\n".encode("ascii") + data + CRLF

    @classmethod
    def encode(cls, value: Value) -> bytes:
        """Encode a value to its wire form."""
        out = bytearray()
        cls._write(out, value)
        return bytes(out)

    @classmethod
    def _write(cls, out: bytearray, value: Value):
        if isinstance(value, SimpleString):
            out += cls.encode_simple_string(value.text)
        elif isinstance(value, Error):
            out += cls.encode_error(value.text)
        elif isinstance(value, Integer):
            out += cls.encode_integer(value.value)
        elif isinstance(value, BulkString):
            out += cls.encode_bulk_string(value.data)
        elif isinstance(value, Null):
            out += cls.encode_bulk_string(None)
        elif isinstance(value, Array):
            out += f"*{len(value.items)}\r\n".encode("ascii")
            for item in value.items:
                cls._write(out, item)
        else:
            raise TypeError(f"Unsupported type for RESP encoding: {type(value)}")


def encode(value: Value) -> bytes:
    return RESPEncoder.encode(value)


def _read_line(data: Buffer, position: int) -> Tuple[Optional[bytes], int]:
    """Return the bytes up to the next CRLF and the position past it."""
    end = data.find(CRLF, position)
    if end == -1:
        return None, position
    return bytes(data[position:end]), end + 2


def _line_text(line: bytes, offset: int) -> str:
    if b"\r" in line or b"\n" in line:
        raise MalformedFrame("stray CR or LF inside a line", offset)
    return line.decode("utf-8", errors="replace")


def _parse_number(field: bytes, offset: int, what: str) -> int:
    if not _NUMBER.fullmatch(field):
        raise MalformedFrame(f"invalid {what} {field!r}", offset)
    return int(field)


class _OpenArray:
    """An array whose header has been read but not all of its elements."""

    __slots__ = ("count", "items")

    def __init__(self, count: int):
        self.count = count
        self.items: List[Value] = []


def _decode_item(data: Buffer, position: int, depth: int) -> Tuple[object, int]:
    """
    Decode one scalar value or array header starting at `position`.
    Returns (item, end_position), or (None, position) if the buffer
    does not hold the complete item yet. A non-empty array comes back as
    an _OpenArray whose elements follow at end_position.
    """
    if position >= len(data):
        return None, position

    tag = data[position]
    line, next_position = _read_line(data, position + 1)
    if line is None:
        if tag not in b"+-:$*":
            raise MalformedFrame(f"unknown type byte {bytes([tag])!r}", position)
        return None, position

    if tag == ord("+"):
        return SimpleString(_line_text(line, position + 1)), next_position

    if tag == ord("-"):
        return Error(_line_text(line, position + 1)), next_position

    if tag == ord(":"):
        number = _parse_number(line, position + 1, "integer")
        if not INT64_MIN <= number <= INT64_MAX:
            raise MalformedFrame(f"integer out of range {number}", position + 1)
        return Integer(number), next_position

    if tag == ord("$"):
        return _decode_bulk_string(data, position, line, next_position)

    if tag == ord("*"):
        return _decode_array_header(position, line, next_position, depth)

    raise MalformedFrame(f"unknown type byte {bytes([tag])!r}", position)


def _decode_bulk_string(
    data: Buffer, position: int, line: bytes, content_start: int
) -> Tuple[Optional[Value], int]:
    length = _parse_number(line, position + 1, "bulk length")
    if length == -1:
        return NULL, content_start
    if length < 0:
        raise MalformedFrame(f"negative bulk length {length}", position + 1)

    content_end = content_start + length
    if content_end + 2 > len(data):
        return None, position  # Incomplete message

    if data[content_end : content_end + 2] != CRLF:
        raise MalformedFrame("bulk string not terminated by CRLF", content_end)

    return BulkString(data[content_start:content_end]), content_end + 2


def _decode_array_header(
    position: int, line: bytes, next_position: int, depth: int
) -> Tuple[object, int]:
    count = _parse_number(line, position + 1, "array length")
    if count == -1:
        # Null multi-bulk reply
        return NULL, next_position
    if count < 0:
        raise MalformedFrame(f"negative array length {count}", position + 1)
    if depth >= MAX_NESTING:
        raise MalformedFrame("arrays nested too deeply", position)
    if count == 0:
        return Array(), next_position
    return _OpenArray(count), next_position


def _resume(
    data: Buffer, position: int, stack: List[_OpenArray]
) -> Tuple[Optional[Value], int]:
    """
    Decode from `position` with the arrays on `stack` still waiting for
    elements. Returns (value, end_position) once the outermost value is
    complete. Otherwise returns (None, position) where position is the
    first byte not yet decoded, and `stack` holds every array still open.
    """
    while True:
        item, next_position = _decode_item(data, position, len(stack))
        if item is None:
            return None, position
        position = next_position

        if isinstance(item, _OpenArray):
            stack.append(item)
            continue

        value = item
        while stack:
            top = stack[-1]
            top.items.append(value)
            if len(top.items) < top.count:
                break
            stack.pop()
            value = Array(top.items)
        if not stack:
            return value, position


def decode(data: Buffer, offset: int = 0) -> Optional[Tuple[Value, int]]:
    """
    Decode the first value in `data[offset:]`.

    Returns (value, bytes_consumed) or None when the buffer is empty or
    holds only part of a value. Raises MalformedFrame on a grammar violation.
    """
    value, end = _resume(data, offset, [])
    if value is None:
        return None
    return value, end - offset


class RESPParser:
    """
    Accumulates bytes from a stream transport and splits them into
    complete RESP values.

    Elements of a partially received array are decoded once and kept on a
    stack of open arrays, so each read only decodes the bytes it added.
    """

    def __init__(self):
        self.buffer = bytearray()
        self._open_arrays: List[_OpenArray] = []
        self._absorbed = 0

    def append(self, data: bytes):
        """Add bytes read from the transport without decoding them."""
        self.buffer.extend(data)

    def get_value(self) -> Optional[Value]:
        """
        Pop the next complete value off the buffer, or return None if the
        buffered bytes do not form one yet. A malformed frame discards
        the whole buffer before the error propagates.
        """
        try:
            value, position = _resume(self.buffer, 0, self._open_arrays)
        except MalformedFrame:
            logger.debug(f"Discarding {self.pending} buffered bytes")
            self.clear()
            raise

        if value is None:
            # Bytes already decoded into open arrays
            self._absorbed += position
            self._consume_bytes(position)
            return None

        self._absorbed = 0
        self._consume_bytes(position)
        return value

    def feed(self, data: bytes) -> List[Value]:
        """
        Feed raw bytes into the parser and return the values completed by them.
        Returns an empty list if no complete value is available yet.
        """
        self.append(data)
        values = []

        while True:
            value = self.get_value()
            if value is None:
                break
            values.append(value)

        return values

    @property
    def pending(self) -> int:
        """Number of received bytes not yet part of a complete value."""
        return len(self.buffer) + self._absorbed

    def _consume_bytes(self, count: int):
        """Remove the first `count` bytes from the buffer."""
        del self.buffer[:count]

    def clear(self):
        """Clear the internal buffer and any partially decoded arrays."""
        self.buffer.clear()
        self._open_arrays.clear()
        self._absorbed = 0

"""Asyncio RESP client: sends commands and reads replies off the stream."""

import asyncio
import logging
from typing import AsyncIterator, List, Optional, Sequence

from client_config import ClientConfig
from message_parser import RESPParser, encode
from resp_types import Value, from_args

logger = logging.getLogger(__name__)

# Commands after which the server keeps pushing values with no request pairing
PUSH_COMMANDS = frozenset({"MONITOR", "SUBSCRIBE", "PSUBSCRIBE", "SSUBSCRIBE"})


class TransportError(ConnectionError):
    """The connection closed before a complete reply arrived."""


def is_push_command(args: Sequence[str]) -> bool:
    return bool(args) and args[0].upper() in PUSH_COMMANDS


class RESPClient:
    """
    Single connection to a RESP server.

    Replies are decoded from an accumulation buffer that survives across
    reads, so values split over several reads or packed into one read are
    both handled. Read bursts end when the decoder has a complete value,
    never on a short read.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self.parser = RESPParser()
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @property
    def connected(self) -> bool:
        return self.writer is not None

    async def connect(self):
        logger.debug(f"Connecting to {self.address}")
        self.reader, self.writer = await asyncio.open_connection(
            self.config.host, self.config.port
        )
        self.parser.clear()
        logger.info(f"Connected to {self.address}")

    async def close(self):
        if self.writer is None:
            return
        writer, self.reader, self.writer = self.writer, None, None
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError as e:
            logger.debug(f"Error while closing connection to {self.address}: {e}")
        self.parser.clear()
        logger.info(f"Disconnected from {self.address}")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_connection(self):
        if self.writer is None:
            raise TransportError(f"not connected to {self.address}")

    async def send(self, args: List[str]):
        """Encode `args` as an array of bulk strings and write it."""
        if not args:
            raise ValueError("cannot send an empty command")
        self._require_connection()
        payload = encode(from_args(args))
        self.writer.write(payload)
        await self.writer.drain()
        logger.debug(f"Sent: {payload!r}")

    async def _read_chunk(self) -> bytes:
        data = await self.reader.read(self.config.read_chunk_size)
        if data:
            logger.debug(f"Received: {data!r}")
        return data

    async def read_value(self) -> Value:
        """
        Return the next value from the stream, reading until the buffer holds
        a complete one. Raises TransportError if the peer closes first.
        """
        self._require_connection()
        while True:
            value = self.parser.get_value()
            if value is not None:
                return value

            data = await self._read_chunk()
            if not data:
                pending = self.parser.pending
                raise TransportError(
                    f"connection to {self.address} closed"
                    + (f" with {pending} bytes of an incomplete reply" if pending else "")
                )
            self.parser.append(data)

    async def execute(self, *args: str) -> Value:
        """Send one command and wait for exactly one reply."""
        await self.send(list(args))
        return await self.read_value()

    async def stream(self) -> AsyncIterator[Value]:
        """
        Yield pushed values until the server closes the connection.
        Every value already buffered is yielded before the next read.
        """
        self._require_connection()
        while True:
            value = self.parser.get_value()
            if value is not None:
                yield value
                continue

            data = await self._read_chunk()
            if not data:
                logger.info(f"Server {self.address} closed the stream")
                return
            self.parser.append(data)

import asyncio

import pytest

from client_config import ClientConfig
from message_parser import RESPParser


async def start_fake_server(replies, received=None):
    """
    Serve one scripted connection: for every command received, write the
    next entry of `replies` (a list of byte chunks, written with a drain
    between each so they arrive as separate reads).
    """

    async def handle(reader, writer):
        parser = RESPParser()
        scripted = list(replies)
        try:
            while scripted:
                data = await reader.read(1024)
                if not data:
                    break
                for command in parser.feed(data):
                    if received is not None:
                        received.append(command)
                    for chunk in scripted.pop(0):
                        writer.write(chunk)
                        await writer.drain()
                        await asyncio.sleep(0.01)
        finally:
            writer.close()
            await writer.wait_closed()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, ClientConfig(host="127.0.0.1", port=port, read_chunk_size=8)


@pytest.fixture
def fake_server():
    return start_fake_server

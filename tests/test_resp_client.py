import asyncio

import pytest

from message_parser import MalformedFrame, encode
from resp_client import RESPClient, TransportError, is_push_command
from resp_types import Array, BulkString, Integer, SimpleString


def test_execute_sends_bulk_string_array(fake_server):
    async def scenario():
        received = []
        server, config = await fake_server([[b"+OK\r\n"]], received)
        async with server:
            async with RESPClient(config) as client:
                reply = await client.execute("SET", "greeting", "hello")
        return reply, received

    reply, received = asyncio.run(scenario())
    assert reply == SimpleString("OK")
    assert received == [
        Array([BulkString("SET"), BulkString("greeting"), BulkString("hello")])
    ]


def test_reply_split_across_reads(fake_server):
    wire = encode(Array([BulkString("a" * 20), Integer(7)]))
    chunks = [wire[:3], wire[3:17], wire[17:]]

    async def scenario():
        server, config = await fake_server([chunks])
        async with server:
            async with RESPClient(config) as client:
                return await client.execute("LRANGE", "k", "0", "-1")

    assert asyncio.run(scenario()) == Array([BulkString("a" * 20), Integer(7)])


def test_reply_exactly_one_chunk_long_does_not_end_burst_early(fake_server):
    # 8 bytes: exactly the configured read size, but not a complete value
    chunks = [b"$5\r\nhell", b"o\r\n"]

    async def scenario():
        server, config = await fake_server([chunks])
        async with server:
            async with RESPClient(config) as client:
                return await client.execute("GET", "k")

    assert asyncio.run(scenario()) == BulkString("hello")


def test_values_packed_in_one_read_are_kept_for_next_request(fake_server):
    async def scenario():
        server, config = await fake_server([[b":1\r\n:2\r\n"]])
        async with server:
            async with RESPClient(config) as client:
                first = await client.execute("INCR", "a")
                second = await client.read_value()
        return first, second

    assert asyncio.run(scenario()) == (Integer(1), Integer(2))


def test_stream_yields_pushed_values_until_close(fake_server):
    pushed = [
        encode(Array([BulkString("subscribe"), BulkString("news"), Integer(1)])),
        encode(Array([BulkString("message"), BulkString("news"), BulkString("hi")]))
        + encode(Array([BulkString("message"), BulkString("news"), BulkString("yo")])),
    ]

    async def scenario():
        server, config = await fake_server([pushed])
        async with server:
            async with RESPClient(config) as client:
                await client.send(["SUBSCRIBE", "news"])
                return [value async for value in client.stream()]

    values = asyncio.run(scenario())
    assert [value[2] for value in values] == [
        Integer(1),
        BulkString("hi"),
        BulkString("yo"),
    ]


def test_closed_connection_mid_reply_raises_transport_error(fake_server):
    async def scenario():
        server, config = await fake_server([[b"$10\r\nabc"]])
        async with server:
            async with RESPClient(config) as client:
                await client.execute("GET", "k")

    with pytest.raises(TransportError):
        asyncio.run(scenario())


def test_malformed_reply_raises(fake_server):
    async def scenario():
        server, config = await fake_server([[b"%2\r\n"]])
        async with server:
            async with RESPClient(config) as client:
                await client.execute("HELLO", "3")

    with pytest.raises(MalformedFrame):
        asyncio.run(scenario())


def test_send_requires_arguments_and_connection():
    client = RESPClient()
    with pytest.raises(ValueError):
        asyncio.run(client.send([]))
    with pytest.raises(TransportError):
        asyncio.run(client.send(["PING"]))


@pytest.mark.parametrize(
    "args, expected",
    [
        (["monitor"], True),
        (["SUBSCRIBE", "a"], True),
        (["psubscribe", "n*"], True),
        (["GET", "k"], False),
        ([], False),
    ],
)
def test_is_push_command(args, expected):
    assert is_push_command(args) is expected

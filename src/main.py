import argparse
import asyncio
import logging
import sys
from typing import List, Optional

try:
    import readline  # noqa: F401  line editing and history for input()
except ImportError:
    readline = None

from client_config import ClientConfig
from message_parser import ProtocolError
from resp_client import RESPClient, is_push_command

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def parse_arguments(argv: Optional[List[str]] = None) -> ClientConfig:
    parser = argparse.ArgumentParser(
        prog="respcli",
        description="Send commands to a RESP server and print the replies",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="show this help message and exit")
    parser.add_argument("-h", "--hostname", default="127.0.0.1", help="server host")
    parser.add_argument("-p", "--port", type=int, default=6379, help="server port")
    parser.add_argument("-d", "--debug", action="store_true", help="enable debug logging")
    parser.add_argument("cmds", nargs="*", help="command to run; interactive if omitted")

    args = parser.parse_args(argv)
    return ClientConfig(
        host=args.hostname,
        port=args.port,
        debug=args.debug,
        commands=args.cmds,
    )


async def print_stream(client: RESPClient):
    async for value in client.stream():
        print(value, flush=True)


async def run_command(client: RESPClient, args: List[str]):
    """Send one command and print its reply; follow pushed values if it subscribes."""
    reply = await client.execute(*args)
    print(reply, flush=True)
    if is_push_command(args):
        await print_stream(client)


async def reconnect(client: RESPClient):
    await client.close()
    await client.connect()


async def one_shot(config: ClientConfig):
    async with RESPClient(config) as client:
        await run_command(client, config.commands)


def interactive(runner: asyncio.Runner, config: ClientConfig):
    client = RESPClient(config)
    runner.run(client.connect())
    try:
        while True:
            try:
                line = input(config.prompt)
            except KeyboardInterrupt:
                print("CTRL-C")
                break
            except EOFError:
                print("CTRL-D")
                break

            args = line.split()
            if not args:
                continue

            try:
                runner.run(run_command(client, args))
                if is_push_command(args):
                    # Push stream ended by the server closing the connection
                    runner.run(reconnect(client))
            except KeyboardInterrupt:
                # The reply stream was cut off mid-read; start over on a fresh connection
                print()
                runner.run(reconnect(client))
            except ProtocolError as e:
                print(f"error: {e}", file=sys.stderr)
                runner.run(reconnect(client))
    finally:
        runner.run(client.close())


def main(argv: Optional[List[str]] = None) -> int:
    config = parse_arguments(argv)
    setup_logging(config.debug)

    with asyncio.Runner() as runner:
        try:
            if config.commands:
                runner.run(one_shot(config))
            else:
                interactive(runner, config)
        except KeyboardInterrupt:
            print("quit")
        except (OSError, ProtocolError) as e:
            logger.debug("Command failed", exc_info=True)
            print(f"error: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

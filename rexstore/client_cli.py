"""Command-line client that sends one command to a store node."""

from __future__ import annotations

import argparse
import json
import socket
import struct
import sys
from collections.abc import Sequence
from typing import Any

from rexstore.messages import (
    GetCommand,
    GetPeersCommand,
    GossipCommand,
    HealthCommand,
    PingMessage,
    SetCommand,
    command_to_json,
)

DEFAULT_SERVER = "127.0.0.1:8000"
DEFAULT_CLIENT_ID = "client"

_PREFIX = struct.Struct(">I")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the client's command line."""
    parser = argparse.ArgumentParser(
        prog="rexstore-client", description="Send one command to a store node."
    )
    parser.add_argument(
        "-s", "--server", default=DEFAULT_SERVER, help="server address to connect to"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="get a value")
    get.add_argument("key", help="key to retrieve")

    set_ = commands.add_parser("set", help="set a value")
    set_.add_argument("key", help="key to set")
    set_.add_argument("value", help="value to set")
    set_.add_argument("-n", "--node-id", default=DEFAULT_CLIENT_ID, help="node id of the writer")

    commands.add_parser("peers", help="get active peers")
    commands.add_parser("health", help="health check")

    ping = commands.add_parser("ping", help="ping a node")
    ping.add_argument("-s", "--sender", default=DEFAULT_CLIENT_ID, help="sender id")

    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> Any:
    """Return the JSON form of the command described by parsed arguments."""
    match args.command:
        case "get":
            command = GetCommand(key=args.key)
        case "set":
            command = SetCommand(key=args.key, value=args.value, node_id=args.node_id)
        case "peers":
            command = GetPeersCommand()
        case "health":
            command = HealthCommand()
        case "ping":
            command = GossipCommand(message=PingMessage(sender=args.sender))
        case other:
            raise ValueError(f"unknown command {other!r}")
    return command_to_json(command)


def _split_address(server: str) -> tuple[str, int]:
    host, sep, port = server.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"server address must be host:port, got {server!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    chunks = bytearray()
    while len(chunks) < size:
        chunk = sock.recv(size - len(chunks))
        if not chunk:
            raise EOFError("connection closed before the response was complete")
        chunks += chunk
    return bytes(chunks)


def request(server: str, payload: Any) -> Any:
    """Send ``payload`` as one frame to ``server`` and return the decoded reply."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    data = body.encode("utf-8")
    with socket.create_connection(_split_address(server)) as sock:
        sock.sendall(_PREFIX.pack(len(data)) + data)
        (length,) = _PREFIX.unpack(_recv_exact(sock, _PREFIX.size))
        return json.loads(_recv_exact(sock, length))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the client and print the server's response as indented JSON."""
    args = parse_args(argv)
    try:
        response = request(args.server, build_request(args))
    except (OSError, EOFError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(response, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
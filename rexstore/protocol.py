"""Length-prefixed JSON framing and the TCP client of the gossip protocol.

Every frame is a four-byte big-endian length followed by that many bytes of
UTF-8 encoded JSON.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import struct
from types import TracebackType
from typing import Any

from rexstore.messages import (
    Command,
    ErrorResponse,
    GossipCommand,
    GossipMessageData,
    Message,
    OkResponse,
    PingMessage,
    ProtocolError,
    Response,
    command_to_json,
    response_from_json,
)

LENGTH_PREFIX_SIZE = 4
MAX_MESSAGE_SIZE = 10_000_000

_PREFIX = struct.Struct(">I")


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """Read one frame and return its payload.

    Raises EOFError when the stream ends before a whole frame arrived and
    ProtocolError when the announced length exceeds MAX_MESSAGE_SIZE.
    """
    try:
        prefix = await reader.readexactly(LENGTH_PREFIX_SIZE)
    except asyncio.IncompleteReadError as exc:
        raise EOFError("connection closed while reading message length") from exc
    (length,) = _PREFIX.unpack(prefix)
    if length > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"Message too large: {length} bytes")
    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as exc:
        raise EOFError("connection closed while reading message content") from exc


async def write_frame(writer: Any, payload: bytes) -> None:
    """Write ``payload`` as one frame and wait until it is flushed."""
    if len(payload) > 0xFFFFFFFF:
        raise ValueError(f"payload too large for a frame: {len(payload)} bytes")
    writer.write(_PREFIX.pack(len(payload)) + payload)
    await writer.drain()


def _encode(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _split_peer(peer: str) -> tuple[str, int]:
    host, sep, port = peer.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"peer address must be host:port, got {peer!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


class GossipTcpClient:
    """Keeps one connection to a peer and exchanges commands over it."""

    def __init__(self, peer: str) -> None:
        self.peer = peer
        self._lock = asyncio.Lock()
        self._streams: tuple[asyncio.StreamReader, asyncio.StreamWriter] | None = None

    async def __aenter__(self) -> GossipTcpClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _connect_locked(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        if self._streams is None:
            host, port = _split_peer(self.peer)
            self._streams = await asyncio.open_connection(host, port)
        return self._streams

    async def _reset_locked(self) -> None:
        if self._streams is None:
            return
        _, writer = self._streams
        self._streams = None
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()

    async def send_command(self, command: Command) -> Response:
        """Send a command and return the peer's response.

        Connection failures raise OSError; a broken exchange drops the
        connection so that the next call reconnects.
        """
        async with self._lock:
            reader, writer = await self._connect_locked()
            try:
                await write_frame(writer, _encode(command_to_json(command)))
                payload = await read_frame(reader)
            except (OSError, EOFError) as exc:
                await self._reset_locked()
                raise ConnectionError(f"exchange with {self.peer} failed: {exc}") from exc
            except ProtocolError:
                await self._reset_locked()
                raise
        try:
            document = json.loads(payload)
        except ValueError as exc:
            raise ProtocolError(f"response is not valid JSON: {exc}") from exc
        return response_from_json(document)

    async def send_gossip(self, message: Message) -> Message:
        """Send a gossip message and return the peer's reply message."""
        response = await self.send_command(GossipCommand(message=message))
        match response:
            case OkResponse(data=GossipMessageData(message=reply)):
                return reply
            case ErrorResponse(message=text):
                raise RuntimeError(f"Gossip error: {text}")
        raise ProtocolError("Unexpected response type")

    async def ping(self, sender: str) -> bool:
        """Return whether the peer answers a ping."""
        async with self._lock:
            try:
                await self._connect_locked()
            except (OSError, ValueError):
                return False
        try:
            await self.send_gossip(PingMessage(sender=sender))
        except (OSError, EOFError, ValueError, RuntimeError):
            async with self._lock:
                await self._reset_locked()
            return False
        return True

    async def close(self) -> None:
        """Drop the connection, if one is open."""
        async with self._lock:
            await self._reset_locked()
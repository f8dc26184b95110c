"""TCP front end of a store node: command dispatch and connection handling."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from rexstore.config import Config
from rexstore.gossip import GossipNode
from rexstore.kvstore import KVStore
from rexstore.messages import (
    Command,
    ErrorResponse,
    GetCommand,
    GetPeersCommand,
    GossipCommand,
    GossipMessageData,
    HealthCommand,
    HealthInfoData,
    OkResponse,
    PeerListData,
    Response,
    SetCommand,
    SetResultData,
    ValueData,
    command_from_json,
    response_to_json,
)
from rexstore.protocol import read_frame, write_frame

logger = logging.getLogger(__name__)


def _encode(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def process_command(
    command: Command, store: KVStore, gossip: GossipNode, config: Config
) -> Response:
    """Execute one command against the node and return the response to send."""
    match command:
        case GossipCommand(message=message):
            try:
                reply = gossip.process_gossip(message)
            except Exception as exc:  # noqa: BLE001 - reported to the caller
                return ErrorResponse(message=f"Gossip processing error: {exc!r}")
            return OkResponse(data=GossipMessageData(message=reply))
        case GetCommand(key=key):
            found = store.get(key)
            if found is None:
                return OkResponse(data=ValueData(key=key, value=None, found=False))
            return OkResponse(data=ValueData(key=key, value=found.value, found=True))
        case SetCommand(key=key, value=value, node_id=node_id):
            written = store.set(key, value, node_id)
            return OkResponse(
                data=SetResultData(key=key, value=written.value, timestamp=written.timestamp)
            )
        case GetPeersCommand():
            return OkResponse(data=PeerListData(peers=gossip.active_peers()))
        case HealthCommand():
            return OkResponse(
                data=HealthInfoData(
                    status="ok", node_id=config.node_id, endpoint=config.endpoint()
                )
            )
    raise TypeError(f"not a command: {command!r}")


class GossipTcpServer:
    """Accepts connections and answers length-prefixed JSON commands.

    When a shutdown event is given, setting it stops accepting connections,
    ends every open connection and lets ``run`` return.
    """

    def __init__(
        self,
        config: Config,
        store: KVStore,
        gossip: GossipNode,
        shutdown: asyncio.Event | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.gossip = gossip
        self._shutdown = shutdown
        self._connections: set[asyncio.Task[Any]] = set()
        self.started = asyncio.Event()
        self.address: tuple[str, int] | None = None

    async def run(self) -> None:
        """Listen on the configured address until shutdown."""
        server = await asyncio.start_server(
            self._serve_connection, self.config.host, self.config.port
        )
        sockname = server.sockets[0].getsockname()
        self.address = (sockname[0], sockname[1])
        logger.info("Gossip TCP server listening on %s", self.config.endpoint())
        self.started.set()
        try:
            if self._shutdown is None:
                await asyncio.get_running_loop().create_future()
            else:
                await self._shutdown.wait()
                logger.info("Shutdown signal received, stopping server")
        except asyncio.CancelledError:
            for task in list(self._connections):
                task.cancel()
            raise
        finally:
            server.close()
            logger.info("Waiting for all connections to complete")
            if self._connections:
                await asyncio.gather(*self._connections, return_exceptions=True)
            await server.wait_closed()
        logger.info("Server gracefully shut down")

    async def _serve_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._connections.add(task)
        peer = writer.get_extra_info("peername")
        logger.info("Connection accepted from %s", peer)
        try:
            await self._exchange(reader, writer)
        except Exception as exc:  # noqa: BLE001 - one bad connection must not stop the server
            logger.error("Error handling connection from %s: %s", peer, exc)
        finally:
            if task is not None:
                self._connections.discard(task)
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _next_frame(self, reader: asyncio.StreamReader) -> bytes | None:
        if self._shutdown is None:
            return await read_frame(reader)
        if self._shutdown.is_set():
            return None
        read = asyncio.ensure_future(read_frame(reader))
        stop = asyncio.ensure_future(self._shutdown.wait())
        try:
            done, _ = await asyncio.wait({read, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (read, stop):
                if not pending.done():
                    pending.cancel()
        if read in done:
            return read.result()
        logger.debug("Connection received shutdown signal")
        return None

    async def _exchange(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        while True:
            try:
                payload = await self._next_frame(reader)
            except EOFError:
                return
            if payload is None:
                return
            try:
                command = command_from_json(json.loads(payload))
            except ValueError as exc:
                response: Response = ErrorResponse(message=f"Invalid command format: {exc}")
            else:
                response = process_command(command, self.store, self.gossip, self.config)
            await write_frame(writer, _encode(response_to_json(response)))


class NetworkServer:
    """A node's network endpoint with a handle to shut it down."""

    def __init__(self, config: Config, store: KVStore, gossip: GossipNode) -> None:
        self.config = config
        self.store = store
        self.gossip = gossip
        self.shutdown_event = asyncio.Event()
        self.tcp_server = GossipTcpServer(config, store, gossip, self.shutdown_event)

    async def run(self) -> None:
        """Serve until ``shutdown`` is called."""
        logger.info(
            "Starting node %s on %s:%s", self.config.node_id, self.config.host, self.config.port
        )
        await self.tcp_server.run()

    def shutdown(self) -> None:
        """Ask the running server to stop."""
        self.shutdown_event.set()
"""Gossip membership and anti-entropy for a store node."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Awaitable, Callable

from rexstore.config import Config
from rexstore.kvstore import KVStore
from rexstore.messages import (
    Message,
    PingMessage,
    PongMessage,
    SyncRequestMessage,
    SyncResponseMessage,
    UpdateMessage,
)
from rexstore.protocol import GossipTcpClient

logger = logging.getLogger(__name__)

_MAX_BACKOFF_EXPONENT = 10


class GossipNode:
    """Tracks peer liveness, answers gossip messages and syncs with peers."""

    def __init__(
        self,
        config: Config,
        store: KVStore,
        *,
        max_failures: int = 3,
        backoff_base_ms: int = 1000,
        ping_interval: float = 1.0,
        inactive_check_interval: float = 5.0,
        sync_interval: float = 2.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.store = store
        self.max_failures = max_failures
        self.backoff_base_ms = backoff_base_ms
        self.ping_interval = ping_interval
        self.inactive_check_interval = inactive_check_interval
        self.sync_interval = sync_interval
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._active: set[str] = set(config.peers)
        self._inactive: set[str] = set()
        self._clients: dict[str, GossipTcpClient] = {
            peer: GossipTcpClient(peer) for peer in config.peers
        }
        self._failures: dict[str, int] = {}
        self._last_attempt: dict[str, float] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def process_gossip(self, message: Message) -> Message:
        """Apply an incoming gossip message and return the reply."""
        endpoint = self.config.endpoint()
        match message:
            case UpdateMessage(updates=updates):
                for key, value in updates.items():
                    self.store.update(key, value)
                return PingMessage(sender=endpoint)
            case SyncRequestMessage():
                return SyncResponseMessage(data=self.store.snapshot())
            case SyncResponseMessage(data=data):
                for key, value in data.items():
                    self.store.update(key, value)
                return PingMessage(sender=endpoint)
            case PingMessage():
                return PongMessage(sender=endpoint, members=self.active_peers())
            case PongMessage():
                return PingMessage(sender=endpoint)
        raise TypeError(f"not a gossip message: {message!r}")

    def active_peers(self) -> list[str]:
        """Return the peers currently considered reachable."""
        return sorted(self._active)

    def inactive_peers(self) -> list[str]:
        """Return the peers that failed too often and are set aside."""
        return sorted(self._inactive)

    def add_peer(self, peer: str) -> None:
        """Mark ``peer`` reachable and clear its failure count."""
        self._failures[peer] = 0
        self._inactive.discard(peer)
        self._active.add(peer)

    def remove_peer(self, peer: str) -> None:
        """Count a failure of an active peer; deactivate it after too many."""
        if peer not in self._active:
            return
        count = self._failures.get(peer, 0) + 1
        self._failures[peer] = count
        if count >= self.max_failures:
            self._active.discard(peer)
            self._inactive.add(peer)
            logger.info("Peer %s moved to inactive after %d failures", peer, count)

    def should_attempt_inactive_peer(self, peer: str) -> bool:
        """Return whether the backoff for ``peer`` has elapsed since its last attempt."""
        now = self._clock()
        failures = self._failures.get(peer, 0)
        last_attempt = self._last_attempt.get(peer, now)
        backoff_ms = self.backoff_base_ms * 2 ** min(failures, _MAX_BACKOFF_EXPONENT)
        return (now - last_attempt) * 1000 > backoff_ms

    def client_for(self, peer: str) -> GossipTcpClient:
        """Return the client for ``peer``, creating it on first use."""
        client = self._clients.get(peer)
        if client is None:
            client = self._clients[peer] = GossipTcpClient(peer)
        return client

    async def _probe(self, peer: str) -> bool:
        try:
            return await self.client_for(peer).ping(self.config.endpoint())
        except Exception:  # noqa: BLE001 - any failure means unreachable
            logger.debug("Ping to %s failed", peer, exc_info=True)
            return False

    async def ping_peers(self) -> None:
        """Ping every active peer and record which ones answered."""
        peers = self.active_peers()
        if not peers:
            return
        results = await asyncio.gather(*(self._probe(peer) for peer in peers))
        for peer, alive in zip(peers, results):
            if alive:
                self.add_peer(peer)
            else:
                self.remove_peer(peer)

    async def check_inactive_peers(self) -> list[str]:
        """Retry inactive peers whose backoff has elapsed; return those that came back."""
        due = [peer for peer in self.inactive_peers() if self.should_attempt_inactive_peer(peer)]
        if not due:
            return []
        now = self._clock()
        for peer in due:
            self._last_attempt[peer] = now
        results = await asyncio.gather(*(self._probe(peer) for peer in due))
        revived = []
        for peer, alive in zip(due, results):
            if alive:
                logger.info("Inactive peer %s is reachable again", peer)
                self.add_peer(peer)
                revived.append(peer)
            else:
                logger.debug("Inactive peer %s is still unreachable", peer)
        return revived

    async def sync_with_random_peer(self) -> str | None:
        """Push the whole store to one random active peer; return that peer."""
        peers = self.active_peers()
        if not peers:
            return None
        peer = self._rng.choice(peers)
        message = UpdateMessage(updates=self.store.snapshot())
        try:
            await self.client_for(peer).send_gossip(message)
        except (OSError, EOFError, ValueError, RuntimeError):
            self.remove_peer(peer)
            logger.warning("Failed to sync with peer %s", peer)
        else:
            self.add_peer(peer)
        return peer

    async def _every(self, interval: float, action: Callable[[], Awaitable[object]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await action()
            except Exception:  # noqa: BLE001 - keep the schedule alive
                logger.exception("Periodic gossip task failed")

    @property
    def running(self) -> bool:
        """Whether the periodic tasks are scheduled."""
        return bool(self._tasks)

    def start(self) -> None:
        """Schedule pinging, inactive-peer checks and syncing on the running loop."""
        if self._tasks:
            raise RuntimeError("gossip node is already running")
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._every(self.ping_interval, self.ping_peers)),
            loop.create_task(self._every(self.inactive_check_interval, self.check_inactive_peers)),
            loop.create_task(self._every(self.sync_interval, self.sync_with_random_peer)),
        ]

    async def stop(self) -> None:
        """Cancel the periodic tasks and close every peer connection."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for client in list(self._clients.values()):
            await client.close()
"""Node configuration."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Config:
    """Identity and addressing of a single store node."""

    node_id: str
    host: str
    port: int
    peers: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise TypeError(f"port must be an integer, got {self.port!r}")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")
        peers: Iterable[str] = self.peers
        object.__setattr__(self, "peers", frozenset(peers))

    def endpoint(self) -> str:
        """Return the ``host:port`` address this node listens on."""
        return f"{self.host}:{self.port}"
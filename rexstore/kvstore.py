"""Last-writer-wins key-value store with a Lamport clock."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class VersionedValue:
    """A stored value together with the timestamp and node that wrote it."""

    value: str
    timestamp: int
    node_id: str

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of this value."""
        return {"value": self.value, "timestamp": self.timestamp, "node_id": self.node_id}

    @classmethod
    def from_dict(cls, data: Any) -> VersionedValue:
        """Build a value from its JSON form, raising ValueError when malformed."""
        if not isinstance(data, Mapping):
            raise ValueError(f"versioned value must be an object, got {data!r}")
        try:
            value = data["value"]
            timestamp = data["timestamp"]
            node_id = data["node_id"]
        except KeyError as exc:
            raise ValueError(f"versioned value is missing field {exc.args[0]!r}") from None
        if not isinstance(value, str):
            raise ValueError(f"field 'value' must be a string, got {value!r}")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp < 0:
            raise ValueError(f"field 'timestamp' must be a non-negative integer, got {timestamp!r}")
        if not isinstance(node_id, str):
            raise ValueError(f"field 'node_id' must be a string, got {node_id!r}")
        return cls(value=value, timestamp=timestamp, node_id=node_id)


def _supersedes(candidate: VersionedValue, current: VersionedValue) -> bool:
    if current.timestamp != candidate.timestamp:
        return current.timestamp < candidate.timestamp
    return current.node_id < candidate.node_id


class KVStore:
    """In-memory store that resolves conflicts by timestamp, then node id."""

    def __init__(self) -> None:
        self._data: dict[str, VersionedValue] = {}
        self._clock = 0

    def _next_timestamp(self) -> int:
        self._clock += 1
        return self._clock

    def _sync_clock(self, remote_ts: int) -> None:
        self._clock = max(self._clock, remote_ts) + 1

    def get(self, key: str) -> VersionedValue | None:
        """Return the value stored under ``key``, if any."""
        return self._data.get(key)

    def set(self, key: str, value: str, node_id: str) -> VersionedValue:
        """Store a local write with a fresh timestamp and return it."""
        versioned = VersionedValue(value=value, timestamp=self._next_timestamp(), node_id=node_id)
        self._data[key] = versioned
        return versioned

    def update(self, key: str, value: VersionedValue) -> bool:
        """Merge a remote value; return True if it replaced the stored one."""
        self._sync_clock(value.timestamp)
        current = self._data.get(key)
        if current is None or _supersedes(value, current):
            self._data[key] = value
            return True
        return False

    def snapshot(self) -> dict[str, VersionedValue]:
        """Return a copy of every stored entry."""
        return dict(self._data)

    def get_all(self) -> dict[str, VersionedValue]:
        """Return a copy of every stored entry."""
        return dict(self._data)
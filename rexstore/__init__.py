"""An in-memory key-value store replicated between nodes by gossip over TCP."""

__version__ = "0.1.0"
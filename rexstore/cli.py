"""Command that starts one or more store nodes on consecutive ports."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from rexstore.config import Config
from rexstore.gossip import GossipNode
from rexstore.kvstore import KVStore
from rexstore.server import NetworkServer

logger = logging.getLogger(__name__)

DEFAULT_NUM_NODES = 1
DEFAULT_BASE_PORT = 8000
DEFAULT_HOST = "127.0.0.1"


def _u16(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"number out of range 0-65535: {value}")
    return value


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the node launcher's command line."""
    parser = argparse.ArgumentParser(
        prog="rexstore", description="Run replicated key-value store nodes."
    )
    parser.add_argument("-V", "--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument(
        "-n", "--num-nodes", type=_u16, default=DEFAULT_NUM_NODES, help="number of nodes to run"
    )
    parser.add_argument(
        "-b",
        "--base-port",
        type=_u16,
        default=DEFAULT_BASE_PORT,
        help="base port to start nodes on",
    )
    parser.add_argument("-H", "--host", default=DEFAULT_HOST, help="host to bind to")
    return parser.parse_args(argv)


def build_node_configs(num_nodes: int, base_port: int, host: str) -> list[Config]:
    """Return the configuration of each node; every node lists all others as peers."""
    if num_nodes < 0:
        raise ValueError(f"number of nodes must not be negative: {num_nodes}")
    endpoints = [f"{host}:{base_port + index}" for index in range(num_nodes)]
    return [
        Config(
            node_id=f"node-{index}",
            host=host,
            port=base_port + index,
            peers=frozenset(endpoints[:index] + endpoints[index + 1 :]),
        )
        for index in range(num_nodes)
    ]


async def run_nodes(num_nodes: int, base_port: int, host: str) -> list[str]:
    """Run the nodes until their servers stop; return the ids of nodes that failed."""
    nodes = []
    for config in build_node_configs(num_nodes, base_port, host):
        store = KVStore()
        gossip = GossipNode(config, store)
        nodes.append((config, gossip, NetworkServer(config, store, gossip)))

    for _, gossip, _ in nodes:
        gossip.start()
    try:
        results = await asyncio.gather(
            *(server.run() for _, _, server in nodes), return_exceptions=True
        )
    finally:
        for _, gossip, _ in nodes:
            await gossip.stop()

    failed = []
    for (config, _, _), result in zip(nodes, results):
        if isinstance(result, BaseException):
            logger.error("Network server error on %s: %r", config.node_id, result)
            failed.append(config.node_id)
    return failed


def main(argv: Sequence[str] | None = None) -> int:
    """Start the nodes and serve until interrupted."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        failed = asyncio.run(run_nodes(args.num_nodes, args.base_port, args.host))
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
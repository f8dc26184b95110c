# rexstore

rexstore is a small key-value store whose nodes keep their data in memory and
replicate it to each other over a gossip protocol on plain TCP. It is built
on `asyncio` and uses only the standard library.

Conflicting writes are settled by last-writer-wins. Every value carries a
logical (Lamport) timestamp and the id of the node that wrote it. The value
with the higher timestamp wins; when the timestamps are equal, the value with
the lexically greater node id wins.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Running nodes

The `rexstore` command starts one or more nodes in a single process and
serves until it is interrupted:

```
rexstore --num-nodes 3 --base-port 8000 --host 127.0.0.1
```

| Option              | Default     | Meaning                      |
|---------------------|-------------|------------------------------|
| `-n`, `--num-nodes` | `1`         | Number of nodes to run       |
| `-b`, `--base-port` | `8000`      | Port of the first node       |
| `-H`, `--host`      | `127.0.0.1` | Host every node binds to     |
| `-V`, `--version`   |             | Print the version and exit   |

Node `i` is named `node-i`, listens on `base-port + i` and lists every other
node started by the same command as a peer. The command exits with status 1
if a node's server failed, and 0 otherwise.

While it runs, each node

* pings every active peer once a second,
* every two seconds pushes a full snapshot of its data to one active peer
  picked at random,
* every five seconds retries inactive peers whose backoff has elapsed.

A failed ping or push counts a failure against an active peer; after three
failures the peer is moved to the inactive set. A successful ping or push
marks the peer active and resets its failure count. The backoff for an
inactive peer is one second doubled for each recorded failure (the exponent
is capped at 10), measured from the last recorded retry of that peer; a peer
that has never been retried has no recorded attempt and is therefore not
retried by this check.

## Talking to a node

The `rexstore-client` command sends one request to a node and prints the
reply as indented JSON:

```
rexstore-client --server 127.0.0.1:8000 set greeting hello
rexstore-client --server 127.0.0.1:8000 get greeting
rexstore-client peers
rexstore-client health
rexstore-client ping --sender client
```

`-s`/`--server` defaults to `127.0.0.1:8000`. `set` takes `-n`/`--node-id`
(default `client`) to name the writer; `ping` takes `-s`/`--sender`
(default `client`). If the node cannot be reached, the command prints
`Error: ...` to standard error and exits with status 1.

A `set` stamps the value with the receiving node's next timestamp. The value
reaches the other nodes through the periodic snapshot pushes.

## Wire protocol

Every frame is a 4-byte big-endian length followed by that many bytes of
UTF-8 JSON. A frame announced as larger than 10,000,000 bytes is refused and
the connection is dropped. A connection carries any number of
request/response pairs.

Requests:

```
{"Get": {"key": "greeting"}}
{"Set": {"key": "greeting", "value": "hello", "node_id": "client"}}
"GetPeers"
"Health"
{"Gossip": {"Ping": {"sender": "127.0.0.1:9000"}}}
```

Gossip messages are `Update` (`updates`), `"SyncRequest"`, `SyncResponse`
(`data`), `Ping` (`sender`) and `Pong` (`sender`, `members`). Stored values
travel as `{"value": ..., "timestamp": ..., "node_id": ...}`.

A node answers gossip messages as follows:

| Received       | Effect                                   | Reply                                |
|----------------|------------------------------------------|--------------------------------------|
| `Update`       | merges every entry into its store        | `Ping` with its own endpoint         |
| `SyncRequest`  | none                                     | `SyncResponse` with all of its data  |
| `SyncResponse` | merges every entry into its store        | `Ping` with its own endpoint         |
| `Ping`         | none                                     | `Pong` listing its active peers      |
| `Pong`         | none                                     | `Ping` with its own endpoint         |

Responses are either `{"Ok": <data or null>}` or
`{"Error": {"message": "..."}}`, where the data is one of `Value`
(`key`, `value`, `found`), `SetResult` (`key`, `value`, `timestamp`),
`GossipMessage`, `PeerList` (`peers`) or `HealthInfo`
(`status`, `node_id`, `endpoint`). A request that is not valid JSON or not a
known command gets an `Error` whose message starts with
`Invalid command format:`, and the connection stays open.

## Using it as a library

* `rexstore.config` – `Config`: a node's `node_id`, `host`, `port` and
  `peers`, and `endpoint()`.
* `rexstore.kvstore` – `KVStore` (`get`, `set`, `update`, `snapshot`,
  `get_all`) and `VersionedValue`.
* `rexstore.messages` – the message, command and response classes,
  `ProtocolError`, and the `*_to_json` / `*_from_json` functions.
* `rexstore.protocol` – `read_frame`, `write_frame` and `GossipTcpClient`
  (`send_command`, `send_gossip`, `ping`, `close`; usable with `async with`).
* `rexstore.gossip` – `GossipNode`: peer tracking, `process_gossip`, and the
  periodic tasks started with `start()` and stopped with `await stop()`.
* `rexstore.server` – `process_command`, `GossipTcpServer` and
  `NetworkServer` (`run`, `shutdown`).
* `rexstore.cli` and `rexstore.client_cli` – the two commands above.

A single node and a client in one program:

```python
import asyncio

from rexstore.config import Config
from rexstore.gossip import GossipNode
from rexstore.kvstore import KVStore
from rexstore.messages import GetCommand, SetCommand
from rexstore.protocol import GossipTcpClient
from rexstore.server import NetworkServer


async def demo():
    config = Config(node_id="node-0", host="127.0.0.1", port=8000)
    store = KVStore()
    server = NetworkServer(config, store, GossipNode(config, store))
    serving = asyncio.create_task(server.run())
    await server.tcp_server.started.wait()

    async with GossipTcpClient(config.endpoint()) as client:
        print(await client.send_command(SetCommand("greeting", "hello", "client")))
        print(await client.send_command(GetCommand("greeting")))

    server.shutdown()
    await serving


asyncio.run(demo())
```

## What it does not do

* Data lives only in memory; nothing is written to disk, and a node's data is
  gone when the process exits.
* Peers come only from each node's configuration. The member lists carried
  in `Pong` replies are not used to discover new peers.
* `rexstore` runs all of its nodes in one process; there is no option to
  start a single node that joins peers running elsewhere.
* Keys cannot be deleted.
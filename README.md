# phiminerapi

A small library with no third-party dependencies for exposing the state of a
mining farm over the network, plus the everyday helpers such a service needs.
Python 3.10 or later is required.

## What is in the package

- `phiminerapi.server` — `ApiServer` listens on a TCP port and serves each
  client on its own thread. Clients speak line-delimited JSON-RPC 2.0; the same
  port also answers plain HTTP `GET /` and `GET /getstat1` with an HTML status
  page that refreshes itself every 30 seconds. `ApiConnection` holds the
  protocol state of one client without any socket (`feed(data)` returns the
  bytes to send back), and `build_http_response` composes an HTTP reply.
- `phiminerapi.rpc` — `RpcSession` handles requests with optional password
  authentication and a read-only mode. `MinerControl` is the abstract interface
  the session calls into; `RpcError` carries a JSON-RPC error code and message.
- `phiminerapi.stats` — dataclasses describing a telemetry `Snapshot`
  (`Telemetry`, `MinerTelemetry`, `SolutionCounts`, `SensorReadings`,
  `DeviceDescriptor`, `MinerInfo`) and the report builders `miner_stat1`,
  `miner_stat_detail`, `miner_stat_detail_per_miner` and
  `render_stat_detail_html`.
- `phiminerapi.commondata` — hex and big-endian conversion, difficulty/target
  arithmetic (`get_target_from_diff`, `get_hashes_to_target`), human-readable
  scaling (`get_formatted_hashes`, `get_formatted_memory`,
  `get_formatted_elapsed`) and padding.
- `phiminerapi.fixedhash` — immutable fixed-size hashes `H64`, `H128`, `H160`,
  `H256`, `H512`.
- `phiminerapi.byteview` — `cropped`, `copy_into`, `populate`, `cleanse` and
  `overlaps` for raw byte buffers.
- `phiminerapi.log` — coloured channel logging (`cnote`, `cwarn`, `log`) with
  process-wide switches in `default_settings`.
- `phiminerapi.worker` — `Worker`, a restartable background thread.

## Formatting and hex helpers

```python
from phiminerapi.commondata import (
    HexPrefix,
    from_hex,
    get_formatted_hashes,
    pad_left,
    to_hex,
)

get_formatted_hashes(1500000.0)        # '1.50 Mh'
pad_left("7", 3, "0")                  # '007'
to_hex(b"Ai", 2, HexPrefix.DONT_ADD)   # '4169'
from_hex("0x4169", False)              # b'Ai'
```

Invalid hex input raises `BadHexCharacter` when `strict` is true; otherwise an
empty result is returned.

## Fixed-size hashes

```python
from phiminerapi.fixedhash import H256

header = H256.from_int(1)
header.hex()            # 64 hex digits, ending in '01'
header.abridged()       # first four bytes in hex followed by an ellipsis
int(header)             # 1
bool(H256.from_int(0))  # False: an all-zero hash is empty
```

Hashes compare byte-wise, support `^`, `|`, `&` and `~`, and are hashable.
`H256.from_hex` gives the zero hash when the decoded length is wrong.

## Running the API server

The server needs an object implementing `phiminerapi.rpc.MinerControl`: it
supplies the `Snapshot` for the reports and carries out control requests
(restart, reboot, pause a device, change pool connections, set the nonce
scrambler).

```python
from phiminerapi.server import ApiServer

password = "password"

with ApiServer(control, "127.0.0.1", 3333, password=password,
               server_name="phiminerapi 1.2.4") as server:
    print("listening on", server.bound_port)
    ...
```

- A **negative port** starts the server read-only on the absolute port number:
  write methods such as `miner_restart` answer with error `-32601`
  ("Method not available").
- A **port of 0** leaves the server stopped.
- A port that cannot be bound is logged as a warning and the server stays
  stopped (`is_running` is false).
- With a non-empty password, clients must first call `api_authorize` with
  `{"psw": ...}` in `params`; every other method answers `-403` until they do,
  and a wrong password answers `-401`.

Supported methods: `miner_getstat1`, `miner_getstatdetail`, `miner_ping`,
`miner_shuffle`, `miner_restart`, `miner_reboot`, `miner_getconnections`,
`miner_addconnection`, `miner_setactiveconnection`, `miner_removeconnection`,
`miner_getscramblerinfo`, `miner_setscramblerinfo`, `miner_pausegpu` and
`miner_setverbosity`. Anything else answers `-32601` ("Method not found").

A client sends one JSON request per line:

```json
{"id": 1, "jsonrpc": "2.0", "method": "miner_ping"}
```

and receives one compact JSON response per line, with sorted keys:

```json
{"id":1,"jsonrpc":"2.0","result":"pong"}
```

A line that is not valid JSON is answered with an error whose `errorcode` is
`"-32700"`. HTTP requests get a single response and the connection is closed;
methods other than `GET` answer 405 and unknown paths 404.

## Background workers

Subclass `phiminerapi.worker.Worker`, implement `work_loop`, and return from it
once `should_stop()` is true. `start_working()` starts (or resumes) the thread
and waits until it runs, `trigger_stop_working()` asks it to stop,
`stop_working()` waits for the loop to return, and `close()` — or leaving the
`with` block — ends the thread for good. An exception escaping `work_loop` is
logged; with `exit_on_error=True` the process is also sent `SIGTERM`.

## What the package does not do

It does not mine, talk to GPUs or other devices, or connect to pools. All farm
state and every control action comes from the `MinerControl` object you
provide. There is no command-line program: the server is started from your own
code.
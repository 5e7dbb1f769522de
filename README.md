# searchchannel

`searchchannel` is a line-based TCP channel server for a schema-less search
backend. It handles the connection handshake, password checking, line framing,
command dispatch, error reporting and runtime statistics, and reads its settings
from a TOML configuration file. It needs nothing beyond the Python standard
library (Python 3.11 or later).

Clients start a session in one of three modes:

- **search**, whose commands are `QUERY`, `SUGGEST`, `PING`, `HELP`, `QUIT`;
- **ingest**, whose commands are `PUSH`, `POP`, `COUNT`, `FLUSHC`, `FLUSHB`,
  `FLUSHO`, `PING`, `HELP`, `QUIT`;
- **control**, whose commands are `TRIGGER`, `INFO`, `PING`, `HELP`, `QUIT`.

## What it does not do

The package holds no index and no storage. Out of the box it answers `PING`,
`HELP`, `QUIT` in every mode and `INFO` in control mode. The other commands of
each mode (`QUERY`, `SUGGEST`, `PUSH`, `POP`, `COUNT`, `FLUSHC`, `FLUSHB`,
`FLUSHO`, `TRIGGER`) are recognised but reply `ERR internal_error` unless you
supply a dispatcher for them (see *Plugging in commands* below). The store
counters reported by `INFO` are zero unless you supply a function that returns
them.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running the server

```
searchchannel --config config.cfg
```

`--config` (or `-c`) defaults to `./config.cfg`. The server listens on the
configured address (by default `[::1]:1491`) and serves each client on its own
thread. If the configuration cannot be loaded, or the log level is unknown, the
error is printed and the command exits with status 1; it also exits with
status 1 if the address cannot be bound. On Ctrl-C the channel is marked
unavailable and the command returns.

## Configuration

The configuration file is TOML. Every key has a default, but every section must
be present, so a minimal file is just its section headers. A full file with the
default values:

```toml
[server]
log_level = "error"

[channel]
inet = "[::1]:1491"
tcp_timeout = 300
auth_password = "password"

[channel.search]
query_limit_default = 10
query_limit_maximum = 100
query_alternates_try = 4
suggest_limit_default = 5
suggest_limit_maximum = 20

[store.kv]
path = "./data/store/kv/"
retain_word_objects = 1000

[store.kv.pool]
inactive_after = 1800

[store.kv.database]
flush_after = 900
compress = true
parallelism = 2
max_compactions = 1
max_flushes = 1
write_buffer = 16384
write_ahead_log = true

[store.fst]
path = "./data/store/fst/"

[store.fst.pool]
inactive_after = 300

[store.fst.graph]
consolidate_after = 180
max_size = 2048
max_words = 250000
```

`auth_password` has no default: when it is left out, no password is asked for.
`max_files` under `[store.kv.database]` is optional as well.

`log_level` is one of `off`, `error`, `warn`, `info`, `debug`, `trace`.
`inet` is an IPv4 address and port (`0.0.0.0:1491`) or a bracketed IPv6
address and port (`[::1]:1491`).

The string settings `log_level`, `inet`, `auth_password` and the two store
`path`s may be written as `"${env.NAME}"`; the value is then read from the
environment variable `NAME`, and loading fails if it is not set.

Integer settings are checked against their range, and the loaded configuration
is checked as a whole: `write_buffer` must not be zero, `flush_after` must be
strictly lower than `store.kv.pool.inactive_after`, and `consolidate_after`
strictly lower than `store.fst.pool.inactive_after`. Any failure raises
`searchchannel.config.ConfigError`.

From Python:

```python
from searchchannel.config import load_config, parse_config

config = load_config("config.cfg")
print(config.channel.search.query_limit_maximum)
print(config.channel.inet)  # ('::1', 1491)
```

`parse_config(text)` does the same from a string.

## The protocol

Lines end with `\r\n` when sent by the server; the server splits incoming data
on `\n`. On connecting, the client receives:

```
CONNECTED <searchchannel v1.0.0>
```

It then picks a mode, adding the password when one is configured:

```
START search password
```

The server answers `STARTED search protocol(1) buffer(20000)`, or
`ENDED <reason>` and closes the connection. Reasons are `closed`,
`not_recognized`, `invalid_mode`, `authentication_required`,
`authentication_failed`, `timed_out`, `connection_aborted`, `interrupted` and
`unknown`. Before a session starts the socket times out after 10 seconds;
afterwards after `tcp_timeout` seconds.

After that every line is one command; command names are case-insensitive and
empty lines get no reply.

| Command         | Reply                                             |
|-----------------|---------------------------------------------------|
| `PING`          | `PONG`                                            |
| `HELP`          | `RESULT manuals(commands)`                        |
| `HELP commands` | `RESULT commands(...)`, the commands of the mode  |
| `QUIT`          | `ENDED quit`, then the connection closes          |
| `INFO` (control)| one `RESULT` line of statistics                   |

```
RESULT uptime(42) clients_connected(1) commands_total(7) command_latency_best(1) command_latency_worst(3) kv_open_count(0) fst_open_count(0) fst_consolidate_count(0)
```

Uptime is in seconds, latencies in milliseconds; commands that take 0 ms do not
count towards the best latency.

Errors come back as `ERR <reason>`: `unknown_command`, `not_found`,
`query_error`, `internal_error`, `shutting_down`, or one with a detail such as
`invalid_format(PING)`, `policy_reject(...)`, `invalid_meta_key(FOO[bar])` or
`invalid_meta_value(LIMIT[x])`. If more than 20002 bytes are pending without a
line end, the connection is closed.

## Plugging in commands

`searchchannel.commands` has the argument parsers a command needs:
`parse_text_parts` reads a `"quoted text"` spanning several parts (inside it
`\"` is a quote and `\n` a newline), and `parse_next_meta_part` reads one
`KEY(VALUE)` option such as `LIMIT(20)`.

A dispatcher takes the iterator of the remaining parts of the line and returns
a list of `searchchannel.responses.ChannelCommandResponse`, or raises
`ChannelCommandError`:

```python
from searchchannel.commands import parse_text_parts
from searchchannel.mode import ChannelMode
from searchchannel.responses import (
    INVALID_FORMAT, ChannelCommandError, ChannelCommandResponse, ResponseKind,
)
from searchchannel.server import ChannelServer


def echo_push(parts):
    collection, bucket, obj = next(parts, None), next(parts, None), next(parts, None)
    text = parse_text_parts(parts)
    if None in (collection, bucket, obj, text):
        raise ChannelCommandError(INVALID_FORMAT, 'PUSH <collection> <bucket> <object> "<text>"')
    return [ChannelCommandResponse(ResponseKind.OK)]


server = ChannelServer(dispatchers={ChannelMode.INGEST: {"PUSH": echo_push}})
server.serve_forever()
```

`ChannelServer` also takes a `config`, a shared `StatisticsRegistry`, and
`store_counts`, a function returning the three store counters for `INFO`.
`server.teardown()` makes every further command reply `ERR shutting_down`.
A single session can be driven without a socket through
`searchchannel.message.MessageHandler`, whose `on(line_bytes)` returns whether
to continue and the bytes to send back.
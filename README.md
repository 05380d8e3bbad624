# akkonstore

A storage library that answers one question quickly: *has this identifier
been seen before?*

Identifiers are 64-character SHA-256 hex strings. Each one goes into a Bloom
filter that is backed by an exact set. It can also be written to one of
several SQLite shard files. A master database keeps the catalogue of shards
and stores periodic health metrics. Identifiers stored in the shards can be
loaded back into a fresh index, so the index can be rebuilt after a restart.

## Modules

- `akkonstore.hashing`: `sha256(data)` returns the lowercase hex SHA-256
  digest of text or bytes. Text is encoded as UTF-8.

- `akkonstore.index`: `BloomFilter(size_in_bits, num_hashes)` and
  `QueryEngine(expected_items)`.
  - The filter takes its bit positions from the 32-bit chunks of the item's
    SHA-256 digest. There are at most 8 such chunks.
  - `QueryEngine.query` returns a `QueryResult`:
    - `DEFINITELY_NO` when the filter rules the item out.
    - `DEFINITELY_YES` when the exact set holds the item.
    - `PROBABLY_YES` when the filter gives a false positive.
  - The engine is guarded by a lock and can be used from several threads.

- `akkonstore.arena`: `ArenaAllocator(capacity, on_alarm)` is a bump allocator
  over a fixed buffer.
  - `allocate(size)` returns an offset that is aligned to 64 bytes. The block
    sits between two 64-byte canaries.
  - `read` and `write` access the buffer.
  - `reset()` forgets every allocation.
  - `verify()` raises `MemoryCorruptionError` when a canary has been
    overwritten.
  - `check_access()` raises `AccessViolationError` when an access falls
    outside the arena.
  - A full arena raises `ArenaExhaustedError`.
  - The `on_alarm` callback receives the message before corruption or a
    violation is raised.

- `akkonstore.memory`: `MemoryManager` holds one arena per `RuntimeDomain`:
  - `RUNTIME` has 10 MB.
  - `REQUEST` has 5 MB.
  - `RESERVED` has 1 MB.
  - `VERIFICATION` has 2 MB.
  - `LIFECYCLE` has 2 MB.

  It offers `domain()`, `reset_domain()`, `stats()` and `print_stats()`.

- `akkonstore.monitor`: `SystemMonitor(debug, stream)` formats log lines and
  emits them.
  - Outside debug mode only `ERROR` lines are emitted.
  - `set_callback` registers a listener that receives every emitted line.
  - `start_watchdog(log_path)` sends later lines through a pipe to a
    background watchdog thread, which appends them to the log file
    (`akkon_server.log` by default) and echoes them to the stream.
  - `close()` drains the watchdog and stops it.

- `akkonstore.health`: `score_health(...)` computes a reliability score from
  0 to 100. It takes into account free disk space, RAM use and a drive health
  flag.
  - `HealthMonitor.check_health()` measures the free space in the database
    directory and returns a `HealthStats`.
  - The drive check is cached for five minutes. On macOS it reads the SMART
    status reported by `diskutil`.
  - When free space drops below 50 MB, the monitor sets `lockdown_requested`.

- `akkonstore.storage`: `DataStorage` writes `DbEntity(uuid, identifier, pwk)`
  rows to its shard databases, taking them in turn.
  - It rejects an entity that has a uuid but no identifier.
  - It refuses writes while the database directory has less than 100 MB free.
  - `load_all_identifiers(engine)` fills a `QueryEngine` from every shard.
  - It can be used as a context manager.

- `akkonstore.masterdb`: `MasterDB(db_dir)` manages `master.db`.
  - It can register shards, create them, list them and find the missing ones
    (`DatabaseInfo`).
  - It can recreate missing shards and import unregistered `.db` files with
    the status `unmapped`.
  - It records metrics (`insert_metrics`, `last_total_queries`).

- `akkonstore.api`: `RestApi.handle(request)` takes a raw HTTP request string
  and returns the response string. It returns `None` when no endpoint matches.
  - `OPTIONS ...` answers with a 204 CORS preflight response.
  - `POST /api/v1/insert` and `POST /api/v1/create` take a JSON body with
    `identifier` and `pwk`.
  - `POST /api/<identifier><pwk>` is the short form of an insert.
  - `GET /api/v1/exists?identifier=...` and `GET /api/<identifier>` query an
    identifier.
  - Inserts answer with one of these statuses:
    - 200 on success.
    - 400 for fields of the wrong length.
    - 409 for a duplicate identifier.
    - 507 when free space is below 100 MB.
  - `handle_batch(payload)` answers a JSON `exists_batch` message.
  - `total_queries()` returns `lifetime_base` plus the queries answered since
    start-up.

## Example

```python
from akkonstore.api import RestApi
from akkonstore.hashing import sha256
from akkonstore.index import QueryEngine, QueryResult

engine = QueryEngine(100)
engine.insert("user1@example.com")
assert engine.query("user1@example.com") is QueryResult.DEFINITELY_YES
assert engine.query("user3@example.com") is QueryResult.DEFINITELY_NO

api = RestApi(engine, free_space=lambda: 10**12)
identifier = sha256("user1@example.com")
pwk = sha256("placeholder")
print(api.handle(f"POST /api/{identifier}{pwk} HTTP/1.1\r\n\r\n"))
print(api.handle(f"GET /api/{identifier} HTTP/1.1\r\n\r\n"))
```

```python
from akkonstore.memory import MemoryManager, RuntimeDomain

manager = MemoryManager()
manager.domain(RuntimeDomain.REQUEST).allocate(128)
manager.print_stats()
manager.reset_domain(RuntimeDomain.REQUEST)
```

## What this package does not do

- There is no network server and no command-line program. `RestApi` turns
  request strings into response strings, and you supply the socket layer.
- There is no WebSocket handshake or frame encoding. `handle_batch` works on
  message payloads that have already been decoded.
- No static files are served.
- There is no periodic metrics broadcast loop.
- No lockdown is enforced. `HealthMonitor.lockdown_requested` and the arena's
  `on_alarm` callback only report conditions, and acting on them is left to the
  caller.

## Requirements

Python 3.10 or later. There are no third-party runtime dependencies, because
storage uses the standard library's `sqlite3`.
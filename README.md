# sqd-worker

Building blocks of a data worker node. The package reads and checks a
local store of data chunks, downloads chunk directories all-or-nothing,
indexes the datasets assigned to the worker, limits how many requests
each gateway operator may make, keeps a log of executed queries in
SQLite and reads the worker's configuration from flags and environment.

Python 3.10 or later is required.

## Chunk layout

Chunks live on disk as `<top>/<first>-<last>-<hash>`, with every block
number written as ten digits (`sqd_worker.layout`).

```python
from sqd_worker.layout import DataChunk, BlockNumber

chunk = DataChunk.from_path("0000001000/0000001024-0000002047-0xabcdef")
assert chunk.path() == "0000001000/0000001024-0000002047-0xabcdef"
assert BlockNumber.parse("0000000050") == BlockNumber(50)
assert str(BlockNumber(50)) == "0000000050"
```

Chunks compare equal when all their fields match and are ordered by
`last_block`. `read_all_chunks(fs)` lists every chunk under a
`Filesystem` (for example `sqd_worker.filesystem.LocalFs`), returns them
ordered, and raises `LayoutError` if a chunk's range is reversed, starts
before its top directory, reaches into the next top directory or
overlaps its neighbour. `clean_chunk_ancestors(path)` removes the range
and dataset directories above a removed chunk when they are empty.

`sqd_worker.filesystem` also has `add_temp_prefix(path)`, which renames
the last path component to `temp-<milliseconds>-<name>`.

## Atomic directories and downloads

`sqd_worker.guard.FsGuard(path)` creates a new directory (failing if the
path exists) and removes it again on `close()` or when its `with` block
ends, unless `persist(target)` has moved it into place or `release()`
has given it up. `FsGuard.own(path)` takes over an existing directory.

`sqd_worker.downloader` builds on it:

- `download_one(url, dst_path, client)` streams one URL into a file with
  an `httpx.AsyncClient`.
- `download_dir(files, dst_dir, client)` downloads all files into a
  temporary sibling directory and renames it to `dst_dir` only when
  every file arrived.
- `ChunkDownloader` runs chunk downloads in the background.
  `start_download(chunk, dst, datasets_index)` starts one,
  `await downloaded()` returns the next finished `(chunk, error)` pair
  (`error` is `None` on success), `cancel(chunk)` asks a download to stop
  and `download_count()` tells how many are running. The timeouts come
  from the `S3_TIMEOUT` (default 60) and `S3_READ_TIMEOUT` (default 3)
  environment variables, in seconds.

## Assignments

`sqd_worker.datasets_index.DatasetsIndex.from_assignment(datasets, headers)`
takes `AssignedDataset` objects (id, base URL, `AssignedChunk` list) and
a mapping of HTTP headers; invalid headers are dropped and logged.

```python
from sqd_worker.datasets_index import AssignedChunk, AssignedDataset, DatasetsIndex

index = DatasetsIndex.from_assignment(
    [
        AssignedDataset(
            id="eth-main",
            base_url="https://data.example.com/eth/",
            chunks=[
                AssignedChunk(
                    id="0000001000/0000001024-0000002047-0xabcdef",
                    files={"blocks.parquet": ""},
                )
            ],
        )
    ],
    {},
)
chunks = index.create_chunks_set()   # set of ChunkRef
```

`list_files(dataset, chunk)` returns the `RemoteFile` (URL and name) list
for a chunk, or `None` if it is not indexed.

`sqd_worker.chunkref.ChunkRef` pairs a dataset with a `DataChunk`;
`to_ranges(chunks)` groups chunk references into per-dataset lists of
`(first_block, last_block)` ranges.

`sqd_worker.chunk_ordinals.Ordinals.from_assignment(datasets, assignment_id)`
numbers the assigned chunks consecutively. `OrdinalsHolder` keeps
assignments by the Unix time they take effect; `get_active_ordinals()`
returns the one in force now and drops those a later one has replaced.

## Rate limiting

`sqd_worker.rate_limiter.RateLimiter` keeps a token bucket (at most three
tokens) per gateway operator, refilled at `epoch_length / allocated
computation units`. Feed it `GatewayCluster` objects with
`update_allocations(clusters, epoch_length)`.
`try_run_request(gateway_id)` returns a `RateLimitStatus` whose `kind` is
`SPENT`, `PAUSED` or `NO_ALLOCATION` and whose `retry_after()` gives the
seconds to wait, if any; `refund(gateway_id)` returns a token for a
request that was not served.

## Query logs

`sqd_worker.logs_storage.LogsStorage` keeps encoded executed-query
records in SQLite and pages them out ordered by timestamp and query id
within a byte budget:

```python
from sqd_worker.logs_storage import LogsStorage

storage = await LogsStorage.open(":memory:")
await storage.save_log("query-id", 10000, encoded_record)
page = await storage.get_logs(10000, 11000, None, 1_000_000)
# page.queries_executed is a list of bytes, page.has_more a bool
await storage.cleanup(10100)   # delete records older than 10100 ms
await storage.close()
```

The records are stored and returned as the bytes given to `save_log`;
encoding and decoding them is up to the caller.

## Configuration

`sqd_worker.cli.parse_args(argv, environ)` reads the worker's options
(`--data-dir`, `--prometheus-port`, `--p2p-port`, `--public-ip`,
`--network`, `--boot-nodes` and others, each with an environment
variable fallback) into an `Args`. `Args.fill_defaults()` fills in the
boot nodes, listen address, public address and assignment URL for the
chosen `Network`.

## Helpers

`sqd_worker.util` has `sha3_256`, `lookahead` (each item with the next
one), `UseOnce` (a value that can be taken once), `run_all` (run
awaitables together and set an event as soon as one finishes) and
`timestamp_now_ms`. `sqd_worker.dataset` encodes dataset names as
unpadded URL-safe base64 and decodes them back.

## What the package does not do

There is no command that starts a worker and no HTTP server: nothing
here serves status, peer id or metrics, and there is no metrics
registry. There is no bookkeeping of which chunks are available,
downloading or wanted, so deciding what to download or delete is left to
the caller. Query execution and peer-to-peer networking are not part of
the package either.
"""Concurrent, all-or-nothing downloads of chunk directories."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import httpx

from .chunkref import ChunkRef
from .datasets_index import DatasetsIndex, RemoteFile
from .filesystem import add_temp_prefix
from .guard import FsGuard

PathLike = Union[str, "os.PathLike[str]"]


def _env_seconds(name: str, default: int) -> int:
    try:
        return int(os.environ[name])
    except (KeyError, ValueError):
        return default


S3_TIMEOUT = _env_seconds("S3_TIMEOUT", 60)
S3_READ_TIMEOUT = _env_seconds("S3_READ_TIMEOUT", 3)

DownloadResult = Tuple[ChunkRef, Optional[BaseException]]


class DownloadError(Exception):
    """A download was abandoned before it finished."""


class ChunkDownloader:
    """Runs chunk downloads in the background and reports them as they finish."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport
        self._tasks: Dict[ChunkRef, "asyncio.Task[DownloadResult]"] = {}
        self._cancel_events: Dict[ChunkRef, asyncio.Event] = {}

    def start_download(
        self, chunk: ChunkRef, dst: PathLike, datasets_index: DatasetsIndex
    ) -> None:
        """Start downloading ``chunk`` into the directory ``dst``."""
        if chunk in self._cancel_events or chunk in self._tasks:
            raise RuntimeError(f"Chunk {chunk} is already being downloaded")
        files = datasets_index.list_files(chunk.dataset, chunk.chunk)
        if files is None:
            raise KeyError(f"Dataset {chunk.dataset} not found")
        cancel_event = asyncio.Event()
        self._cancel_events[chunk] = cancel_event
        self._tasks[chunk] = asyncio.ensure_future(
            self._run(chunk, files, Path(dst), dict(datasets_index.headers), cancel_event)
        )

    async def _run(
        self,
        chunk: ChunkRef,
        files: List[RemoteFile],
        dst: Path,
        headers: Dict[str, str],
        cancel_event: asyncio.Event,
    ) -> DownloadResult:
        timeout = httpx.Timeout(S3_TIMEOUT, read=S3_READ_TIMEOUT)
        async with httpx.AsyncClient(
            headers=headers, timeout=timeout, transport=self._transport
        ) as client:
            download = asyncio.ensure_future(download_dir(files, dst, client))
            stop = asyncio.ensure_future(cancel_event.wait())
            done, _ = await asyncio.wait(
                {download, stop},
                timeout=S3_TIMEOUT * len(files),
                return_when=asyncio.FIRST_COMPLETED,
            )
            stop.cancel()
            if download in done:
                return chunk, download.exception()
            download.cancel()
            try:
                await download
            except BaseException:
                pass
            if stop in done:
                return chunk, DownloadError("Download cancelled")
            return chunk, DownloadError("Download timed out")

    async def downloaded(self) -> DownloadResult:
        """Wait for the next finished download; never returns if none is running."""
        if not self._tasks:
            await asyncio.get_running_loop().create_future()
        done, _ = await asyncio.wait(
            set(self._tasks.values()), return_when=asyncio.FIRST_COMPLETED
        )
        task = next(iter(done))
        chunk, error = task.result()
        del self._tasks[chunk]
        self._cancel_events.pop(chunk, None)
        return chunk, error

    def download_count(self) -> int:
        return len(self._tasks)

    def cancel(self, chunk: ChunkRef) -> None:
        """Ask the download of ``chunk`` to stop; it is still reported by ``downloaded``."""
        event = self._cancel_events.pop(chunk, None)
        if event is not None:
            event.set()


async def download_dir(
    files: Iterable[RemoteFile], dst_dir: PathLike, client: httpx.AsyncClient
) -> None:
    """Download every file into ``dst_dir``, or leave nothing behind on failure.

    Parent directories are never removed, so an empty one may remain.
    """
    dst_dir = Path(dst_dir)
    tmp = add_temp_prefix(dst_dir)
    with FsGuard(tmp) as guard:
        tasks = [
            asyncio.ensure_future(download_one(file.url, tmp / file.name, client))
            for file in files
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        guard.persist(dst_dir)


async def download_one(url: str, dst_path: PathLike, client: httpx.AsyncClient) -> None:
    """Stream ``url`` into the file ``dst_path``."""
    dst_path = Path(dst_path)
    try:
        writer = open(dst_path, "wb")
    except OSError as err:
        raise OSError(f"Couldn't create file '{dst_path}'") from err
    with writer:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async for piece in response.aiter_bytes():
                writer.write(piece)
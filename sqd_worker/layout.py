"""On-disk layout of data chunks: ``<top>/<first>-<last>-<hash>``."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from itertools import pairwise
from pathlib import Path
from typing import List, Union

from .filesystem import Filesystem
from .util import lookahead

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_DIGITS = re.compile(r"\+?[0-9]+")
_CHUNK_RE = re.compile(r"(\d{10})/(\d{10})-(\d{10})-(\w{5,8})\Z")


class LayoutError(ValueError):
    """The chunk layout on disk is inconsistent."""


class BlockNumber(int):
    """A block number, written as a 10-digit zero-padded decimal."""

    @classmethod
    def parse(cls, text: str) -> "BlockNumber":
        """Parse a 10-character decimal string."""
        if len(text) != 10:
            raise ValueError(f"String is not 10-digit decimal number: {text}")
        if not _DIGITS.fullmatch(text):
            raise ValueError(f"Invalid block number: {text}")
        return cls(int(text))

    def __str__(self) -> str:
        return f"{int(self):010d}"

    def __format__(self, spec: str) -> str:
        return str(self) if not spec else int.__format__(self, spec)

    def __repr__(self) -> str:
        return f"BlockNumber({int(self)})"


@dataclass(frozen=True, eq=True, repr=False)
class DataChunk:
    """A range of blocks stored under a top-level directory.

    Equality compares all fields; ordering compares ``last_block`` only.
    """

    top: BlockNumber
    first_block: BlockNumber
    last_block: BlockNumber
    last_hash: str

    def __post_init__(self) -> None:
        for name in ("top", "first_block", "last_block"):
            object.__setattr__(self, name, BlockNumber(getattr(self, name)))

    def path(self) -> str:
        return f"{self.top}/{self.first_block}-{self.last_block}-{self.last_hash}"

    @classmethod
    def from_path(cls, dirname: str) -> "DataChunk":
        """Parse a chunk from a path ending in ``<top>/<first>-<last>-<hash>``."""
        match = _CHUNK_RE.search(str(dirname))
        if match is None:
            raise ValueError(f"Could not parse chunk dirname '{dirname}'")
        top, first, last, last_hash = match.groups()
        return cls(
            top=BlockNumber.parse(top),
            first_block=BlockNumber.parse(first),
            last_block=BlockNumber.parse(last),
            last_hash=last_hash,
        )

    def __str__(self) -> str:
        return self.path()

    def __repr__(self) -> str:
        return f"DataChunk({self.path()!r})"

    def __lt__(self, other: "DataChunk") -> bool:
        return self.last_block < other.last_block

    def __le__(self, other: "DataChunk") -> bool:
        return self.last_block <= other.last_block

    def __gt__(self, other: "DataChunk") -> bool:
        return self.last_block > other.last_block

    def __ge__(self, other: "DataChunk") -> bool:
        return self.last_block >= other.last_block


async def _list_top_dirs(fs: Filesystem) -> List[BlockNumber]:
    tops = []
    for entry in await fs.ls_root():
        try:
            tops.append(BlockNumber.parse(Path(entry).name))
        except ValueError:
            continue
    return sorted(tops)


async def _list_chunks(fs: Filesystem, top: BlockNumber) -> List[DataChunk]:
    chunks = []
    for entry in await fs.ls(str(top)):
        try:
            chunks.append(DataChunk.from_path(str(entry)))
        except ValueError:
            continue
    return sorted(chunks)


async def _read_top(fs: Filesystem, top: BlockNumber, next_top) -> List[DataChunk]:
    chunks = await _list_chunks(fs, top)
    for chunk in chunks:
        if chunk.first_block > chunk.last_block:
            raise LayoutError(
                f"Invalid data chunk {chunk}: {chunk.first_block} > {chunk.last_block}"
            )
        if chunk.first_block < top:
            raise LayoutError(f"Invalid data chunk {chunk}: {chunk.first_block} < {top}")
        if next_top is not None and next_top <= chunk.last_block:
            raise LayoutError(
                f"Invalid data chunk {chunk}: range overlaps with {next_top} top dir"
            )
    for current, following in pairwise(chunks):
        if current.last_block >= following.first_block:
            raise LayoutError(f"Overlapping ranges: {current} and {following}")
    return chunks


async def read_all_chunks(fs: Filesystem) -> List[DataChunk]:
    """Read and validate every chunk in ``fs``, ordered by block range."""
    tops = await _list_top_dirs(fs)
    results = await asyncio.gather(
        *(_read_top(fs, top, next_top) for top, next_top in lookahead(tops)),
        return_exceptions=True,
    )
    chunks: List[DataChunk] = []
    for result in results:
        if isinstance(result, BaseException):
            raise result
        chunks.extend(result)
    return chunks


def _is_dir_empty(path: Path) -> bool:
    try:
        with os.scandir(path) as entries:
            return next(entries, None) is None
    except OSError:
        return False


def clean_chunk_ancestors(path: PathLike) -> None:
    """Remove the range dir and dataset dir above ``path`` if they are empty."""
    for directory in list(Path(path).parents)[:2]:
        if str(directory) == ".":
            continue
        if _is_dir_empty(directory):
            logger.info("Removing empty dir '%s'", directory)
            directory.rmdir()
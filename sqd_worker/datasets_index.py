"""Index of assigned datasets: where each chunk's files can be downloaded from."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set
from urllib.parse import urljoin, urlsplit

from .chunkref import ChunkRef
from .dataset import Dataset
from .layout import DataChunk

logger = logging.getLogger(__name__)

_HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_HEADER_VALUE = re.compile(r"[\t\x20-\x7e]*")


@dataclass
class AssignedChunk:
    """A chunk in an assignment: its path id and its files (name to URL override)."""

    id: str
    files: Mapping[str, str] = field(default_factory=dict)


@dataclass
class AssignedDataset:
    """A dataset in an assignment with the chunks assigned to this worker."""

    id: Dataset
    base_url: str
    chunks: List[AssignedChunk] = field(default_factory=list)


@dataclass(frozen=True)
class RemoteFile:
    url: str
    name: str


@dataclass
class _DatasetIndex:
    url: str
    files: Dict[DataChunk, List[str]]


def _parse_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not (parts.netloc or parts.path):
        raise ValueError(f"Invalid dataset URL: '{url}'")
    return url


class DatasetsIndex:
    """Maps dataset chunks to the remote files they consist of."""

    def __init__(self) -> None:
        self._datasets: Dict[Dataset, _DatasetIndex] = {}
        self.headers: Dict[str, str] = {}

    @classmethod
    def from_assignment(
        cls,
        assigned_data: Iterable[AssignedDataset],
        headers: Mapping[str, str],
    ) -> "DatasetsIndex":
        """Build an index; headers that are not valid HTTP headers are dropped."""
        index = cls()
        for dataset in assigned_data:
            files = {
                DataChunk.from_path(chunk.id): list(chunk.files) for chunk in dataset.chunks
            }
            index._datasets[dataset.id] = _DatasetIndex(_parse_url(dataset.base_url), files)

        for name, value in sorted(headers.items()):
            if not _HEADER_NAME.fullmatch(name):
                logger.error("Couldn't parse header name: %s", name)
                continue
            if not _HEADER_VALUE.fullmatch(value):
                logger.error("Couldn't parse header value: %s", name)
                continue
            index.headers[name.lower()] = value
        return index

    def list_files(self, dataset: Dataset, chunk: DataChunk) -> Optional[List[RemoteFile]]:
        """The remote files of ``chunk``, or ``None`` if it isn't indexed."""
        ds = self._datasets.get(dataset)
        if ds is None:
            return None
        files = ds.files.get(chunk)
        if files is None:
            return None
        return [
            RemoteFile(url=urljoin(ds.url, f"{chunk.path()}/{name}"), name=name)
            for name in files
        ]

    def create_chunks_set(self) -> Set[ChunkRef]:
        """Every indexed chunk as a set of chunk references."""
        return {
            ChunkRef(dataset, chunk)
            for dataset, ds in self._datasets.items()
            for chunk in ds.files
        }
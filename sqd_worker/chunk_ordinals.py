"""Ordinal numbers of assigned chunks and the assignments they belong to."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from .dataset import Dataset
from .datasets_index import AssignedDataset
from .layout import DataChunk

OrdinalMap = Dict[DataChunk, List[int]]


@dataclass
class Ordinals:
    """The position of every chunk within an assignment."""

    datasets: Dict[Dataset, OrdinalMap] = field(default_factory=dict)
    assignment_id: str = ""

    @classmethod
    def from_assignment(
        cls, assigned_data: Iterable[AssignedDataset], assignment_id: str
    ) -> "Ordinals":
        """Number the chunks of all datasets consecutively, starting at zero."""
        datasets: Dict[Dataset, OrdinalMap] = {}
        ordinal = 0
        for dataset in assigned_data:
            chunk_ordinals: OrdinalMap = {}
            for chunk in dataset.chunks:
                data_chunk = DataChunk.from_path(chunk.id)
                chunk_ordinals.setdefault(data_chunk, []).append(ordinal)
                ordinal += 1
            datasets[dataset.id] = chunk_ordinals
        return cls(datasets, assignment_id)

    def ordinals_len(self) -> int:
        """Total number of ordinals across all datasets."""
        return sum(
            len(ordinals) for chunks in self.datasets.values() for ordinals in chunks.values()
        )

    def get_ordinal(self, dataset: Dataset, chunk: DataChunk) -> Optional[List[int]]:
        ordinals = self.datasets.get(dataset, {}).get(chunk)
        return None if ordinals is None else list(ordinals)


class OrdinalsHolder:
    """Assignments keyed by the Unix time (seconds) they become effective."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.ordinals: Dict[int, Ordinals] = {}

    def _now(self) -> int:
        return int(self._clock())

    def populate_with_ordinals(self, ordinals: Ordinals, timestamp: int) -> None:
        self.ordinals[timestamp] = ordinals
        self.cleanup_ordinals_by_time(self._now())

    def get_active_ordinals(self) -> Optional[Ordinals]:
        now = self._now()
        self.cleanup_ordinals_by_time(now)
        return self.get_ordinals_by_time(now)

    def get_ordinals_by_time(self, timestamp: int) -> Optional[Ordinals]:
        """The earliest assignment if it took effect before ``timestamp``."""
        if not self.ordinals:
            return None
        first = min(self.ordinals)
        return self.ordinals[first] if first < timestamp else None

    def cleanup_ordinals_by_time(self, timestamp: int) -> None:
        """Drop assignments superseded by a later one effective before ``timestamp``."""
        keys = sorted(self.ordinals)
        superseded = 0
        for from_time in keys[1:]:
            if from_time >= timestamp:
                break
            superseded += 1
        for key in keys[:superseded]:
            del self.ordinals[key]
"""References to chunks of a particular dataset and their block ranges."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import groupby
from typing import Dict, Iterable, List, Tuple

from .dataset import Dataset
from .layout import DataChunk

Range = Tuple[int, int]
Ranges = Dict[Dataset, List[Range]]


@dataclass(frozen=True, repr=False)
class ChunkRef:
    """A data chunk of a dataset.

    Equality compares all fields; ordering compares the dataset first and
    then the chunk's last block.
    """

    dataset: Dataset
    chunk: DataChunk

    def _key(self) -> Tuple[str, int]:
        return self.dataset, int(self.chunk.last_block)

    def __lt__(self, other: "ChunkRef") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "ChunkRef") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "ChunkRef") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "ChunkRef") -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        return f"{self.dataset}/{self.chunk}"

    def __repr__(self) -> str:
        return f"ChunkRef({str(self)!r})"


def to_ranges(chunks: Iterable[ChunkRef]) -> Ranges:
    """Group chunks by dataset into ordered ``(first_block, last_block)`` ranges."""
    return {
        dataset: [
            (int(ref.chunk.first_block), int(ref.chunk.last_block)) for ref in group
        ]
        for dataset, group in groupby(sorted(chunks), key=lambda ref: ref.dataset)
    }
"""Directory listing abstractions and local filesystem helpers."""

from __future__ import annotations

import abc
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

PathLike = Union[str, "os.PathLike[str]"]


class Filesystem(abc.ABC):
    """Something whose directories can be listed."""

    @abc.abstractmethod
    async def ls(self, path: PathLike) -> List[Path]:
        """List the entries of the directory at ``path``."""

    async def ls_root(self) -> List[Path]:
        """List the entries of the root directory."""
        return await self.ls("")


@dataclass(frozen=True)
class LocalFs(Filesystem):
    """A filesystem rooted at a local directory."""

    root: Path = field(default_factory=lambda: Path("."))

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root))

    async def ls(self, path: PathLike) -> List[Path]:
        directory = self.root / path
        with os.scandir(directory) as entries:
            return [directory / entry.name for entry in entries]

    def cd(self, path: PathLike) -> "LocalFs":
        """Return a filesystem rooted at ``path`` below the current root."""
        return LocalFs(self.root / path)


def add_temp_prefix(path: PathLike) -> Path:
    """Return ``path`` with its last component renamed to ``temp-<ms>-<name>``."""
    path = Path(path)
    name = path.name
    if not name or name == "..":
        raise ValueError(f"Invalid chunk path: '{path}'")
    timestamp = time.time_ns() // 1_000_000
    return path.with_name(f"temp-{timestamp}-{name}")
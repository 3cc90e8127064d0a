"""A directory that is removed unless it is explicitly kept."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class FsGuard:
    """Owns a directory and removes it on close unless persisted or released."""

    def __init__(self, path: PathLike) -> None:
        path = Path(path)
        if path.exists():
            raise FileExistsError(f"Couldn't create new dir '{path}': path exists")
        path.mkdir(parents=True)
        self._path: Optional[Path] = path

    @classmethod
    def own(cls, path: PathLike) -> "FsGuard":
        """Take ownership of an existing directory."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Directory not found: '{path}'")
        guard = cls.__new__(cls)
        guard._path = path
        return guard

    @property
    def path(self) -> Optional[Path]:
        """The owned directory, or ``None`` once released."""
        return self._path

    def persist(self, path: PathLike) -> None:
        """Move the directory to ``path`` and stop owning it."""
        if self._path is None:
            raise RuntimeError(f"Trying to persist already released dir to '{path}'")
        os.rename(self._path, path)
        self.release()

    def release(self) -> None:
        """Stop owning the directory without touching it."""
        self._path = None

    def close(self) -> None:
        """Remove the directory if it is still owned."""
        if self._path is None:
            return
        path, self._path = self._path, None
        try:
            shutil.rmtree(path)
        except OSError as err:
            logger.warning("Couldn't remove dir '%s' on cleanup: %s", path, err)

    def __enter__(self) -> "FsGuard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
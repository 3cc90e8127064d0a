"""Small helpers: hashing, iteration, one-shot values, task groups and clocks."""

from __future__ import annotations

import asyncio
import hashlib
import threading
import time
from collections.abc import Awaitable, Iterable, Iterator
from typing import Any, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

_MISSING = object()


def sha3_256(data: bytes) -> bytes:
    """Return the SHA3-256 digest of ``data``."""
    return hashlib.sha3_256(data).digest()


def lookahead(iterable: Iterable[T]) -> Iterator[Tuple[T, Optional[T]]]:
    """Yield each item together with the item after it (``None`` for the last)."""
    iterator = iter(iterable)
    current = next(iterator, _MISSING)
    if current is _MISSING:
        return
    for following in iterator:
        yield current, following
        current = following
    yield current, None


class UseOnce(Generic[T]):
    """Holds a value that can be taken out exactly once."""

    def __init__(self, value: T) -> None:
        self._value: Any = value
        self._lock = threading.Lock()

    def take(self) -> T:
        """Return the held value; raise ``RuntimeError`` on any later call."""
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("Attempted to take value twice")
        try:
            value, self._value = self._value, _MISSING
        finally:
            self._lock.release()
        if value is _MISSING:
            raise RuntimeError("Attempted to take value twice")
        return value


async def run_all(cancel_event: asyncio.Event, *args: Awaitable[Any]) -> tuple:
    """Run awaitables concurrently, setting ``cancel_event`` as soon as any finishes.

    Waits for every awaitable and returns their results in order. If any of
    them raised, the first such exception (in argument order) is re-raised.
    """

    async def _guarded(awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        finally:
            cancel_event.set()

    results = await asyncio.gather(
        *(_guarded(awaitable) for awaitable in args), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return tuple(results)


def timestamp_now_ms() -> int:
    """Current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000
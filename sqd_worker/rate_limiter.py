"""Per-operator token buckets limiting gateway requests by allocated compute units."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Optional, Union

MAX_TOKENS = 3
_U32_MAX = 2**32 - 1
_NS_PER_SEC = 1_000_000_000


class RateLimitKind(enum.Enum):
    SPENT = "spent"
    PAUSED = "paused"
    NO_ALLOCATION = "no_allocation"


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of a request attempt; ``delay_ns`` is the wait before the next token."""

    kind: RateLimitKind
    delay_ns: Optional[int] = None

    def retry_after(self) -> Optional[float]:
        """Seconds to wait before the next request, if there is a known wait."""
        if self.kind is RateLimitKind.NO_ALLOCATION or self.delay_ns is None:
            return None
        return self.delay_ns / _NS_PER_SEC


@dataclass
class GatewayCluster:
    """Gateways run by one operator, sharing one compute-unit allocation."""

    operator_addr: str
    allocated_computation_units: int
    gateway_ids: List[str] = field(default_factory=list)


@dataclass
class Bucket:
    """A token bucket; all times and intervals are in nanoseconds."""

    request_interval: int
    tokens: int
    last_update: int

    def update(self, now: int) -> None:
        elapsed = max(now - self.last_update, 0)
        tokens_to_add = elapsed // self.request_interval
        if tokens_to_add <= _U32_MAX:
            self.last_update += self.request_interval * tokens_to_add
            self.tokens = min(self.tokens + tokens_to_add, MAX_TOKENS)
        else:
            self.last_update = now
            self.tokens = MAX_TOKENS

    def take(self) -> bool:
        if self.tokens > 0:
            self.tokens -= 1
            return True
        return False

    def put(self) -> None:
        self.tokens = min(self.tokens + 1, MAX_TOKENS)

    def is_empty(self) -> bool:
        return self.tokens == 0

    def until_next_token(self, now: int) -> int:
        return max(self.last_update + self.request_interval - now, 0)


def _to_ns(duration: Union[timedelta, float, int]) -> int:
    if isinstance(duration, timedelta):
        return (duration // timedelta(microseconds=1)) * 1_000
    return round(duration * _NS_PER_SEC)


class RateLimiter:
    """Rate limits gateways according to their operator's allocation."""

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns) -> None:
        self._clock = clock
        self._operators: Dict[str, Bucket] = {}
        self._operator_by_gateway_id: Dict[str, str] = {}

    def update_allocations(
        self,
        clusters: Iterable[GatewayCluster],
        epoch_length: Union[timedelta, float, int],
    ) -> None:
        """Replace allocations, keeping the tokens of operators that stay allocated."""
        epoch_ns = _to_ns(epoch_length)
        self._operator_by_gateway_id.clear()
        new_operators: Dict[str, Bucket] = {}
        now = self._clock()

        for cluster in clusters:
            units = cluster.allocated_computation_units
            if units <= 0:
                continue
            interval = max(int(epoch_ns / units), 1)
            bucket = self._operators.pop(cluster.operator_addr, None)
            if bucket is None:
                bucket = Bucket(request_interval=interval, tokens=0, last_update=now)
            else:
                bucket.update(now)
                bucket.request_interval = interval
            new_operators[cluster.operator_addr] = bucket
            for gateway in cluster.gateway_ids:
                self._operator_by_gateway_id[gateway] = cluster.operator_addr

        self._operators = new_operators

    def try_run_request(self, gateway_id: str) -> RateLimitStatus:
        """Spend a token for ``gateway_id`` if one is available."""
        operator = self._operator_by_gateway_id.get(gateway_id)
        if operator is None:
            return RateLimitStatus(RateLimitKind.NO_ALLOCATION)
        bucket = self._operators[operator]
        now = self._clock()
        bucket.update(now)
        if bucket.take():
            delay = bucket.until_next_token(now) if bucket.is_empty() else None
            return RateLimitStatus(RateLimitKind.SPENT, delay)
        return RateLimitStatus(RateLimitKind.PAUSED, bucket.until_next_token(now))

    def refund(self, gateway_id: str) -> None:
        """Return a token spent by ``gateway_id``."""
        operator = self._operator_by_gateway_id.get(gateway_id)
        if operator is None:
            return
        self._operators[operator].put()
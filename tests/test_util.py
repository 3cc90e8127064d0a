import asyncio
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from sqd_worker.util import UseOnce, lookahead, run_all, sha3_256, timestamp_now_ms


async def _tick(event: asyncio.Event, delay: float, counter: list) -> None:
    try:
        await asyncio.wait_for(event.wait(), delay)
    except asyncio.TimeoutError:
        counter.append(delay)


@pytest.mark.asyncio
async def test_run_all_cancels_the_rest():
    event = asyncio.Event()
    counter: list = []
    await run_all(
        event,
        _tick(event, 0.01, counter),
        _tick(event, 0.5, counter),
        _tick(event, 1.0, counter),
    )
    assert counter == [0.01]
    assert event.is_set()


@pytest.mark.asyncio
async def test_run_all_returns_results_in_order():
    event = asyncio.Event()

    async def value(x, delay):
        await asyncio.sleep(delay)
        return x

    results = await run_all(event, value("a", 0.02), value("b", 0.0))
    assert results == ("a", "b")
    assert event.is_set()


@pytest.mark.asyncio
async def test_run_all_reraises_errors():
    event = asyncio.Event()

    async def failing():
        raise KeyError("boom")

    async def waiting():
        await event.wait()
        return 1

    with pytest.raises(KeyError):
        await run_all(event, failing(), waiting())
    assert event.is_set()


def test_sha3_256_empty():
    assert sha3_256(b"").hex() == (
        "a7ffc6f8bf1ed76651c14756a061d662f580ff4de43b49fa82d80a4b80f8434a"
    )


def test_sha3_256_length_and_determinism():
    digest = sha3_256(b"data")
    assert len(digest) == 32
    assert digest == sha3_256(b"data")
    assert digest != sha3_256(b"Data")


def test_lookahead_pairs():
    assert list(lookahead([1, 2, 3])) == [(1, 2), (2, 3), (3, None)]


def test_lookahead_single_and_empty():
    assert list(lookahead(["x"])) == [("x", None)]
    assert list(lookahead([])) == []


def test_lookahead_accepts_generators():
    assert list(lookahead(i * 10 for i in range(2))) == [(0, 10), (10, None)]


def test_use_once_take_twice():
    once = UseOnce("value")
    assert once.take() == "value"
    with pytest.raises(RuntimeError, match="twice"):
        once.take()


def _try_take(once: UseOnce):
    try:
        return once.take()
    except RuntimeError:
        return "error"


def test_use_once_concurrent_takes_give_one_value():
    once = UseOnce(42)
    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(_try_take, [once] * 8))
    assert sorted(outcomes, key=str) == [42] + ["error"] * 7


def test_timestamp_now_ms_is_current():
    before = int(time.time() * 1000)
    now = timestamp_now_ms()
    after = int(time.time() * 1000)
    assert before - 1 <= now <= after + 1
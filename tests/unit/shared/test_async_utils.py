import asyncio

import pytest

from tributary.shared.async_utils import concurrent_executor


@pytest.mark.asyncio
async def test_results_keep_item_order():
    async def _slow_echo(item: int) -> int:
        await asyncio.sleep(0.01 * (5 - item))
        return item * 10

    assert await concurrent_executor(range(5), _slow_echo, concurrency=3) == [0, 10, 20, 30, 40]


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    async def _track(item: int) -> None:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    await concurrent_executor(range(10), _track, concurrency=2)

    assert peak == 2


@pytest.mark.asyncio
async def test_every_item_runs_before_the_first_failure_is_raised():
    done: list[int] = []

    async def _maybe_fail(item: int) -> int:
        if item in (1, 3):
            raise RuntimeError(f"item {item}")
        done.append(item)
        return item

    with pytest.raises(RuntimeError, match="item 1"):
        await concurrent_executor(range(5), _maybe_fail, concurrency=2)

    assert sorted(done) == [0, 2, 4]


@pytest.mark.asyncio
async def test_on_item_complete_runs_for_each_item_sync_or_async():
    calls: list[str] = []

    async def _async_tick():
        calls.append("async")

    await concurrent_executor([1, 2], _noop, concurrency=1, on_item_complete=lambda: calls.append("sync"))
    await concurrent_executor([1, 2, 3], _noop, concurrency=1, on_item_complete=_async_tick)

    assert calls == ["sync", "sync", "async", "async", "async"]


@pytest.mark.asyncio
async def test_rejects_non_positive_concurrency():
    with pytest.raises(ValueError):
        await concurrent_executor([1], _noop, concurrency=0)


async def _noop(item):
    return item

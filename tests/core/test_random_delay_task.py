from __future__ import annotations

import asyncio
import random

from feed_core.scheduler import RandomDelayTask


def test_delays_stay_within_bounds():
    task = RandomDelayTask(lambda: asyncio.sleep(0), 1.0, 3.0, rng=random.Random(7))
    delays = [task.next_delay() for _ in range(200)]
    assert all(1.0 <= d <= 3.0 for d in delays)


def test_bad_bounds_are_clamped():
    task = RandomDelayTask(lambda: asyncio.sleep(0), -1.0, -5.0)
    assert task.min_delay_s == 0.0
    assert task.max_delay_s == 0.0


def test_runs_until_cancelled():
    calls = []

    async def _main():
        done = asyncio.Event()

        async def _cb():
            calls.append(len(calls))
            if len(calls) == 3:
                done.set()

        task = RandomDelayTask(_cb, 0.0, 0.0)
        task.start()
        assert task.running
        await done.wait()
        await task.wait_cancelled()
        assert not task.running

    asyncio.run(_main())
    assert calls[:3] == [0, 1, 2]


def test_failing_callback_stops_loop():
    calls = []

    async def _cb():
        calls.append(1)
        raise RuntimeError("boom")

    async def _main():
        task = RandomDelayTask(_cb, 0.0, 0.0)
        task.start()
        for _ in range(10):
            await asyncio.sleep(0)
        assert not task.running

    asyncio.run(_main())
    assert calls == [1]

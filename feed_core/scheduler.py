from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from typing import Awaitable, Callable, Optional


class RandomDelayTask:
    """Run ``callback`` repeatedly, sleeping a random delay before each run.

    The next run is scheduled only after the previous one completes. ``cancel``
    stops the loop; a callback that raises also stops it.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        min_delay_s: float,
        max_delay_s: float,
        rng: Optional[random.Random] = None,
        name: str = "random-delay-task",
    ) -> None:
        self.callback = callback
        self.min_delay_s = max(0.0, float(min_delay_s))
        self.max_delay_s = max(self.min_delay_s, float(max_delay_s))
        self.name = name
        self._rng = rng or random.Random()
        self._task: Optional[asyncio.Task] = None
        self._log = logging.getLogger("feed_core.scheduler")

    def next_delay(self) -> float:
        return self._rng.uniform(self.min_delay_s, self.max_delay_s)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.next_delay())
            try:
                await self.callback()
            except Exception:
                self._log.exception("Scheduled callback failed (task=%s)", self.name)
                return

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_cancelled(self) -> None:
        task = self._task
        if task is None:
            return
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

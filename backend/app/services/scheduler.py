"""Periodic safety-net re-evaluation.

Runs the full evaluation pass on a fixed period regardless of stream
activity, so the board stays fresh even when the stream is down.
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class Scheduler:
    """Invokes an async job every ``interval`` seconds until stopped."""

    def __init__(
        self,
        job: Callable[[], Awaitable[object]],
        interval: float,
        name: str = "scheduler",
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.job = job
        self.interval = interval
        self.name = name
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("%s started (every %.0fs)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the pending tick and wait for the task to finish."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("%s stopped", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                await self.job()
            except Exception as e:
                logger.warning(f"{self.name} job error: {e}")

# app/workers/scheduler.py
import asyncio
import logging
from typing import Optional

from app.workers.retry_sweeper import RetrySweeper

logger = logging.getLogger(__name__)


class RetryScheduler:
    """Runs RetrySweeper.run() every `interval_seconds` inside the app's event loop."""

    def __init__(self, sweeper: RetrySweeper, interval_seconds: float):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Retry scheduler started, interval={self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Retry scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweeper.run()
            except Exception:
                logger.exception("Retry sweep crashed")

"""
Periodic Tasks
Cancellable background loops started and stopped with the application
"""
import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger


class PeriodicTask:
    """Run an async callable every `interval` seconds until stopped"""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval: float,
        run_immediately: bool = False,
    ):
        self.name = name
        self.func = func
        self.interval = interval
        self.run_immediately = run_immediately
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"Periodic task '{self.name}' started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Periodic task '{self.name}' stopped after {self.runs} runs")

    async def _loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            try:
                await self.func()
            except Exception as e:
                # A failed run must not end the loop
                logger.exception(f"Periodic task '{self.name}' failed: {e}")
            self.runs += 1
            await asyncio.sleep(self.interval)

"""Periodic trigger that keeps the conversation moving.

The scheduler has no timers of its own. The driver awaits each
request_next_turn() before sleeping again, so it re-arms only after the
previous turn has fully completed; the scheduler's dwell check decides
whether a tick actually produces a line.
"""

from __future__ import annotations

import asyncio
import logging

from sitout.scheduler import TurnScheduler

logger = logging.getLogger(__name__)


class ConversationDriver:
    def __init__(self, scheduler: TurnScheduler, tick: float = 1.0, auto_start: bool = False) -> None:
        self._scheduler = scheduler
        self._tick = tick
        self._auto_start = auto_start
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        """One driver step: open the conversation if asked to, else request a turn."""
        if self._auto_start and not self._scheduler.state.is_active and not self._scheduler.history:
            await self._scheduler.start()
            return
        await self._scheduler.request_next_turn()

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("driver tick failed")
            await asyncio.sleep(self._tick)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("conversation driver started (tick=%.1fs)", self._tick)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("conversation driver stopped")

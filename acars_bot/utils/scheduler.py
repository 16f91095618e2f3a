# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Poll Scheduler - named interval timers on top of discord.ext.tasks.

Every background job of the bot (flight polling, quote DMs, presence
rotation) runs through one of these:

- each tick starts its cycle as a task and returns, so the timer keeps its
  cadence; a tick that arrives while the previous cycle is still running is
  skipped, never queued behind it
- stop() prevents further ticks and lets an in-progress cycle finish;
  wait_idle() waits for it
- exceptions raised by a cycle are logged and never stop the timer
"""

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from discord.ext import tasks

logger = logging.getLogger(__name__)


class PollScheduler:
    """A named, non-overlapping interval timer."""

    def __init__(self, name: str, interval: timedelta,
                 callback: Callable[[], Awaitable[object]],
                 wait_until: Optional[Callable[[], Awaitable[object]]] = None):
        self.name = name
        self.interval = interval
        self.callback = callback
        self.wait_until = wait_until
        self.cycles = 0
        self.skipped = 0
        self._cycle_running = False
        self._cycle_task: Optional[asyncio.Task] = None

        self.loop = tasks.loop(seconds=interval.total_seconds())(self._tick)
        self.loop.before_loop(self._before_first_tick)

    async def _before_first_tick(self):
        if self.wait_until is not None:
            await self.wait_until()

    async def _tick(self):
        if self._cycle_task is not None and not self._cycle_task.done():
            self.skipped += 1
            logger.warning(f"[{self.name}] previous cycle still running, skipping tick")
            return
        self._cycle_task = asyncio.create_task(self.run_once())

    @property
    def cycle_running(self) -> bool:
        return self._cycle_running

    async def run_once(self) -> bool:
        """
        Run one guarded cycle.

        Returns:
            True if the cycle ran, False if it was skipped because another
            cycle was still in progress.
        """
        if self._cycle_running:
            self.skipped += 1
            logger.warning(f"[{self.name}] previous cycle still running, skipping tick")
            return False

        self._cycle_running = True
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"[{self.name}] cycle failed: {e}", exc_info=True)
        finally:
            self._cycle_running = False
            self.cycles += 1
        return True

    def start(self):
        if self.loop.is_running():
            return
        logger.info(f"[{self.name}] starting, every {self.interval.total_seconds():g}s")
        self.loop.start()

    def stop(self):
        """Stop ticking. A cycle already in progress runs to completion."""
        if not self.loop.is_running():
            return
        logger.info(f"[{self.name}] stopping")
        # Ticks never await their cycle, so this only interrupts the sleep between ticks
        self.loop.cancel()

    async def wait_idle(self):
        """Wait for the in-progress cycle, if any, to finish."""
        if self._cycle_task is not None and not self._cycle_task.done():
            await asyncio.shield(self._cycle_task)

    def is_running(self) -> bool:
        return self.loop.is_running()

    def change_interval(self, interval: timedelta):
        self.interval = interval
        self.loop.change_interval(seconds=interval.total_seconds())
        logger.info(f"[{self.name}] interval changed to {interval.total_seconds():g}s")

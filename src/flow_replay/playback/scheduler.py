"""
Step Scheduler - The single timer driving playback.

Holds at most one pending callback. A callback that is still sleeping
can be cancelled; one that has started running is never interrupted, so
stopping playback takes effect at the next scheduling boundary.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class StepScheduler:
    """
    One-shot delayed callbacks on the running event loop.

    Example:
        >>> scheduler = StepScheduler()
        >>> scheduler.schedule(500, controller.execute_next)
        >>> scheduler.cancel()
    """

    def __init__(self):
        self._sleeping: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """Whether a callback is waiting for its delay to elapse."""
        return self._sleeping is not None and not self._sleeping.done()

    def schedule(self, delay_ms: float, callback: Callback) -> None:
        """
        Replace any pending callback with a new one.

        Args:
            delay_ms: Delay before the callback runs
            callback: Coroutine function to run
        """
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._run(delay_ms, callback))
        self._sleeping = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, delay_ms: float, callback: Callback) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        if self._sleeping is asyncio.current_task():
            self._sleeping = None
        try:
            await callback()
        except Exception as e:
            logger.error(f"Scheduled callback failed: {e}")

    def cancel(self) -> None:
        """Cancel the pending callback if it has not started yet."""
        task, self._sleeping = self._sleeping, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def join(self) -> None:
        """Wait until no callback is pending or running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

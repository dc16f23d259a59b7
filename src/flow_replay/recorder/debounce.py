"""
Keyed Debouncer - Coalesces bursts of events into one delayed action.

Each key owns at most one pending timer. Scheduling again under the same
key cancels the previous timer, so only the last action of a burst runs,
after a quiet period.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[None]]


class KeyedDebouncer:
    """
    Per-key debounce timers on the running event loop.

    Example:
        >>> debouncer = KeyedDebouncer()
        >>> debouncer.schedule("field-1", 500, record_value)
        >>> await debouncer.flush()  # run pending actions now
    """

    def __init__(self):
        self._pending: Dict[Hashable, Tuple[asyncio.Task, Action]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def schedule(self, key: Hashable, delay_ms: int, action: Action) -> None:
        """
        (Re)start the timer for a key.

        Args:
            key: Timer identity, e.g. the target element's node key
            delay_ms: Quiet period before the action runs
            action: Coroutine function to run when the timer fires
        """
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._fire_later(key, delay_ms))
        self._pending[key] = (task, action)

    async def _fire_later(self, key: Hashable, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        entry = self._pending.get(key)
        if entry is None or entry[0] is not asyncio.current_task():
            return
        del self._pending[key]
        await self._run(key, entry[1])

    async def _run(self, key: Hashable, action: Action) -> None:
        try:
            await action()
        except Exception as e:
            logger.error(f"Debounced action for {key!r} failed: {e}")

    def cancel(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    def cancel_all(self) -> None:
        """Drop every pending timer without running its action."""
        for task, _ in self._pending.values():
            task.cancel()
        self._pending.clear()

    async def flush(self) -> None:
        """Run every pending action immediately, in scheduling order."""
        entries = list(self._pending.items())
        self._pending.clear()
        for key, (task, action) in entries:
            task.cancel()
            await self._run(key, action)

"""
pickbook/utils/debounce.py

Delayed commit for rapid input.

Each arm() cancels the pending commit of the same key and schedules a new one,
so within one quiet period at most one commit fires, carrying the last value.

    debouncer = Debouncer(0.2)
    debouncer.arm(chat_id, answer_search, query)   # every keystroke
    await debouncer.flush(chat_id)                 # commit right now
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

Commit = Callable[..., Awaitable[Any]]


class Debouncer:
    def __init__(self, delay: float):
        self.delay = delay
        self._tasks: dict[Hashable, asyncio.Task] = {}
        self._pending: dict[Hashable, tuple[Commit, tuple, dict]] = {}

    def arm(self, key: Hashable, commit: Commit, *args, **kwargs) -> None:
        self.cancel(key)
        self._pending[key] = (commit, args, kwargs)
        self._tasks[key] = asyncio.create_task(self._fire(key))

    def cancel(self, key: Hashable) -> bool:
        """Drop the pending commit of ``key``. True if there was one."""
        task = self._tasks.pop(key, None)
        self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self, key: Hashable) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def flush(self, key: Hashable) -> Optional[Any]:
        """Run the pending commit of ``key`` now instead of after the delay."""
        entry = self._pending.get(key)
        if entry is None:
            return None
        self.cancel(key)
        commit, args, kwargs = entry
        return await commit(*args, **kwargs)

    async def _fire(self, key: Hashable) -> None:
        await asyncio.sleep(self.delay)

        entry = self._pending.pop(key, None)
        self._tasks.pop(key, None)
        if entry is None:
            return

        commit, args, kwargs = entry
        try:
            await commit(*args, **kwargs)
        except Exception:
            logger.exception(f"[DEBOUNCE] commit failed for key={key!r}")

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        for key in list(self._tasks):
            self.cancel(key)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

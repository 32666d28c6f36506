"""
Debounced autosave as a table of pending tasks keyed by field.

schedule(key, save) cancels any save still waiting for `key` and starts a
new quiet-period timer, so only the last value typed within the period is
sent. A save that already started is never cancelled.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..settings import settings

logger = logging.getLogger(__name__)

SaveFn = Callable[[], Awaitable[object]]


class AutosaveScheduler:
    def __init__(self, delay: float | None = None):
        self.delay = settings.autosave_delay_seconds if delay is None else delay
        self._timers: dict[str, tuple[asyncio.Task, SaveFn]] = {}
        self._running: set[asyncio.Task] = set()

    def schedule(self, key: str, save: SaveFn) -> asyncio.Task:
        """(Re)start the quiet-period timer for `key`. Must run inside an event loop."""
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._fire(key, save))
        self._timers[key] = (task, save)
        return task

    async def _fire(self, key: str, save: SaveFn) -> None:
        await asyncio.sleep(self.delay)
        current = asyncio.current_task()
        entry = self._timers.get(key)
        if entry and entry[0] is current:
            del self._timers[key]
        self._running.add(current)
        try:
            await save()
        except Exception:
            logger.exception("autosave for %s failed", key)
        finally:
            self._running.discard(current)

    def pending(self, key: str) -> bool:
        return key in self._timers

    def pending_keys(self) -> list[str]:
        return list(self._timers)

    def cancel(self, key: str) -> bool:
        """Drop a save that has not started yet; True if one was pending."""
        entry = self._timers.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    async def flush(self) -> None:
        """Run every pending save now (page close) and wait for in-flight ones."""
        pending = list(self._timers.items())
        self._timers.clear()
        for key, (task, save) in pending:
            task.cancel()
            try:
                await save()
            except Exception:
                logger.exception("autosave for %s failed", key)
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def aclose(self) -> None:
        """Discard pending saves without sending them."""
        for task, _ in self._timers.values():
            task.cancel()
        tasks = [t for t, _ in self._timers.values()]
        self._timers.clear()
        await asyncio.gather(*tasks, return_exceptions=True)

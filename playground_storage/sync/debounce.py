"""
Debounced one-shot task.

Schedules an async action to run after a delay. Rescheduling or
cancelling during the delay drops the pending run; once the action has
started it always runs to completion.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DebouncedAction = Callable[[], Awaitable[None]]


class DebouncedTask:
    """An owned, cancellable delayed action.

    Usage:
        debounce = DebouncedTask("auto-sync")
        debounce.schedule(2.0, upload)   # runs upload() in ~2s
        debounce.schedule(2.0, upload)   # restarts the delay
        debounce.cancel()                # nothing runs
        await debounce.wait()            # let any started upload finish
    """

    def __init__(self, name: str = "debounced") -> None:
        self.name = name
        # Still sleeping; cancel() may stop it
        self._pending: asyncio.Task[None] | None = None
        # Past the delay; never cancelled
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        """Whether a run is scheduled but has not started yet."""
        return self._pending is not None and not self._pending.done()

    @property
    def running(self) -> bool:
        """Whether a run has started and not finished."""
        return bool(self._in_flight)

    def schedule(self, delay: float, action: DebouncedAction) -> None:
        """Run ``action()`` after ``delay`` seconds, replacing any pending run.

        ``action`` is only called once the delay has elapsed, so a cancelled
        run never creates its coroutine.
        """
        self.cancel()
        self._pending = asyncio.create_task(self._run(delay, action), name=self.name)
        logger.debug(f"Scheduled {self.name} in {delay}s")

    def cancel(self) -> bool:
        """Drop the pending run. Returns True if one was dropped."""
        task, self._pending = self._pending, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Cancelled pending {self.name}")
        return True

    async def wait(self) -> None:
        """Wait for the pending run (if any) and every started run to finish."""
        while True:
            tasks = set(self._in_flight)
            if self._pending is not None and not self._pending.done():
                tasks.add(self._pending)
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, delay: float, action: DebouncedAction) -> None:
        await asyncio.sleep(delay)

        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        if task is not None:
            self._in_flight.add(task)
        try:
            await action()
        except Exception:
            logger.exception(f"{self.name} failed")
        finally:
            if task is not None:
                self._in_flight.discard(task)

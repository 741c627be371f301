import asyncio
from typing import Any, Awaitable, Callable, Optional, Set


class Debouncer:
    """
    Runs `callback` once `delay` seconds have passed without a new trigger().

    A trigger while the timer is still waiting restarts it. Once the timer has
    fired the callback is in flight and is never cancelled; the next trigger
    just arms a new timer.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[Any]]):
        self.delay = delay
        self._callback = callback
        self._pending: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def trigger(self) -> None:
        """Must be called from inside the running event loop."""
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._wait_then_fire())

    def cancel(self) -> None:
        """Drops the waiting timer (if any). In-flight callbacks keep running."""
        if self.pending:
            self._pending.cancel()
        self._pending = None

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        self._in_flight.add(task)
        try:
            await self._callback()
        finally:
            self._in_flight.discard(task)

    async def flush(self) -> None:
        """Fires a waiting timer immediately, then waits for everything in flight."""
        if self.pending:
            self.cancel()
            await self._callback()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        while True:
            tasks = [task for task in self._in_flight if not task.done()]
            if self.pending:
                tasks.append(self._pending)
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

"""AutosaveService -- periodic and on-demand snapshot persistence."""

import asyncio
from typing import Optional

import structlog

from ..memory.engine import MemoryEngine

logger = structlog.get_logger()


class AutosaveService:
    """Persists the engine on a fixed interval and shortly after requests.

    Requests made while a delayed save is pending are folded into it.
    """

    def __init__(
        self,
        engine: MemoryEngine,
        interval: float = 120.0,
        request_delay: float = 1.0,
    ) -> None:
        self._engine = engine
        self._interval = interval
        self._request_delay = request_delay
        self._loop_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]
        self._pending: Optional[asyncio.Task] = None  # type: ignore[type-arg]
        self.saves = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        """Start the interval loop."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop(), name="autosave")

    async def stop(self) -> None:
        """Cancel the loop and any pending delayed save."""
        for task in (self._loop_task, self._pending):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._pending = None

    def request_save(self) -> None:
        """Schedule a save after the request delay.

        Outside a running event loop the save happens immediately.
        """
        if self._pending and not self._pending.done():
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop to schedule on; save synchronously
            self.save_now()
            return
        self._pending = asyncio.create_task(
            self._delayed_save(), name="autosave-request"
        )

    def save_now(self) -> bool:
        ok = self._engine.persist()
        if ok:
            self.saves += 1
        return ok

    async def _delayed_save(self) -> None:
        await asyncio.sleep(self._request_delay)
        self.save_now()

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                self.save_now()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Autosave loop error")

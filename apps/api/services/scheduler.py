"""Timer-driven, single-flight periodic worker shared by every pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CycleFn = Callable[[], Awaitable[Dict[str, Any]]]


class PeriodicWorker:
    """Runs ``cycle`` every ``interval_ms`` within this process.

    A cycle that is still running when the timer fires again causes the new
    tick to be skipped, never queued. ``stop()`` clears the timer and waits
    for the in-flight cycle instead of cancelling it.
    """

    def __init__(
        self,
        *,
        name: str,
        cycle: CycleFn,
        interval_ms: int,
        enabled: bool = True,
    ) -> None:
        self.name = name
        self._cycle = cycle
        self.interval_ms = max(int(interval_ms), 1)
        self.enabled = enabled
        self._cycle_lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    async def run_cycle(self) -> Dict[str, Any]:
        if self._cycle_lock.locked():
            return {"skipped": True, "reason": "cycle_in_progress"}
        async with self._cycle_lock:
            return await self._cycle()

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            logger.exception("[%s-worker] Cycle error", self.name)

    def _tick(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            logger.debug("[%s-worker] Previous cycle still running; skipping tick", self.name)
            return
        self._inflight = asyncio.create_task(self._guarded_cycle())

    async def _timer(self) -> None:
        while True:
            self._tick()
            await asyncio.sleep(self.interval_ms / 1000.0)

    def start(self) -> bool:
        """Schedule the timer and kick off an immediate first cycle."""
        if not self.enabled:
            logger.info("[%s-worker] Disabled by configuration", self.name)
            return False
        if self.running:
            return True
        self._timer_task = asyncio.create_task(self._timer())
        logger.info("[%s-worker] Started (%dms interval)", self.name, self.interval_ms)
        return True

    async def stop(self) -> None:
        timer, self._timer_task = self._timer_task, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            await inflight
        if timer is not None:
            logger.info("[%s-worker] Stopped", self.name)

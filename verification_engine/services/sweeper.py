"""
Background expiry sweeper.

Expired records are already rejected lazily on access; the sweeper just
keeps memory bounded by dropping them on a fixed interval::

    sweeper = ExpirySweeper(store, clock, interval=60)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from verification_engine.services.clock import Clock
from verification_engine.services.store import CodeStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, store: CodeStore, clock: Clock, *, interval: float) -> None:
        self._store = store
        self._clock = clock
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="expiry-sweeper")
        logger.info("Expiry sweeper started (every %ds)", self._interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Expiry sweeper stopped")

    def sweep_once(self) -> int:
        removed = self._store.sweep(self._clock.now())
        if removed:
            logger.info("Removed %d expired verification codes", removed)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Expiry sweep failed, will retry")

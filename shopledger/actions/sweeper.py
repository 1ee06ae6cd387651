"""Background eviction of staged actions nobody resolved in time."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from shopledger.actions.pending import PendingActionStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically removes pending actions older than `max_age_s`.

    The sweeper is owned by the process lifecycle: `start()` on boot, `await stop()` on shutdown
    (or use it as an async context manager).
    """

    def __init__(self, store: PendingActionStore, *, max_age_s: float, interval_s: float) -> None:
        if max_age_s <= 0 or interval_s <= 0:
            raise ValueError("max_age_s and interval_s must be positive")
        self._store = store
        self._max_age_s = max_age_s
        self._interval_s = interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> list[str]:
        removed = self._store.sweep(self._max_age_s)
        if removed:
            logger.info("expired pending actions count=%d", len(removed))
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("pending action sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pending-action-sweeper")
        logger.info("sweeper started interval_s=%s max_age_s=%s", self._interval_s, self._max_age_s)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("sweeper stopped")

    async def __aenter__(self) -> ExpirySweeper:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

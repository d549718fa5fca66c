"""Periodic purge of expired usage log entries."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from creditgate.logging import logger
from creditgate.services.ledger import SessionScope, UsageLedger
from creditgate.services.quota import Clock
from creditgate.utils.datetime import utc_now


class RetentionSweeper:
    """Deletes usage log rows older than the retention window on a fixed interval.

    Only the ledger is touched; account counters belong to the quota enforcer.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        *,
        retention_days: int,
        interval_seconds: float = 3600,
        clock: Clock = utc_now,
    ) -> None:
        self.session_scope = session_scope
        self.retention = timedelta(days=retention_days)
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: asyncio.Task | None = None

    async def sweep_once(self) -> int:
        cutoff = self.clock() - self.retention
        async with self.session_scope() as session:
            removed = await UsageLedger(session).purge_before(cutoff)
        logger.info("retention_sweep_completed", removed=removed, cutoff=cutoff.isoformat())
        return removed

    async def run_forever(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Next tick retries; a failed sweep must not stop the loop.
                logger.exception("retention_sweep_failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="usage-retention-sweep")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


__all__ = ["RetentionSweeper"]

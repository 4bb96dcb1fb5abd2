"""Background worker that purges expired records from expiring stores."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

LOGGER = logging.getLogger(__name__)


class ExpiringStore(Protocol):
    def purge_expired(self, now: int | None = None) -> int: ...


class ExpiredRecordReaper:
    """Periodically call ``purge_expired`` on each store off the event loop.

    Read paths filter expired records on their own; the reaper only keeps
    storage from growing without bound.
    """

    def __init__(self, stores: Sequence[ExpiringStore], interval_seconds: float) -> None:
        self._stores = list(stores)
        self._interval_seconds = max(0.01, float(interval_seconds))
        self._worker_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start background worker loop if not already running."""
        if self._worker_task and not self._worker_task.done():
            return
        self._stop_event.clear()
        self._worker_task = asyncio.create_task(self._worker_loop())

    async def stop(self) -> None:
        """Stop background worker loop gracefully."""
        self._stop_event.set()
        if self._worker_task:
            await self._worker_task
            self._worker_task = None

    async def run_once(self) -> int:
        """Purge every store once and return the number of removed records."""
        removed = 0
        for store in self._stores:
            removed += await asyncio.to_thread(store.purge_expired)
        if removed:
            LOGGER.info("expired_records_purged", extra={"count": removed})
        return removed

    async def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception:
                # Store outage: keep the worker alive and retry next interval.
                LOGGER.exception("expired_records_purge_failed")
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._interval_seconds
                )
            except asyncio.TimeoutError:
                continue

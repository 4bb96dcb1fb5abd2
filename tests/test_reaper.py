from __future__ import annotations

import asyncio
from dataclasses import dataclass

from app.core.reaper import ExpiredRecordReaper


@dataclass
class _Store:
    removed: int = 0
    calls: int = 0
    broken: bool = False

    def purge_expired(self, now: int | None = None) -> int:
        self.calls += 1
        if self.broken:
            raise RuntimeError("store unavailable")
        return self.removed


def test_run_once_sums_removed_records() -> None:
    stores = [_Store(removed=2), _Store(removed=3)]
    reaper = ExpiredRecordReaper(stores, interval_seconds=60)

    removed = asyncio.run(reaper.run_once())

    assert removed == 5
    assert all(store.calls == 1 for store in stores)


def test_worker_survives_store_errors_and_stops() -> None:
    broken = _Store(broken=True)

    async def _scenario() -> None:
        reaper = ExpiredRecordReaper([broken], interval_seconds=0.01)
        await reaper.start()
        await asyncio.sleep(0.1)
        await reaper.stop()

    asyncio.run(_scenario())

    assert broken.calls >= 2


def test_start_is_idempotent() -> None:
    store = _Store()

    async def _scenario() -> None:
        reaper = ExpiredRecordReaper([store], interval_seconds=60)
        await reaper.start()
        await reaper.start()
        await asyncio.sleep(0.05)
        await reaper.stop()

    asyncio.run(_scenario())

    assert store.calls == 1

"""
Unit tests for PeriodicSaver.
"""

import asyncio
from pathlib import Path

import pytest

from pietracker.engine.saver import PeriodicSaver
from pietracker.engine.types import EngineState
from pietracker.store.persistence import load_records
from pietracker.store.pie_store import PieStore
from pietracker.types.types import PieRecord, RawPie


class TestPeriodicSaver:
    @pytest.fixture
    def path(self, tmp_path: Path) -> Path:
        return tmp_path / "pies.json"

    @pytest.mark.asyncio
    async def test_tick_writes_file(self, path: Path) -> None:
        saver = PeriodicSaver(PieStore([PieRecord(id=1)]), path, interval_s=60.0)

        assert await saver.tick() is True

        assert saver.saves == 1
        assert list(load_records(path)) == [1]

    @pytest.mark.asyncio
    async def test_tick_skips_when_store_busy(self, path: Path) -> None:
        store = PieStore([PieRecord(id=1)])
        saver = PeriodicSaver(store, path, interval_s=60.0)

        async with store._lock:
            assert await saver.tick() is False

        assert saver.skipped == 1
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_loop_saves_periodically(self, path: Path) -> None:
        saver = PeriodicSaver(PieStore([PieRecord(id=1)]), path, interval_s=0.01)

        await saver.start()
        assert saver.state == EngineState.RUNNING
        await asyncio.sleep(0.05)
        await saver.stop(final_save=False)

        assert saver.saves >= 1
        assert saver.state == EngineState.STOPPED
        assert path.exists()

    @pytest.mark.asyncio
    async def test_stop_does_final_save(self, path: Path) -> None:
        store = PieStore()
        saver = PeriodicSaver(store, path, interval_s=60.0)
        await saver.start()

        await store.upsert(RawPie(id=3))
        await store.set_enrichment(3, 1.0, "late")
        await saver.stop()

        assert load_records(path)[3].name == "late"

    @pytest.mark.asyncio
    async def test_stop_without_start_still_saves(self, path: Path) -> None:
        saver = PeriodicSaver(PieStore([PieRecord(id=2)]), path, interval_s=60.0)

        await saver.stop()

        assert list(load_records(path)) == [2]

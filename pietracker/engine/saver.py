"""
Periodic saver for the PieStore.

Runs on its own cadence, independent of the refresh loop. Ticks never wait
for the store: if the writer holds the lock the tick is skipped. stop()
always finishes with one blocking save so shutdown persists the latest view.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from pietracker.engine.types import EngineState
from pietracker.store.pie_store import PieStore

logger = logging.getLogger(__name__)


class PeriodicSaver:
    """
    Background task that writes the store to its state file.

    Usage:
        saver = PeriodicSaver(store, Path("pies.json"), interval_s=30.0)
        await saver.start()
        ...
        await saver.stop()  # final save
    """

    def __init__(
        self,
        store: PieStore,
        path: Path,
        interval_s: float,
        name: str = "saver",
    ) -> None:
        self._store = store
        self._path = path
        self._interval_s = interval_s
        self._name = name

        self._state = EngineState.STOPPED
        self._task: Optional[asyncio.Task[None]] = None
        self._shutdown_event = asyncio.Event()

        self.saves = 0
        self.skipped = 0

    @property
    def state(self) -> EngineState:
        return self._state

    async def start(self) -> None:
        if self._task is not None:
            logger.warning(f"[{self._name}] Already running")
            return
        self._shutdown_event.clear()
        self._state = EngineState.RUNNING
        self._task = asyncio.create_task(self._run_loop(), name=f"{self._name}_loop")
        logger.info(f"[{self._name}] Saving to {self._path} every {self._interval_s:.0f}s")

    async def stop(self, final_save: bool = True) -> None:
        if self._task is not None:
            self._state = EngineState.STOPPING
            self._shutdown_event.set()
            # An in-flight write completes before the final save starts
            await self._task
            self._task = None

        if final_save:
            await self._store.save_to_disk(self._path, blocking=True)
        self._state = EngineState.STOPPED

    async def tick(self) -> bool:
        """One best-effort save; returns True if the file was written."""
        saved = await self._store.save_to_disk(self._path, blocking=False)
        if saved:
            self.saves += 1
        else:
            self.skipped += 1
        return saved

    async def _run_loop(self) -> None:
        try:
            while not self._shutdown_event.is_set():
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=self._interval_s)
                except asyncio.TimeoutError:
                    await self.tick()
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Loop cancelled")
            raise

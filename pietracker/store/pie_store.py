"""
Pie Store - authoritative in-memory view of all pies.

A single asyncio.Lock guards the id -> PieRecord map. Critical sections only
copy or swap in-memory objects; network and disk I/O always happen outside
the lock. Records are immutable, so handing them out in snapshots exposes no
internal state.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pietracker.errors.errors import PersistenceError
from pietracker.store.persistence import load_records, save_records
from pietracker.types.types import PieId, PieRecord, RawPie

logger = logging.getLogger(__name__)


class PieStore:
    """
    Lock-protected map of pie id to merged record.

    Writers: the refresh engine (upsert, set_enrichment).
    Readers: any number of consumers calling snapshot().
    Records are never evicted; pies that vanish upstream keep their last
    live values.

    Usage:
        store = PieStore.from_disk(Path("pies.json"))
        await store.upsert(raw_pie)
        records = await store.snapshot()
        await store.save_to_disk(Path("pies.json"))
    """

    def __init__(
        self,
        records: Optional[Iterable[PieRecord]] = None,
        name: str = "pie_store",
    ) -> None:
        self._records: dict[PieId, PieRecord] = {r.id: r for r in records or ()}
        self._lock = asyncio.Lock()
        self._name = name
        self._last_saved_at: Optional[datetime] = None

    @classmethod
    def from_disk(cls, path: Path, name: str = "pie_store") -> PieStore:
        store = cls(name=name)
        store.load_from_disk(path)
        return store

    def __len__(self) -> int:
        return len(self._records)

    @property
    def last_saved_at(self) -> Optional[datetime]:
        return self._last_saved_at

    # --- reads ---

    async def snapshot(self) -> list[PieRecord]:
        """Point-in-time copy of every record (order is not meaningful)."""
        async with self._lock:
            return list(self._records.values())

    async def try_snapshot(self) -> Optional[list[PieRecord]]:
        """
        Like snapshot(), but returns None when the lock is held.

        If the lock was just released with a waiter still queued, the acquire
        below waits behind that waiter for one critical section. It never waits
        on a held lock.
        """
        if self._lock.locked():
            return None
        async with self._lock:
            return list(self._records.values())

    async def get(self, pie_id: PieId) -> Optional[PieRecord]:
        async with self._lock:
            return self._records.get(pie_id)

    async def needs_enrichment(self, pie_id: PieId) -> bool:
        """True iff the pie is known and its name or creation date is still unset."""
        async with self._lock:
            record = self._records.get(pie_id)
            return record is not None and record.needs_enrichment

    # --- writes ---

    async def upsert(self, raw: RawPie) -> PieRecord:
        """Insert a new pie, or replace the live fields of a known one."""
        async with self._lock:
            existing = self._records.get(raw.id)
            if existing is None:
                record = PieRecord.from_raw(raw)
            else:
                record = existing.with_live_fields(raw)
            self._records[raw.id] = record
        if existing is None:
            logger.debug(f"[{self._name}] New pie {raw.id}")
        return record

    async def set_enrichment(
        self,
        pie_id: PieId,
        created_at: Optional[float],
        name: Optional[str],
    ) -> bool:
        """
        Fill name/creation date where still unset.

        Returns True if the record changed. Unknown ids are ignored.
        """
        async with self._lock:
            existing = self._records.get(pie_id)
            if existing is None:
                return False
            updated = existing.with_enrichment(created_at=created_at, name=name)
            if updated == existing:
                return False
            self._records[pie_id] = updated
            return True

    # --- persistence ---

    def load_from_disk(self, path: Path) -> int:
        """
        Replace the contents with the state file at ``path``.

        A missing or unreadable file leaves the store empty. Returns the number
        of records loaded.
        """
        if not path.exists():
            logger.info(f"[{self._name}] No state file at {path}, starting empty")
            self._records = {}
            return 0
        try:
            records = load_records(path)
        except PersistenceError as e:
            logger.warning(f"[{self._name}] Could not restore state, starting empty: {e}")
            self._records = {}
            return 0

        self._records = records
        logger.info(f"[{self._name}] Restored {len(records)} pies from {path}")
        return len(records)

    async def save_to_disk(self, path: Path, *, blocking: bool = False) -> bool:
        """
        Write the current contents to ``path``.

        With blocking=False the save is skipped when the writer holds the lock.
        Failures are logged, never raised. Returns True if the file was written.
        """
        if blocking:
            records: Optional[list[PieRecord]] = await self.snapshot()
        else:
            records = await self.try_snapshot()
        if records is None:
            logger.debug(f"[{self._name}] Store busy, skipping save")
            return False

        try:
            await asyncio.to_thread(save_records, records, path)
        except PersistenceError as e:
            logger.error(f"[{self._name}] Save failed: {e}")
            return False

        self._last_saved_at = datetime.now(timezone.utc)
        logger.debug(f"[{self._name}] Saved {len(records)} pies to {path}")
        return True

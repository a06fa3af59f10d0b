"""
Refresh Engine - the single writer of the PieStore.

Each cycle:
1. Fetch      list_pies(); rate limiting or any remote error ends the cycle
              without touching the store
2. Reconcile  upsert every listed pie
3. Enrich     fetch_pie_meta() for listed pies that still lack name or
              creation date; failures are retried next cycle
4. Sleep      until the next cycle boundary

State Machine:
    [STOPPED] --start()--> [RUNNING] --stop()--> [STOPPING] --> [STOPPED]
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from pietracker.config.configs import EngineConfig
from pietracker.engine.types import CycleOutcome, CycleResult, EngineState, EngineStats
from pietracker.errors.errors import RateLimitedError, RemoteError, SchemaError
from pietracker.ports.portfolio_source import PortfolioSource
from pietracker.remote.shapes import excerpt
from pietracker.store.pie_store import PieStore
from pietracker.types.types import RawPie

logger = logging.getLogger(__name__)


class RefreshEngine:
    """
    Periodically merges the remote pie listing into a PieStore.

    The engine never holds the store lock across network calls: every store
    operation it issues is a short in-memory update. A failing cycle is
    logged and counted; the loop itself only ends on stop().

    Usage:
        engine = RefreshEngine(source, store, EngineConfig(refresh_interval_s=2.0))
        await engine.start()
        # ... readers call store.snapshot() ...
        await engine.stop()
    """

    def __init__(
        self,
        source: PortfolioSource,
        store: PieStore,
        config: EngineConfig,
        on_cycle: Optional[Callable[[CycleResult], Awaitable[None]]] = None,
        name: str = "refresh",
    ) -> None:
        """
        Initialize the refresh engine.

        Args:
            source: Remote portfolio source
            store: Store to merge into
            config: Engine configuration (interval, stop timeout)
            on_cycle: Optional callback invoked after every cycle
            name: Name for logging purposes
        """
        self._source = source
        self._store = store
        self._config = config
        self._on_cycle = on_cycle
        self._name = name

        self._state = EngineState.STOPPED
        self._started_at: Optional[datetime] = None
        self._stats = EngineStats()

        self._task: Optional[asyncio.Task[None]] = None
        self._shutdown_event = asyncio.Event()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == EngineState.RUNNING

    @property
    def stats(self) -> EngineStats:
        return self._stats

    # --- lifecycle ---

    async def start(self) -> None:
        """Start the background refresh loop."""
        if self._task is not None:
            logger.warning(f"[{self._name}] Already running")
            return

        self._shutdown_event.clear()
        self._state = EngineState.RUNNING
        self._started_at = datetime.now(timezone.utc)
        self._task = asyncio.create_task(self._run_loop(), name=f"{self._name}_loop")
        logger.info(
            f"[{self._name}] Started (interval {self._config.refresh_interval_s:.1f}s, "
            f"{len(self._store)} pies known)"
        )

    async def stop(self) -> None:
        """
        Stop the loop after the in-flight cycle.

        If the cycle does not finish within stop_timeout_s (e.g. a hung remote
        call) the task is cancelled.
        """
        if self._task is None:
            return

        logger.info(f"[{self._name}] Stopping...")
        self._state = EngineState.STOPPING
        self._shutdown_event.set()

        task = self._task
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._config.stop_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"[{self._name}] Cycle still running after stop timeout, cancelling")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._task = None
        self._state = EngineState.STOPPED
        logger.info(f"[{self._name}] Stopped after {self._stats.cycles} cycles")

    async def _run_loop(self) -> None:
        """Main loop: cycle, then wait for the next boundary or shutdown."""
        try:
            while not self._shutdown_event.is_set():
                started = time.monotonic()
                try:
                    result = await self.run_cycle()
                except Exception as e:
                    # Only stop() ends the loop
                    logger.error(f"[{self._name}] Unexpected cycle error: {e}", exc_info=True)
                    result = CycleResult(
                        outcome=CycleOutcome.FAILED,
                        error=f"{type(e).__name__}: {e}",
                    )
                    self._stats.record(result, datetime.now(timezone.utc))

                if self._on_cycle:
                    try:
                        await self._on_cycle(result)
                    except Exception as e:
                        logger.warning(f"[{self._name}] Cycle callback error: {e}")

                elapsed = time.monotonic() - started
                delay = max(0.0, self._config.refresh_interval_s - elapsed)
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Loop cancelled")
            raise

    # --- one cycle ---

    async def run_cycle(self) -> CycleResult:
        """Run Fetch, Reconcile and Enrich once and record the outcome."""
        result = await self._cycle()
        self._stats.record(result, datetime.now(timezone.utc))
        return result

    async def _cycle(self) -> CycleResult:
        # 1. Fetch
        try:
            pies = await self._source.list_pies()
        except RateLimitedError as e:
            retry = f", retry after {e.retry_after_s:.0f}s" if e.retry_after_s is not None else ""
            logger.info(f"[{self._name}] Rate limited, skipping cycle{retry}")
            return CycleResult(outcome=CycleOutcome.RATE_LIMITED)
        except SchemaError as e:
            logger.error(
                f"[{self._name}] Unparseable pie listing: {e}; "
                f"body: {excerpt(e.raw_body or '')}"
            )
            return CycleResult(outcome=CycleOutcome.FAILED, error=str(e))
        except RemoteError as e:
            logger.warning(f"[{self._name}] Pie listing failed: {e}")
            return CycleResult(outcome=CycleOutcome.FAILED, error=str(e))

        # 2. Reconcile
        for raw in pies:
            await self._store.upsert(raw)

        # 3. Enrich
        enriched, failures = await self._enrich(pies)

        logger.debug(
            f"[{self._name}] Cycle ok: {len(pies)} pies, "
            f"{enriched} enriched, {failures} enrichment failures"
        )
        return CycleResult(
            outcome=CycleOutcome.OK,
            pies_seen=len(pies),
            enriched=enriched,
            enrichment_failures=failures,
        )

    async def _enrich(self, pies: list[RawPie]) -> tuple[int, int]:
        """Fetch metadata for listed pies missing it. Returns (enriched, failed)."""
        enriched = 0
        failures = 0

        for raw in pies:
            if not await self._store.needs_enrichment(raw.id):
                continue

            try:
                meta = await self._source.fetch_pie_meta(raw.id)
            except RateLimitedError:
                # Remaining pies are retried next cycle
                logger.info(f"[{self._name}] Rate limited during enrichment, deferring")
                failures += 1
                break
            except RemoteError as e:
                logger.warning(f"[{self._name}] Metadata fetch for pie {raw.id} failed: {e}")
                failures += 1
                continue

            if await self._store.set_enrichment(raw.id, meta.created_at, meta.name):
                enriched += 1
                logger.info(
                    f"[{self._name}] Enriched pie {raw.id}"
                    + (f" ({meta.name})" if meta.name else "")
                )

        return enriched, failures

    # --- public helpers ---

    def get_stats(self) -> dict[str, Any]:
        """Get statistics summary."""
        s = self._stats
        return {
            "state": self._state.value,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "cycles": s.cycles,
            "ok_cycles": s.ok_cycles,
            "rate_limited_cycles": s.rate_limited_cycles,
            "failed_cycles": s.failed_cycles,
            "pies_enriched": s.pies_enriched,
            "enrichment_failures": s.enrichment_failures,
            "last_error": s.last_error,
            "last_error_at": s.last_error_at.isoformat() if s.last_error_at else None,
            "last_success_at": s.last_success_at.isoformat() if s.last_success_at else None,
            "pies_known": len(self._store),
        }

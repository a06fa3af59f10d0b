"""
Trading 212 pie tracker.

Polls the pie listing, merges it into a lock-protected in-memory store,
enriches each pie once with its name and creation date, and persists the
merged view to a JSON state file.

Components:
- Trading212Source: REST client for the listing and detail endpoints
- PieStore: merged view with snapshot(), load/save
- RefreshEngine: background fetch -> reconcile -> enrich loop
- PeriodicSaver: best-effort periodic persistence
- metrics: annualized_return, aggregate_totals, snapshot_frame

Usage:
    from pietracker import PieStore, RefreshEngine, Trading212Source, EngineConfig, RemoteConfig

    store = PieStore.from_disk(Path("pies.json"))
    async with Trading212Source(token, RemoteConfig()) as source:
        engine = RefreshEngine(source, store, EngineConfig())
        await engine.start()
"""

from pietracker.config.configs import (
    EngineConfig,
    Environment,
    PersistenceConfig,
    RemoteConfig,
    TrackerConfig,
)
from pietracker.engine.refresh import RefreshEngine
from pietracker.engine.saver import PeriodicSaver
from pietracker.engine.types import CycleOutcome, CycleResult, EngineState
from pietracker.errors.errors import (
    BusinessError,
    ConfigurationError,
    PersistenceError,
    PieTrackerError,
    RateLimitedError,
    RemoteError,
    RemoteStatusError,
    SchemaError,
    TransportError,
)
from pietracker.metrics.metrics import (
    Totals,
    aggregate_totals,
    annualized_return,
    snapshot_frame,
)
from pietracker.remote.source import Trading212Source
from pietracker.store.pie_store import PieStore
from pietracker.types.types import DividendDetails, PieMeta, PieRecord, RawPie, ResultDetails

__all__ = [
    # Main entry points
    "PieStore",
    "RefreshEngine",
    "PeriodicSaver",
    "Trading212Source",
    # Config
    "TrackerConfig",
    "RemoteConfig",
    "EngineConfig",
    "PersistenceConfig",
    "Environment",
    # Types
    "PieRecord",
    "RawPie",
    "PieMeta",
    "DividendDetails",
    "ResultDetails",
    "EngineState",
    "CycleOutcome",
    "CycleResult",
    # Metrics
    "Totals",
    "annualized_return",
    "aggregate_totals",
    "snapshot_frame",
    # Errors
    "PieTrackerError",
    "RemoteError",
    "TransportError",
    "RateLimitedError",
    "RemoteStatusError",
    "SchemaError",
    "BusinessError",
    "PersistenceError",
    "ConfigurationError",
]

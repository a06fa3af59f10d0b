"""
Shared types and enums for the refresh engine and saver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class EngineState(str, Enum):
    """Lifecycle of a background loop (refresh engine, saver)."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class CycleOutcome(str, Enum):
    """How the fetch step of a refresh cycle ended."""

    OK = "ok"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CycleResult:
    """Summary of one refresh cycle."""

    outcome: CycleOutcome
    pies_seen: int = 0
    enriched: int = 0
    enrichment_failures: int = 0
    error: Optional[str] = None

    @property
    def mutated_store(self) -> bool:
        return self.outcome == CycleOutcome.OK and self.pies_seen > 0


@dataclass
class EngineStats:
    """Running counters for the refresh engine."""

    cycles: int = 0
    ok_cycles: int = 0
    rate_limited_cycles: int = 0
    failed_cycles: int = 0
    pies_enriched: int = 0
    enrichment_failures: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None

    def record(self, result: CycleResult, at: datetime) -> None:
        self.cycles += 1
        self.pies_enriched += result.enriched
        self.enrichment_failures += result.enrichment_failures

        if result.outcome == CycleOutcome.OK:
            self.ok_cycles += 1
            self.last_success_at = at
        elif result.outcome == CycleOutcome.RATE_LIMITED:
            self.rate_limited_cycles += 1
        else:
            self.failed_cycles += 1

        if result.error is not None and result.outcome == CycleOutcome.FAILED:
            self.last_error = result.error
            self.last_error_at = at

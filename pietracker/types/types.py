"""
Domain types shared across the tracker.

Records are immutable: the store swaps whole instances, so a reader holding a
PieRecord never sees it change underneath.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

PieId = int


@dataclass(frozen=True, slots=True)
class DividendDetails:
    gained: float = 0.0
    reinvested: float = 0.0
    in_cash: float = 0.0


@dataclass(frozen=True, slots=True)
class ResultDetails:
    invested_value: float = 0.0
    current_value: float = 0.0
    absolute_result: float = 0.0
    result_coefficient: float = 0.0


@dataclass(frozen=True, slots=True)
class RawPie:
    """Live fields of one pie as reported by the listing endpoint."""

    id: PieId
    cash: float = 0.0
    dividend: DividendDetails = DividendDetails()
    result: ResultDetails = ResultDetails()
    progress: Optional[float] = None
    status: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PieMeta:
    """One-time metadata from the pie detail endpoint."""

    created_at: float  # seconds since epoch
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PieRecord:
    """
    Merged view of one pie.

    Live fields (cash, dividend, result, progress, status) follow the latest
    listing. Enrichment fields (name, created_at) are written at most once.
    """

    id: PieId
    cash: float = 0.0
    dividend: DividendDetails = DividendDetails()
    result: ResultDetails = ResultDetails()
    progress: Optional[float] = None
    status: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[float] = None

    @classmethod
    def from_raw(cls, raw: RawPie) -> PieRecord:
        return cls(
            id=raw.id,
            cash=raw.cash,
            dividend=raw.dividend,
            result=raw.result,
            progress=raw.progress,
            status=raw.status,
        )

    @property
    def needs_enrichment(self) -> bool:
        return self.name is None or self.created_at is None

    def with_live_fields(self, raw: RawPie) -> PieRecord:
        """Copy with every live field taken from ``raw``; enrichment is kept."""
        return replace(
            self,
            cash=raw.cash,
            dividend=raw.dividend,
            result=raw.result,
            progress=raw.progress,
            status=raw.status,
        )

    def with_enrichment(
        self, created_at: Optional[float], name: Optional[str]
    ) -> PieRecord:
        """Copy with unset enrichment fields filled; set ones are never replaced."""
        return replace(
            self,
            created_at=self.created_at if self.created_at is not None else created_at,
            name=self.name if self.name is not None else name,
        )

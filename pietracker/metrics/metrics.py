"""
Derived metrics over store snapshots.

Side-effect free: pure calculators over a list of PieRecord plus an explicit
"now", so consumers decide the clock and results are reproducible.
"""

from __future__ import annotations

import time
from math import isfinite
from typing import Iterable, NamedTuple, Optional

import polars as pl

from pietracker.types.types import PieRecord

SECONDS_PER_YEAR = 365 * 86400

FRAME_SCHEMA: dict[str, pl.DataType] = {
    "id": pl.Int64(),
    "name": pl.Utf8(),
    "status": pl.Utf8(),
    "invested": pl.Float64(),
    "current": pl.Float64(),
    "result_pct": pl.Float64(),
    "progress_pct": pl.Float64(),
    "annualized_pct": pl.Float64(),
    "created_at": pl.Float64(),
    "cash": pl.Float64(),
    "dividends_gained": pl.Float64(),
}


class Totals(NamedTuple):
    total_invested: float
    total_current: float
    total_return_percent: float


def annualized_return(
    invested_value: float,
    current_value: float,
    created_at: float,
    now: float,
) -> float:
    """
    Compound annual growth rate over the pie's lifetime, in percent.

    Returns 0 for pies without invested value, without a known creation date,
    or with a creation date not in the past.
    """
    if invested_value <= 0 or created_at <= 0 or now <= created_at:
        return 0.0
    if current_value <= 0:
        return -100.0

    exponent = SECONDS_PER_YEAR / (now - created_at)
    try:
        rate = ((current_value / invested_value) ** exponent - 1.0) * 100.0
    except OverflowError:
        return float("inf")
    return rate if isfinite(rate) else float("inf")


def record_annualized_return(record: PieRecord, now: Optional[float] = None) -> float:
    now = time.time() if now is None else now
    return annualized_return(
        record.result.invested_value,
        record.result.current_value,
        record.created_at or 0.0,
        now,
    )


def result_percent(record: PieRecord) -> float:
    return record.result.result_coefficient * 100.0


def aggregate_totals(records: Iterable[PieRecord]) -> Totals:
    total_invested = 0.0
    total_current = 0.0
    for record in records:
        total_invested += record.result.invested_value
        total_current += record.result.current_value

    if total_invested == 0:
        return Totals(total_invested, total_current, 0.0)
    return Totals(
        total_invested,
        total_current,
        (total_current - total_invested) / total_invested * 100.0,
    )


def pie_rows(records: Iterable[PieRecord], now: Optional[float] = None) -> list[dict]:
    """One flat dict per pie, ordered by id, for list- or table-style consumers."""
    now = time.time() if now is None else now
    rows = []
    for record in sorted(records, key=lambda r: r.id):
        rows.append(
            {
                "id": record.id,
                "name": record.name,
                "status": record.status,
                "invested": record.result.invested_value,
                "current": record.result.current_value,
                "result_pct": result_percent(record),
                "progress_pct": (record.progress or 0.0) * 100.0,
                "annualized_pct": record_annualized_return(record, now),
                "created_at": record.created_at,
                "cash": record.cash,
                "dividends_gained": record.dividend.gained,
            }
        )
    return rows


def snapshot_frame(records: Iterable[PieRecord], now: Optional[float] = None) -> pl.DataFrame:
    """Snapshot as a polars DataFrame (empty frame with the full schema if no pies)."""
    return pl.DataFrame(pie_rows(records, now), schema=FRAME_SCHEMA)

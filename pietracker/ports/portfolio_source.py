"""PortfolioSource Port Interface.

Contract: the two remote reads the refresh engine needs. Implementations do
network I/O only, keep no local state about pies and never retry internally.
Failures surface as RemoteError subclasses (RateLimitedError for HTTP 429).
"""

from __future__ import annotations

from typing import Protocol

from pietracker.types.types import PieId, PieMeta, RawPie


class PortfolioSource(Protocol):
    async def list_pies(self) -> list[RawPie]:
        """Return the live fields of every pie currently on the account."""
        ...

    async def fetch_pie_meta(self, pie_id: PieId) -> PieMeta:
        """Return creation date and name of one pie."""
        ...

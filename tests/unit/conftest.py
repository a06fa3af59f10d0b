from typing import Any, Callable

import pytest


@pytest.fixture
def wire_pie() -> Callable[..., dict[str, Any]]:
    """Factory for one pie object in the listing's wire layout."""

    def _make(
        pie_id: int = 17,
        invested: float = 100.0,
        value: float = 110.0,
        cash: float = 0.5,
        progress: float | None = 0.4,
        status: str | None = "AHEAD",
    ) -> dict[str, Any]:
        return {
            "id": pie_id,
            "cash": cash,
            "dividendDetails": {"gained": 1.2, "reinvested": 1.0, "inCash": 0.2},
            "result": {
                "priceAvgInvestedValue": invested,
                "priceAvgValue": value,
                "priceAvgResult": value - invested,
                "priceAvgResultCoef": (value - invested) / invested if invested else 0.0,
            },
            "progress": progress,
            "status": status,
        }

    return _make

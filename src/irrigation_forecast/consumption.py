from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

import numpy as np

from .reservoir import ForecastPoint

DEFAULT_SUPPLY_CAPACITY = 1500.0  # m³/day


@dataclass(frozen=True)
class ShortageAnalysis:
    will_have_shortage: bool
    shortage_start_date: Optional[date]
    shortage_amount: float
    shortage_percentage: int

    def to_dict(self) -> dict:
        return {
            "will_have_shortage": self.will_have_shortage,
            "shortage_start_date": self.shortage_start_date.isoformat() if self.shortage_start_date else None,
            "shortage_amount": self.shortage_amount,
            "shortage_percentage": self.shortage_percentage,
        }


def consumption_change(values: Sequence[float]) -> int:
    """Percent change of the last 15 days against the 15 before them (needs 30 points)."""
    if len(values) < 30:
        return 0
    recent = np.asarray(values[-30:], dtype=float)
    previous, last = recent[:15].mean(), recent[15:].mean()
    if previous == 0:
        return 0
    return int(round((last - previous) / previous * 100))


def predict_shortage(forecast: Sequence[ForecastPoint],
                     supply_capacity: float = DEFAULT_SUPPLY_CAPACITY) -> ShortageAnalysis:
    start = None
    amount = 0.0
    for p in forecast:
        v = p.value or 0.0
        if v > supply_capacity:
            if start is None:
                start = p.date
            amount += v - supply_capacity

    pct = 0
    if start is not None:
        total = sum(p.value or 0.0 for p in forecast)
        pct = int(round(amount / total * 100)) if total else 0
    return ShortageAnalysis(
        will_have_shortage=start is not None,
        shortage_start_date=start,
        shortage_amount=amount,
        shortage_percentage=pct,
    )

"""Synthetic daily histories for demos and tests."""
from __future__ import annotations
from datetime import date, timedelta
from typing import List, Optional

import numpy as np

from .reservoir import ReservoirObservation, TimeSeriesPoint


def generate_consumption_history(days: int,
                                 end_date: Optional[date] = None,
                                 rng: Optional[np.random.Generator] = None) -> List[TimeSeriesPoint]:
    """Daily consumption (m³) for the ``days`` days before ``end_date``."""
    rng = rng or np.random.default_rng()
    end_date = end_date or date.today()
    out = []
    for i in range(days, 0, -1):
        d = end_date - timedelta(days=i)
        seasonal = np.sin((d.month - 1) / 12 * np.pi * 2) * 100
        weekend = -50 if d.weekday() >= 5 else 0
        noise = int(rng.integers(0, 100)) - 50
        trend = (days - i) * 0.5
        value = max(800, int(np.floor(1200 + seasonal + weekend + noise + trend)))
        out.append(TimeSeriesPoint(d, float(value)))
    return out


def generate_reservoir_history(days: int = 60,
                               end_date: Optional[date] = None,
                               rng: Optional[np.random.Generator] = None) -> List[ReservoirObservation]:
    rng = rng or np.random.default_rng()
    end_date = end_date or date.today()
    start = end_date - timedelta(days=days)
    level = 5_000_000.0
    out = []
    for i in range(days):
        season = np.sin(i / days * np.pi) * 50_000
        noise = (rng.random() - 0.5) * 20_000
        inflow = max(40_000 + season + noise, 10_000)
        outflow = max(35_000 + season * 0.8 + noise * 0.9, 8_000)
        level = min(max(level + inflow - outflow, 1_000_000), 10_000_000)
        out.append(ReservoirObservation(
            date=start + timedelta(days=i),
            inflow=float(round(inflow)),
            outflow=float(round(outflow)),
            level=float(round(level)),
        ))
    return out

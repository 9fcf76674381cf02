from __future__ import annotations
from typing import List

import pandas as pd

from .reservoir import ReservoirObservation, TimeSeriesPoint


def _read_dated(path: str, columns: List[str]) -> pd.DataFrame:
    df = pd.read_csv(path)
    # required columns
    assert "date" in df.columns, "missing date"
    for c in columns:
        assert c in df.columns, f"missing {c}"
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.date
    df = df.dropna(subset=["date"])
    dup = df["date"].duplicated(keep=False)
    if dup.any():
        raise ValueError(f"duplicate dates in {path}: {sorted(set(df.loc[dup, 'date']))[:5]}")
    for c in columns:
        df[c] = pd.to_numeric(df[c], errors="coerce").astype(float)
    df = df.dropna(subset=columns)
    return df.sort_values("date").reset_index(drop=True)


def load_reservoir_csv(path: str) -> List[ReservoirObservation]:
    """CSV with ``date,inflow,outflow,level`` columns (extra columns ignored)."""
    df = _read_dated(path, ["inflow", "outflow", "level"])
    return [
        ReservoirObservation(r.date, r.inflow, r.outflow, r.level)
        for r in df.itertuples(index=False)
    ]


def load_series_csv(path: str, column: str = "value") -> List[TimeSeriesPoint]:
    df = _read_dated(path, [column])
    return [TimeSeriesPoint(d, float(v)) for d, v in zip(df["date"], df[column])]


def save_reservoir_csv(history: List[ReservoirObservation], path: str) -> str:
    df = pd.DataFrame(
        [{"date": o.date.isoformat(), "inflow": o.inflow, "outflow": o.outflow, "level": o.level} for o in history]
    )
    df.to_csv(path, index=False)
    return path

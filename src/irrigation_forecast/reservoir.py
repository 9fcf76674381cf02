"""
Reservoir and consumption forecasters built on :class:`SignalForecaster`.

A reservoir tracks three signals (inflow, outflow, level), each with its own
model and normalization. Forecasts are packaged as a :class:`ForecastBundle`
of daily points plus weekly and monthly samples of the same points.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .errors import InsufficientDataError
from .forecaster import ModelState, SignalConfig, SignalForecaster

logger = logging.getLogger(__name__)

SIGNALS = ("inflow", "outflow", "level")
WEEKLY_EVERY = 7
MONTHLY_EVERY = 30


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: date
    value: float


@dataclass(frozen=True)
class ReservoirObservation:
    date: date
    inflow: float
    outflow: float
    level: float


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    inflow: Optional[float] = None
    outflow: Optional[float] = None
    level: Optional[float] = None
    value: Optional[float] = None

    def to_dict(self) -> dict:
        out = {"date": self.date.isoformat()}
        for key in ("inflow", "outflow", "level", "value"):
            v = getattr(self, key)
            if v is not None:
                out[key] = v
        return out


@dataclass(frozen=True)
class ForecastBundle:
    daily: List[ForecastPoint] = field(default_factory=list)
    weekly: List[ForecastPoint] = field(default_factory=list)
    monthly: List[ForecastPoint] = field(default_factory=list)

    @classmethod
    def from_daily(cls, daily: Sequence[ForecastPoint]) -> "ForecastBundle":
        daily = list(daily)
        weekly = [p for i, p in enumerate(daily) if i % WEEKLY_EVERY == WEEKLY_EVERY - 1]
        monthly = [p for i, p in enumerate(daily) if i % MONTHLY_EVERY == MONTHLY_EVERY - 1]
        return cls(daily=daily, weekly=weekly, monthly=monthly)

    def to_dict(self) -> Dict[str, List[dict]]:
        return {
            "daily": [p.to_dict() for p in self.daily],
            "weekly": [p.to_dict() for p in self.weekly],
            "monthly": [p.to_dict() for p in self.monthly],
        }


@dataclass(frozen=True)
class Outlook:
    days: int
    avg_inflow: float
    avg_outflow: float
    net_change: float


@dataclass(frozen=True)
class CriticalPoints:
    highest_level: float
    highest_date: date
    lowest_level: float
    lowest_date: date


def check_dates(points: Sequence) -> None:
    """Dates must be strictly increasing (sorted, no duplicates)."""
    for prev, cur in zip(points, points[1:]):
        if cur.date <= prev.date:
            raise ValueError(f"series dates must be strictly increasing: {prev.date} then {cur.date}")


def _non_negative(v: float) -> float:
    v = float(v)
    if not math.isfinite(v):
        return 0.0
    return max(0.0, v)


class ReservoirForecaster:
    """Independent inflow, outflow and level models for one reservoir."""

    def __init__(self, config: Optional[SignalConfig] = None):
        self.config = config or SignalConfig()
        self.signals: Dict[str, SignalForecaster] = {
            name: SignalForecaster(name, self.config) for name in SIGNALS
        }

    @property
    def state(self) -> ModelState:
        states = {s.state for s in self.signals.values()}
        if ModelState.TRAINING in states:
            return ModelState.TRAINING
        if states == {ModelState.READY}:
            return ModelState.READY
        return ModelState.IDLE

    def train(self, history: Sequence[ReservoirObservation]) -> None:
        """
        Train the inflow, outflow and level models in that order.

        Each signal swaps in its new network only when its own training succeeds.
        A failure part way through leaves earlier signals on the new models and
        later ones on their previous models (or untrained); retrain to recover.
        """
        required = self.config.window_size + self.config.look_ahead
        if len(history) < required:
            raise InsufficientDataError(required, len(history), "reservoir history")
        check_dates(history)
        logger.info("Training reservoir models on %d days of history", len(history))
        for name, model in self.signals.items():
            model.train([getattr(obs, name) for obs in history])

    def forecast(self,
                 history: Sequence[ReservoirObservation],
                 days: Optional[int] = None,
                 start_date: Optional[date] = None) -> ForecastBundle:
        days = self.config.forecast_days if days is None else days
        start_date = start_date or date.today()
        series = {
            name: model.forecast([getattr(obs, name) for obs in history], days)
            for name, model in self.signals.items()
        }
        daily = [
            ForecastPoint(
                date=start_date + timedelta(days=i),
                inflow=_non_negative(series["inflow"][i]),
                outflow=_non_negative(series["outflow"][i]),
                level=_non_negative(series["level"][i]),
            )
            for i in range(days)
        ]
        return ForecastBundle.from_daily(daily)

    def save(self, directory) -> Dict[str, str]:
        directory = Path(directory)
        return {name: model.save(directory / f"{name}.pt") for name, model in self.signals.items()}

    @classmethod
    def load(cls, directory) -> "ReservoirForecaster":
        directory = Path(directory)
        signals = {name: SignalForecaster.load(directory / f"{name}.pt") for name in SIGNALS}
        inst = cls(signals["level"].config)
        inst.signals = signals
        return inst


class ConsumptionForecaster:
    """Single generic consumption series, dated from the day after the history ends."""

    def __init__(self, config: Optional[SignalConfig] = None):
        self.config = config or SignalConfig(window_size=7, hidden_sizes=(50,), dropout=0.0, epochs=50)
        self.model = SignalForecaster("value", self.config)

    @property
    def state(self) -> ModelState:
        return self.model.state

    def train(self, history: Sequence[TimeSeriesPoint]) -> None:
        check_dates(history)
        self.model.train([p.value for p in history])

    def forecast(self, history: Sequence[TimeSeriesPoint], days: Optional[int] = None) -> ForecastBundle:
        days = self.config.forecast_days if days is None else days
        values = self.model.forecast([p.value for p in history], days)
        last = history[-1].date
        daily = [ForecastPoint(date=last + timedelta(days=i + 1), value=float(v)) for i, v in enumerate(values)]
        return ForecastBundle.from_daily(daily)


def summarize_outlook(daily: Sequence[ForecastPoint], days: Optional[int] = None) -> Outlook:
    """Average flows and net level change over the first ``days`` points (default: all)."""
    if not daily:
        raise ValueError("empty forecast")
    days = len(daily) if days is None else min(days, len(daily))
    window = daily[:days]
    return Outlook(
        days=days,
        avg_inflow=sum(p.inflow or 0.0 for p in window) / days,
        avg_outflow=sum(p.outflow or 0.0 for p in window) / days,
        net_change=(window[-1].level or 0.0) - (window[0].level or 0.0),
    )


def critical_points(daily: Sequence[ForecastPoint]) -> CriticalPoints:
    if not daily:
        raise ValueError("empty forecast")
    highest = max(daily, key=lambda p: p.level or 0.0)
    lowest = min(daily, key=lambda p: p.level or 0.0)
    return CriticalPoints(
        highest_level=highest.level or 0.0,
        highest_date=highest.date,
        lowest_level=lowest.level or 0.0,
        lowest_date=lowest.date,
    )

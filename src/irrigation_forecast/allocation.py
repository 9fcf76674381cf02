"""
Irrigation allocation recommendation.

Combines the crop's daily requirement with the reservoir's current fullness and
its forecasted level to suggest how much water to release and on which day.
All volumes (levels, capacity, flows, requirement) must be in the same unit.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, fields
from datetime import date, timedelta
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from .crops import daily_requirement

logger = logging.getLogger(__name__)


class AllocationStatus(str, Enum):
    OPTIMAL = "optimal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class AllocationPolicy:
    critical_threshold: float = 0.30
    warning_threshold: float = 0.60
    critical_days: int = 3
    warning_days: int = 5
    optimal_days: int = 7
    horizon_days: int = 7

    @classmethod
    def from_cfg(cls, section) -> "AllocationPolicy":
        raw = section.d if hasattr(section, "d") else dict(section or {})
        valid = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in valid})


@dataclass(frozen=True)
class AllocationRecommendation:
    recommended_amount: float
    recommended_date: date
    status: AllocationStatus
    message: str
    projected_reservoir_level: float
    impact_message: str

    def to_dict(self) -> dict:
        return {
            "recommendedAmount": self.recommended_amount,
            "recommendedDate": self.recommended_date.isoformat(),
            "status": self.status.value,
            "message": self.message,
            "projectedReservoirLevel": self.projected_reservoir_level,
            "impactMessage": self.impact_message,
        }


def classify(fullness: float, policy: AllocationPolicy = AllocationPolicy()) -> Tuple[AllocationStatus, int]:
    """Map reservoir fullness (0..1) to a status and the number of days of demand to release."""
    if fullness < policy.critical_threshold:
        return AllocationStatus.CRITICAL, policy.critical_days
    if fullness < policy.warning_threshold:
        return AllocationStatus.WARNING, policy.warning_days
    return AllocationStatus.OPTIMAL, policy.optimal_days


def best_release_date(forecasted_levels: Sequence[float], start_date: date, horizon_days: int = 7) -> date:
    """Day with the highest forecasted level in the horizon; earliest wins ties."""
    best_idx = 0
    best = None
    for i, level in enumerate(list(forecasted_levels)[:horizon_days]):
        if best is None or level > best:
            best_idx, best = i, level
    return start_date + timedelta(days=best_idx)


def _status_message(status: AllocationStatus, pct: float, days: int, weekly: float) -> str:
    if status is AllocationStatus.CRITICAL:
        return (f"Reservoir is at {pct:.1f}% of capacity. Water is scarce: "
                f"release only {days} days of demand and postpone non-essential irrigation.")
    if status is AllocationStatus.WARNING:
        return (f"Reservoir is at {pct:.1f}% of capacity. Use water with caution: "
                f"{days} days of demand is recommended instead of the full week ({weekly:,.0f}).")
    return (f"Reservoir is at {pct:.1f}% of capacity. Supply is sufficient "
            f"for a full week of irrigation ({weekly:,.0f}).")


def recommend(crop_type: Optional[str],
              field_size_hectares: float,
              days_since_planting: int,
              forecasted_levels: Sequence[float],
              reservoir_capacity: float,
              current_reservoir_level: Optional[float] = None,
              irrigation_method: Optional[str] = None,
              forecasted_inflow: Optional[Sequence[float]] = None,
              forecasted_outflow: Optional[Sequence[float]] = None,
              start_date: Optional[date] = None,
              policy: Optional[AllocationPolicy] = None,
              efficiency: Optional[Mapping[str, float]] = None) -> AllocationRecommendation:
    if reservoir_capacity <= 0:
        raise ValueError("reservoir_capacity must be > 0")
    policy = policy or AllocationPolicy()
    start_date = start_date or date.today()

    if current_reservoir_level is None:
        if len(forecasted_levels) == 0:
            raise ValueError("need current_reservoir_level or at least one forecasted level")
        current_reservoir_level = float(forecasted_levels[0])

    daily = daily_requirement(crop_type, field_size_hectares, days_since_planting, irrigation_method, efficiency)
    weekly = daily * 7

    fullness = current_reservoir_level / reservoir_capacity
    status, days = classify(fullness, policy)
    amount = float(round(daily * days))

    if forecasted_inflow is not None and forecasted_outflow is not None:
        h = min(policy.horizon_days, len(forecasted_inflow), len(forecasted_outflow))
        net_flow = float(np.sum(forecasted_inflow[:h]) - np.sum(forecasted_outflow[:h]))
        projected = current_reservoir_level + net_flow - amount
    else:
        projected = current_reservoir_level - amount

    projected_pct = projected / reservoir_capacity * 100
    impact = f"After this allocation the reservoir is projected at {projected:,.0f} ({projected_pct:.1f}% of capacity)."
    if projected < policy.critical_threshold * reservoir_capacity:
        impact += " This is below the critical threshold."

    logger.debug("Allocation for %s: status=%s amount=%.0f fullness=%.3f", crop_type, status.value, amount, fullness)
    return AllocationRecommendation(
        recommended_amount=amount,
        recommended_date=best_release_date(forecasted_levels, start_date, policy.horizon_days),
        status=status,
        message=_status_message(status, fullness * 100, days, weekly),
        projected_reservoir_level=float(projected),
        impact_message=impact,
    )

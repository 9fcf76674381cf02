from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Sequence

import numpy as np


@dataclass(frozen=True)
class NormalizationParams:
    min: float
    max: float

    @property
    def range(self) -> float:
        # constant series: treat range as 1 so the transform stays defined
        return (self.max - self.min) or 1.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "NormalizationParams":
        return cls(min=float(d["min"]), max=float(d["max"]))


def fit(series: Sequence[float]) -> NormalizationParams:
    values = np.asarray(series, dtype=float)
    if values.size == 0:
        raise ValueError("cannot fit normalization on an empty series")
    return NormalizationParams(min=float(values.min()), max=float(values.max()))


def normalize(series: Sequence[float], params: NormalizationParams) -> np.ndarray:
    """
    Min-max scale ``series`` with previously fitted ``params``.

    Values outside ``[params.min, params.max]`` map outside ``[0, 1]``; nothing is clipped.
    """
    values = np.asarray(series, dtype=float)
    return (values - params.min) / params.range


def denormalize(series: Sequence[float], params: NormalizationParams) -> np.ndarray:
    values = np.asarray(series, dtype=float)
    return values * params.range + params.min

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch
from torch.utils.data import DataLoader, TensorDataset

from .errors import InsufficientDataError


@dataclass(frozen=True)
class TrainingWindow:
    input: Tuple[float, ...]   # W normalized values
    target: Tuple[float, ...]  # L normalized values


def count_windows(n: int, window_size: int, look_ahead: int) -> int:
    return max(0, n - window_size - look_ahead + 1)


def build_training_set(
    normalized_series: Sequence[float],
    window_size: int,
    look_ahead: int = 1,
) -> List[TrainingWindow]:
    """
    Slide a ``window_size + look_ahead`` frame across the series with stride 1.

    Raises:
        InsufficientDataError: the series yields no window at all.
    """
    if window_size < 1 or look_ahead < 1:
        raise ValueError("window_size and look_ahead must be positive")
    values = [float(v) for v in normalized_series]
    n_windows = count_windows(len(values), window_size, look_ahead)
    if n_windows == 0:
        raise InsufficientDataError(window_size + look_ahead, len(values), "training series")

    windows = []
    for i in range(n_windows):
        x = values[i:i + window_size]
        y = values[i + window_size:i + window_size + look_ahead]
        windows.append(TrainingWindow(tuple(x), tuple(y)))
    return windows


def to_tensors(windows: Sequence[TrainingWindow]) -> Tuple[torch.Tensor, torch.Tensor]:
    # inputs are [N, W, 1]: W timesteps of a single feature
    x = np.array([w.input for w in windows], dtype=np.float32)[..., None]
    y = np.array([w.target for w in windows], dtype=np.float32)
    return torch.from_numpy(x), torch.from_numpy(y)


def make_dataloader(
    windows: Sequence[TrainingWindow],
    batch_size: int = 32,
    shuffle: bool = True,
    seed: Optional[int] = None,
) -> DataLoader:
    x, y = to_tensors(windows)
    generator = None
    if seed is not None:
        generator = torch.Generator().manual_seed(seed)
    return DataLoader(TensorDataset(x, y), batch_size=batch_size, shuffle=shuffle,
                      generator=generator, num_workers=0)

from __future__ import annotations
import pytest
import torch

from src.irrigation_forecast.dataset import build_training_set, count_windows, make_dataloader, to_tensors
from src.irrigation_forecast.errors import InsufficientDataError


def test_window_count_and_contents():
    series = [float(i) for i in range(20)]
    windows = build_training_set(series, window_size=7, look_ahead=1)
    assert len(windows) == 20 - 7 - 1 + 1
    assert windows[0].input == tuple(float(i) for i in range(7))
    assert windows[0].target == (7.0,)
    assert windows[-1].input == tuple(float(i) for i in range(12, 19))
    assert windows[-1].target == (19.0,)


def test_multi_step_targets():
    windows = build_training_set(list(range(10)), window_size=3, look_ahead=2)
    assert len(windows) == count_windows(10, 3, 2) == 6
    assert all(len(w.input) == 3 and len(w.target) == 2 for w in windows)


def test_exact_minimum_length_gives_one_window():
    assert len(build_training_set(list(range(8)), window_size=7, look_ahead=1)) == 1


@pytest.mark.parametrize("n", [0, 3, 7])
def test_too_short_raises(n):
    with pytest.raises(InsufficientDataError) as info:
        build_training_set(list(range(n)), window_size=7, look_ahead=1)
    assert info.value.required == 8
    assert info.value.actual == n
    # still a ValueError for callers that only catch that
    assert isinstance(info.value, ValueError)


def test_count_windows_never_negative():
    assert count_windows(3, 7, 1) == 0


def test_tensor_shapes():
    windows = build_training_set([i / 10 for i in range(12)], window_size=4, look_ahead=1)
    x, y = to_tensors(windows)
    assert x.shape == (8, 4, 1)
    assert y.shape == (8, 1)
    assert x.dtype == torch.float32


def test_dataloader_batches():
    windows = build_training_set([i / 100 for i in range(50)], window_size=5, look_ahead=1)
    loader = make_dataloader(windows, batch_size=32, shuffle=True, seed=1)
    sizes = [xb.shape[0] for xb, _ in loader]
    assert sizes == [32, 13]

"""
Per-signal sequence model with a guarded train / forecast lifecycle.

Each :class:`SignalForecaster` owns its network, its normalization parameters and
its training state. Instances share nothing, so inflow, outflow and level models
can be trained and queried independently.

Iterative forecasts feed every prediction back into the input window, so error
compounds over the horizon: values more than a few days out are low confidence.
"""
from __future__ import annotations
import logging
import math
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np
import torch
from torch import nn

from .dataset import build_training_set, make_dataloader
from .errors import InsufficientDataError, ModelNotReadyError, PredictionStepError, TrainingFailedError
from .lstm_model import make_lstm, make_trainer
from .preprocessing import NormalizationParams, denormalize, fit, normalize

logger = logging.getLogger(__name__)


class ModelState(str, Enum):
    IDLE = "idle"
    TRAINING = "training"
    READY = "ready"


@dataclass(frozen=True)
class SignalConfig:
    window_size: int = 14
    look_ahead: int = 1
    hidden_sizes: Tuple[int, ...] = (64, 32)
    dropout: float = 0.2
    epochs: int = 100
    batch_size: int = 32
    learning_rate: float = 1e-3
    forecast_days: int = 30
    fallback_value: float = 0.5
    accelerator: str = "cpu"
    seed: Optional[int] = None

    @classmethod
    def from_cfg(cls, section, **overrides) -> "SignalConfig":
        """Build from a ``CFG`` section (or plain dict); unknown keys are ignored."""
        raw = section.d if hasattr(section, "d") else dict(section or {})
        valid = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in raw.items() if k in valid}
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        if "hidden_sizes" in kwargs:
            kwargs["hidden_sizes"] = tuple(int(h) for h in kwargs["hidden_sizes"])
        return cls(**kwargs)


@contextmanager
def _inference_scope(network: nn.Module):
    # eval + inference_mode for one step; per-step tensors die with the scope
    was_training = network.training
    network.eval()
    try:
        with torch.inference_mode():
            yield
    finally:
        network.train(was_training)


def predict_one(network: nn.Module, window: Sequence[float], window_size: int) -> float:
    """Single-step inference on ``window_size`` normalized values."""
    if len(window) != window_size:
        raise ValueError(f"window must hold {window_size} values, got {len(window)}")
    with _inference_scope(network):
        x = torch.tensor(list(window), dtype=torch.float32).reshape(1, window_size, 1)
        value = float(network(x).reshape(-1)[0])
    if not math.isfinite(value):
        raise PredictionStepError(f"non-finite prediction {value!r}")
    return value


def forecast(network: nn.Module,
             series: Sequence[float],
             params: NormalizationParams,
             days: int,
             window_size: int,
             fallback_value: float = 0.5) -> np.ndarray:
    """
    Roll ``network`` forward ``days`` steps from the tail of ``series``.

    Args:
        network: trained model mapping [1, W, 1] -> [1, L]
        series: raw historical values (at least ``window_size`` of them)
        params: normalization fitted at training time, reused unchanged
        days: number of steps to produce
        fallback_value: normalized value substituted when a step fails

    Returns:
        numpy array of ``days`` values on the raw scale
    """
    if days < 0:
        raise ValueError("days must be >= 0")
    values = np.asarray(series, dtype=float)
    if len(values) < window_size:
        raise InsufficientDataError(window_size, len(values), "forecast history")

    window = deque(normalize(values, params)[-window_size:].tolist(), maxlen=window_size)
    results = []
    for step in range(days):
        try:
            pred = predict_one(network, window, window_size)
        except (PredictionStepError, RuntimeError) as exc:
            logger.warning("Prediction step %d failed (%s); using %.3f", step, exc, fallback_value)
            results.append(fallback_value)
            continue
        results.append(pred)
        window.append(pred)
    return denormalize(results, params)


class SignalForecaster:
    """Trains and queries one LSTM for a single tracked signal."""

    def __init__(self, name: str = "value", config: Optional[SignalConfig] = None):
        self.name = name
        self.config = config or SignalConfig()
        self._lock = threading.Lock()
        self._state = ModelState.IDLE
        self._network: Optional[nn.Module] = None
        self._params: Optional[NormalizationParams] = None

    def __repr__(self):
        return f"SignalForecaster(name={self.name!r}, state={self._state.value})"

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def norm_params(self) -> Optional[NormalizationParams]:
        return self._params

    @property
    def min_history(self) -> int:
        return self.config.window_size + self.config.look_ahead

    def train(self, series: Sequence[float]) -> None:
        values = np.asarray(series, dtype=float)
        if len(values) < self.min_history:
            raise InsufficientDataError(self.min_history, len(values), f"'{self.name}' training series")
        if not np.all(np.isfinite(values)):
            raise ValueError(f"'{self.name}' training series contains non-finite values")

        with self._lock:
            if self._state is ModelState.TRAINING:
                raise ModelNotReadyError(f"'{self.name}' is already training")
            previous = self._state
            self._state = ModelState.TRAINING

        done = False
        try:
            params = fit(values)
            windows = build_training_set(normalize(values, params), self.config.window_size, self.config.look_ahead)
            logger.info("Training '%s' on %d points (%d windows, %d epochs)",
                        self.name, len(values), len(windows), self.config.epochs)
            network = self._fit_network(windows)
            with self._lock:
                self._network, self._params = network, params
                self._state = ModelState.READY
            done = True
        except Exception as exc:
            logger.exception("Training '%s' failed", self.name)
            raise TrainingFailedError(f"training '{self.name}' failed: {exc}") from exc
        finally:
            if not done:
                with self._lock:
                    self._state = previous
        logger.info("Training '%s' finished", self.name)

    def _fit_network(self, windows) -> nn.Module:
        cfg = self.config
        with torch.random.fork_rng(devices=[]):
            if cfg.seed is not None:
                torch.manual_seed(cfg.seed)
            network = make_lstm(
                window_size=cfg.window_size,
                look_ahead=cfg.look_ahead,
                hidden_sizes=cfg.hidden_sizes,
                dropout=cfg.dropout,
                learning_rate=cfg.learning_rate,
            )
            loader = make_dataloader(windows, batch_size=cfg.batch_size, shuffle=True, seed=cfg.seed)
            trainer = make_trainer(max_epochs=cfg.epochs, accelerator=cfg.accelerator)
            trainer.fit(network, loader)
        network.eval()
        return network

    def _snapshot(self) -> Tuple[nn.Module, NormalizationParams]:
        with self._lock:
            if self._state is ModelState.TRAINING:
                logger.debug("Rejected inference on '%s': training in progress", self.name)
                raise ModelNotReadyError(f"'{self.name}' is training")
            if self._network is None or self._params is None:
                raise ModelNotReadyError(f"'{self.name}' has not been trained")
            return self._network, self._params

    def predict_one(self, window: Sequence[float]) -> float:
        network, _ = self._snapshot()
        return predict_one(network, window, self.config.window_size)

    def forecast(self, series: Sequence[float], days: Optional[int] = None) -> np.ndarray:
        network, params = self._snapshot()
        days = self.config.forecast_days if days is None else days
        return forecast(network, series, params, days, self.config.window_size, self.config.fallback_value)

    def save(self, path) -> str:
        network, params = self._snapshot()
        payload = {
            "name": self.name,
            "config": asdict(self.config),
            "params": params.to_dict(),
            "state_dict": network.state_dict(),
        }
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        torch.save(payload, str(path))
        return str(path)

    @classmethod
    def load(cls, path) -> "SignalForecaster":
        payload = torch.load(str(path), map_location="cpu", weights_only=True)
        config = SignalConfig.from_cfg(payload["config"])
        inst = cls(payload["name"], config)
        network = make_lstm(
            window_size=config.window_size,
            look_ahead=config.look_ahead,
            hidden_sizes=config.hidden_sizes,
            dropout=config.dropout,
            learning_rate=config.learning_rate,
        )
        network.load_state_dict(payload["state_dict"])
        network.eval()
        inst._network = network
        inst._params = NormalizationParams.from_dict(payload["params"])
        inst._state = ModelState.READY
        return inst

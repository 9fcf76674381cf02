from __future__ import annotations
import argparse
import logging
import os
from typing import Dict, Sequence

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

from .config import load_config, setup_logging
from .dataio import load_reservoir_csv
from .errors import InsufficientDataError
from .forecaster import SignalConfig, SignalForecaster
from .reservoir import SIGNALS

logger = logging.getLogger(__name__)


def backtest(forecaster: SignalForecaster, values: Sequence[float], holdout: int) -> Dict[str, float]:
    """
    Train on everything but the last ``holdout`` points, then forecast them.

    Returns MAE and RMSE of the iterative forecast against the held-out values.
    """
    values = np.asarray(values, dtype=float)
    if holdout < 1:
        raise ValueError("holdout must be >= 1")
    train_part, actual = values[:-holdout], values[-holdout:]
    if len(train_part) < forecaster.min_history:
        raise InsufficientDataError(forecaster.min_history + holdout, len(values), "backtest series")

    forecaster.train(train_part)
    pred = forecaster.forecast(train_part, holdout)
    return {
        "horizon": int(holdout),
        "mae": float(mean_absolute_error(actual, pred)),
        "rmse": float(np.sqrt(mean_squared_error(actual, pred))),
    }


def main(cfg_path: str = "configs/default.yaml", holdout: int = 7):
    cfg = load_config(cfg_path)
    setup_logging(cfg)
    history = load_reservoir_csv(cfg.paths.history_csv)
    config = SignalConfig.from_cfg(cfg.reservoir, seed=cfg.seed, fallback_value=cfg.forecast.fallback_value,
                                   accelerator=cfg.trainer.accelerator)

    lines = []
    for name in SIGNALS:
        metrics = backtest(SignalForecaster(name, config), [getattr(o, name) for o in history], holdout)
        logger.info("%s backtest: %s", name, metrics)
        lines.append(f"{name}: MAE={metrics['mae']:.4f} RMSE={metrics['rmse']:.4f} (h={holdout})")

    os.makedirs(cfg.paths.artifacts_dir, exist_ok=True)
    with open(os.path.join(cfg.paths.artifacts_dir, "metrics.txt"), "w") as f:
        f.write("\n".join(lines) + "\n")
    print("Saved metrics to:", cfg.paths.artifacts_dir)


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--cfg", default="configs/default.yaml")
    ap.add_argument("--holdout", type=int, default=7)
    args = ap.parse_args()
    main(args.cfg, args.holdout)

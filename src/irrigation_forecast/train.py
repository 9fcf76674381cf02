from __future__ import annotations
import argparse
import os

import numpy as np

from .config import load_config, setup_logging
from .dataio import load_reservoir_csv, save_reservoir_csv
from .forecaster import SignalConfig
from .reservoir import ReservoirForecaster
from .synthetic import generate_reservoir_history
from .utils import ensure_dir, save_json


def main(cfg_path: str = "configs/default.yaml", synthetic: bool = False):
    cfg = load_config(cfg_path)
    setup_logging(cfg)
    ensure_dir(cfg.paths.models_dir)

    # 1) History
    if synthetic:
        history = generate_reservoir_history(60, rng=np.random.default_rng(cfg.seed))
        ensure_dir(os.path.dirname(cfg.paths.history_csv) or ".")
        save_reservoir_csv(history, cfg.paths.history_csv)
    else:
        history = load_reservoir_csv(cfg.paths.history_csv)

    # 2) Models
    config = SignalConfig.from_cfg(
        cfg.reservoir,
        seed=cfg.seed,
        fallback_value=cfg.forecast.fallback_value,
        accelerator=cfg.trainer.accelerator,
    )
    forecaster = ReservoirForecaster(config)
    forecaster.train(history)

    # 3) Persist models + normalization
    paths = forecaster.save(cfg.paths.models_dir)
    meta = {
        "window_size": config.window_size,
        "look_ahead": config.look_ahead,
        "forecast_days": config.forecast_days,
        "history_days": len(history),
        "last_date": history[-1].date.isoformat(),
        "normalization": {name: m.norm_params.to_dict() for name, m in forecaster.signals.items()},
        "models": paths,
    }
    save_json(meta, cfg.paths.metadata_json)
    print("Models saved to:", cfg.paths.models_dir)


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--cfg", default="configs/default.yaml")
    ap.add_argument("--synthetic", action="store_true", help="train on a generated 60-day history")
    args = ap.parse_args()
    main(args.cfg, args.synthetic)

from __future__ import annotations
import logging, random, numpy as np, torch, yaml
from dataclasses import dataclass

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s"


@dataclass
class CFG:
    d: dict
    def __getattr__(self, item):
        v = self.d.get(item)
        if isinstance(v, dict):
            return CFG(v)
        return v

    def get(self, item, default=None):
        v = self.d.get(item, default)
        if isinstance(v, dict):
            return CFG(v)
        return v


def load_config(path: str = "configs/default.yaml") -> CFG:
    with open(path, "r", encoding="utf-8") as f:
        d = yaml.safe_load(f) or {}
    # set seeds
    seed = d.get("seed", 3407)
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    return CFG(d)


def setup_logging(cfg: CFG | None = None) -> None:
    """Configure root logging for entry points; library modules only create loggers."""
    section = cfg.get("logging") if cfg is not None else None
    level = (section.level if section is not None else None) or "INFO"
    fmt = (section.format if section is not None else None) or DEFAULT_LOG_FORMAT
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=fmt)

from __future__ import annotations
import json
from pathlib import Path

def ensure_dir(p: str | Path) -> str:
    Path(p).mkdir(parents=True, exist_ok=True)
    return str(p)

def save_json(obj, path: str | Path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False, default=str)

def load_json(path: str | Path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

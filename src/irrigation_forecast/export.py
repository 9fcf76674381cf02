from __future__ import annotations
import json
from pathlib import Path

import pandas as pd

from .reservoir import ForecastBundle

CSV_COLUMNS = ["Date", "Inflow (m³)", "Outflow (m³)", "Level (m³)"]


def bundle_to_json(bundle: ForecastBundle) -> str:
    return json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False)


def bundle_to_csv(bundle: ForecastBundle) -> str:
    """Daily points only, two decimals, no trailing newline."""
    df = pd.DataFrame(
        [[p.date.isoformat(), p.inflow or 0.0, p.outflow or 0.0, p.level or 0.0] for p in bundle.daily],
        columns=CSV_COLUMNS,
    )
    text = df.to_csv(index=False, float_format="%.2f", lineterminator="\n")
    return text.rstrip("\n")


def write_bundle(bundle: ForecastBundle, path) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".csv":
        content = bundle_to_csv(bundle)
    elif path.suffix.lower() == ".json":
        content = bundle_to_json(bundle)
    else:
        raise ValueError(f"unsupported export format: {path.suffix!r}")
    path.write_text(content, encoding="utf-8")
    return str(path)

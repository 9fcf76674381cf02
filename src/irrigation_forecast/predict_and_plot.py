from __future__ import annotations
import argparse
from pathlib import Path

import matplotlib.pyplot as plt
import matplotlib.dates as mdates

from .allocation import AllocationPolicy, recommend
from .config import load_config, setup_logging
from .dataio import load_reservoir_csv
from .export import write_bundle
from .reservoir import ReservoirForecaster, critical_points, summarize_outlook


def predict_reservoir(cfg_path: str, models_dir: str | None = None):
    """
    Load persisted reservoir models and forecast from the configured history.

    Returns:
        bundle: ForecastBundle (daily / weekly / monthly)
        history: list of ReservoirObservation used as model input
        cfg: loaded config
    """
    cfg = load_config(cfg_path)
    history = load_reservoir_csv(cfg.paths.history_csv)
    forecaster = ReservoirForecaster.load(models_dir or cfg.paths.models_dir)
    bundle = forecaster.forecast(history, cfg.reservoir.forecast_days)
    return bundle, history, cfg


def plot_forecast(bundle, history=None, save_path="forecast.png", history_days: int = 30):
    """Level on the main axis, inflow/outflow below; last ``history_days`` observations in grey."""
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(14, 8), sharex=True, gridspec_kw={"height_ratios": [2, 1]})
    dates = [p.date for p in bundle.daily]

    if history:
        hist = history[-history_days:]
        ax1.plot([o.date for o in hist], [o.level for o in hist], color="gray", linewidth=2, label="History")
        ax2.plot([o.date for o in hist], [o.inflow for o in hist], color="gray", alpha=0.6)
        ax2.plot([o.date for o in hist], [o.outflow for o in hist], color="gray", alpha=0.6, linestyle="--")

    ax1.plot(dates, [p.level for p in bundle.daily], color="tab:blue", linewidth=2.5, label="Forecast level")
    ax1.scatter([p.date for p in bundle.weekly], [p.level for p in bundle.weekly],
                color="tab:orange", zorder=3, label="Weekly")
    ax1.set_ylabel("Level (m³)")
    ax1.set_title("Reservoir forecast", fontsize=14, fontweight="bold")
    ax1.legend(loc="best")
    ax1.grid(True, alpha=0.3, linestyle=":")

    ax2.plot(dates, [p.inflow for p in bundle.daily], color="tab:green", label="Inflow")
    ax2.plot(dates, [p.outflow for p in bundle.daily], color="tab:red", label="Outflow")
    ax2.set_ylabel("Flow (m³/day)")
    ax2.legend(loc="best")
    ax2.grid(True, alpha=0.3, linestyle=":")
    ax2.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
    plt.setp(ax2.xaxis.get_majorticklabels(), rotation=45)

    fig.tight_layout()
    fig.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return save_path


def main():
    ap = argparse.ArgumentParser(description="Forecast reservoir flows/level and recommend an allocation")
    ap.add_argument("--cfg", default="configs/default.yaml")
    ap.add_argument("--models", default=None, help="directory with inflow.pt / outflow.pt / level.pt")
    ap.add_argument("--output-dir", default="artifacts")
    ap.add_argument("--crop", default=None)
    ap.add_argument("--field-size", type=float, default=1.0, help="hectares")
    ap.add_argument("--days-since-planting", type=int, default=0)
    ap.add_argument("--method", default=None, help="irrigation method (flood, furrow, sprinkler, drip)")
    ap.add_argument("--capacity", type=float, default=None, help="reservoir capacity (m³)")
    args = ap.parse_args()

    setup_logging(load_config(args.cfg))
    bundle, history, cfg = predict_reservoir(args.cfg, args.models)

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    write_bundle(bundle, out / "forecast.csv")
    write_bundle(bundle, out / "forecast.json")
    plot_forecast(bundle, history, str(out / "forecast.png"))

    week = summarize_outlook(bundle.daily, 7)
    month = summarize_outlook(bundle.daily)
    crit = critical_points(bundle.daily)
    print(f"Weekly outlook:  inflow {week.avg_inflow:,.0f}  outflow {week.avg_outflow:,.0f}  net {week.net_change:,.0f} m³")
    print(f"Monthly outlook: inflow {month.avg_inflow:,.0f}  outflow {month.avg_outflow:,.0f}  net {month.net_change:,.0f} m³")
    print(f"Highest level {crit.highest_level:,.0f} m³ on {crit.highest_date}; "
          f"lowest {crit.lowest_level:,.0f} m³ on {crit.lowest_date}")

    if args.crop and args.capacity:
        # crop demand is in liters, reservoir volumes in m³
        rec = recommend(
            args.crop, args.field_size, args.days_since_planting,
            forecasted_levels=[p.level * 1000 for p in bundle.daily],
            reservoir_capacity=args.capacity * 1000,
            current_reservoir_level=history[-1].level * 1000,
            irrigation_method=args.method,
            forecasted_inflow=[p.inflow * 1000 for p in bundle.daily],
            forecasted_outflow=[p.outflow * 1000 for p in bundle.daily],
            start_date=bundle.daily[0].date,
            policy=AllocationPolicy.from_cfg(cfg.allocation),
            efficiency=cfg.irrigation_efficiency.d if cfg.irrigation_efficiency else None,
        )
        print(f"[{rec.status.value}] {rec.recommended_amount:,.0f} L on {rec.recommended_date}: {rec.message}")
        print(rec.impact_message)

    print("Results saved in:", out)


if __name__ == "__main__":
    main()

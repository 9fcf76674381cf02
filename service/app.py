from __future__ import annotations
import logging, os, threading
from typing import Dict
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .schemas import (ConsumptionRequest, ConsumptionResponse, ForecastRequest, ForecastResponse,
                      RecommendRequest, RecommendationOut, TrainRequest, TrainResponse)
from src.irrigation_forecast.allocation import AllocationPolicy, recommend
from src.irrigation_forecast.config import load_config, setup_logging
from src.irrigation_forecast.consumption import consumption_change, predict_shortage
from src.irrigation_forecast.errors import InsufficientDataError, ModelNotReadyError, TrainingFailedError
from src.irrigation_forecast.forecaster import SignalConfig
from src.irrigation_forecast.reservoir import (ConsumptionForecaster, ReservoirForecaster, ReservoirObservation,
                                               TimeSeriesPoint)

CFG = load_config(os.environ.get("FORECAST_CONFIG", "configs/default.yaml"))
setup_logging(CFG)
logger = logging.getLogger(__name__)

SIGNAL_CONFIG = SignalConfig.from_cfg(CFG.reservoir, seed=CFG.seed, fallback_value=CFG.forecast.fallback_value,
                                      accelerator=CFG.trainer.accelerator)
CONSUMPTION_CONFIG = SignalConfig.from_cfg(CFG.consumption, seed=CFG.seed, fallback_value=CFG.forecast.fallback_value,
                                           accelerator=CFG.trainer.accelerator)
SUPPLY_CAPACITY = CFG.shortage.supply_capacity
POLICY = AllocationPolicy.from_cfg(CFG.allocation)
EFFICIENCY = CFG.irrigation_efficiency.d if CFG.irrigation_efficiency else None

# one forecaster per reservoir, kept in-process
FORECASTERS: Dict[str, ReservoirForecaster] = {}
_registry_lock = threading.Lock()

app = FastAPI(title="Reservoir Forecast & Allocation")


@app.exception_handler(InsufficientDataError)
def _insufficient(request: Request, exc: InsufficientDataError):
    return JSONResponse(status_code=422, content={"ok": False, "error": str(exc)})

@app.exception_handler(ModelNotReadyError)
def _not_ready(request: Request, exc: ModelNotReadyError):
    return JSONResponse(status_code=409, content={"ok": False, "error": str(exc)})

@app.exception_handler(TrainingFailedError)
def _training_failed(request: Request, exc: TrainingFailedError):
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc), "retry": True})

@app.exception_handler(ValueError)
def _bad_value(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"ok": False, "error": str(exc)})


def _history(rows):
    return [ReservoirObservation(r.date, r.inflow, r.outflow, r.level) for r in rows]


@app.get("/health")
def health():
    with _registry_lock:
        snapshot = list(FORECASTERS.items())
    return {"status": "ok", "reservoirs": {rid: f.state.value for rid, f in snapshot}}


@app.post("/reservoirs/{reservoir_id}/train", response_model=TrainResponse)
def train(reservoir_id: str, req: TrainRequest):
    with _registry_lock:
        forecaster = FORECASTERS.setdefault(reservoir_id, ReservoirForecaster(SIGNAL_CONFIG))
    forecaster.train(_history(req.history))
    return TrainResponse(
        reservoir_id=reservoir_id,
        state=forecaster.state.value,
        normalization={name: m.norm_params.to_dict() for name, m in forecaster.signals.items()},
    )


@app.post("/reservoirs/{reservoir_id}/forecast", response_model=ForecastResponse)
def forecast(reservoir_id: str, req: ForecastRequest):
    forecaster = FORECASTERS.get(reservoir_id)
    if forecaster is None:
        raise HTTPException(status_code=404, detail=f"unknown reservoir {reservoir_id!r}")
    history = _history(req.history)
    bundle = forecaster.forecast(history, req.days, req.start_date)

    rec = None
    if req.crop is not None:
        c = req.crop
        current = c.current_reservoir_level
        if current is None and history:
            current = history[-1].level
        rec = recommend(
            c.crop_type, c.field_size_hectares, c.days_since_planting,
            forecasted_levels=[p.level for p in bundle.daily],
            reservoir_capacity=c.reservoir_capacity,
            current_reservoir_level=current,
            irrigation_method=c.irrigation_method,
            forecasted_inflow=[p.inflow for p in bundle.daily],
            forecasted_outflow=[p.outflow for p in bundle.daily],
            start_date=bundle.daily[0].date if bundle.daily else None,
            policy=POLICY,
            efficiency=EFFICIENCY,
        ).to_dict()
    return {"forecast": bundle.to_dict(), "recommendation": rec}


@app.post("/allocation/recommend", response_model=RecommendationOut)
def recommend_allocation(req: RecommendRequest):
    rec = recommend(
        req.crop_type, req.field_size_hectares, req.days_since_planting,
        forecasted_levels=req.forecasted_levels,
        reservoir_capacity=req.reservoir_capacity,
        current_reservoir_level=req.current_reservoir_level,
        irrigation_method=req.irrigation_method,
        forecasted_inflow=req.forecasted_inflow,
        forecasted_outflow=req.forecasted_outflow,
        start_date=req.start_date,
        policy=POLICY,
        efficiency=EFFICIENCY,
    )
    return rec.to_dict()


@app.post("/consumption/forecast", response_model=ConsumptionResponse)
def forecast_consumption(req: ConsumptionRequest):
    history = [TimeSeriesPoint(r.date, r.value) for r in req.history]
    forecaster = ConsumptionForecaster(CONSUMPTION_CONFIG)
    forecaster.train(history)
    bundle = forecaster.forecast(history, req.days)
    capacity = req.supply_capacity or SUPPLY_CAPACITY
    return {
        "forecast": bundle.to_dict(),
        "consumption_change": consumption_change([p.value for p in history]),
        "shortage": predict_shortage(bundle.daily, capacity).to_dict(),
    }

from __future__ import annotations
from datetime import date

import numpy as np
import pytest
from fastapi.testclient import TestClient

import service.app as service_app
from src.irrigation_forecast.forecaster import SignalConfig
from src.irrigation_forecast.reservoir import ReservoirForecaster
from src.irrigation_forecast.synthetic import generate_consumption_history, generate_reservoir_history

SMALL = SignalConfig(window_size=7, hidden_sizes=(8, 4), dropout=0.0, epochs=2, batch_size=16, seed=0)


def _rows(n):
    history = generate_reservoir_history(n, end_date=date(2024, 5, 1), rng=np.random.default_rng(2))
    return [{"date": o.date.isoformat(), "inflow": o.inflow, "outflow": o.outflow, "level": o.level}
            for o in history]


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(service_app, "SIGNAL_CONFIG", SMALL)
    monkeypatch.setattr(service_app, "FORECASTERS", {})
    monkeypatch.setattr(service_app, "CONSUMPTION_CONFIG", SMALL)
    return TestClient(service_app.app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_recommend_endpoint(client):
    r = client.post("/allocation/recommend", json={
        "crop_type": "vegetables", "field_size_hectares": 2, "days_since_planting": 3,
        "reservoir_capacity": 1000, "current_reservoir_level": 450,
        "forecasted_levels": [450, 460, 455], "start_date": "2024-05-01",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "warning"
    assert body["recommendedAmount"] == 5 * 80000
    assert body["recommendedDate"] == "2024-05-02"


def test_recommend_invalid_capacity(client):
    r = client.post("/allocation/recommend", json={
        "field_size_hectares": 1, "days_since_planting": 0,
        "reservoir_capacity": 0, "forecasted_levels": [1.0],
    })
    assert r.status_code == 422


def test_unknown_reservoir(client):
    r = client.post("/reservoirs/nope/forecast", json={"history": _rows(20)})
    assert r.status_code == 404


def test_forecast_before_training(client):
    service_app.FORECASTERS["r0"] = ReservoirForecaster(SMALL)
    r = client.post("/reservoirs/r0/forecast", json={"history": _rows(20)})
    assert r.status_code == 409


def test_train_with_short_history(client):
    r = client.post("/reservoirs/r1/train", json={"history": _rows(5)})
    assert r.status_code == 422


def test_train_then_forecast(client):
    rows = _rows(40)
    r = client.post("/reservoirs/r1/train", json={"history": rows})
    assert r.status_code == 200
    assert r.json()["state"] == "ready"
    assert set(r.json()["normalization"]) == {"inflow", "outflow", "level"}

    r = client.post("/reservoirs/r1/forecast", json={
        "history": rows, "days": 30, "start_date": "2024-05-01",
        "crop": {"crop_type": "rice", "field_size_hectares": 1.5, "days_since_planting": 40,
                 "irrigation_method": "drip", "reservoir_capacity": 10_000_000},
    })
    assert r.status_code == 200
    body = r.json()
    assert len(body["forecast"]["daily"]) == 30
    assert len(body["forecast"]["weekly"]) == 4
    assert len(body["forecast"]["monthly"]) == 1
    assert body["forecast"]["daily"][0]["date"] == "2024-05-01"
    assert body["recommendation"]["status"] in {"optimal", "warning", "critical"}


def test_health_lists_registered_reservoirs(client):
    service_app.FORECASTERS["r2"] = ReservoirForecaster(SMALL)
    r = client.get("/health")
    assert r.json()["reservoirs"] == {"r2": "idle"}


def test_consumption_settings_come_from_config():
    assert service_app.CONSUMPTION_CONFIG.window_size == 7
    assert service_app.CONSUMPTION_CONFIG.hidden_sizes == (50,)
    assert service_app.CONSUMPTION_CONFIG.epochs == 50
    assert service_app.SUPPLY_CAPACITY == 1500


def _consumption_rows(n):
    history = generate_consumption_history(n, end_date=date(2024, 5, 1), rng=np.random.default_rng(4))
    return [{"date": p.date.isoformat(), "value": p.value} for p in history]


def test_consumption_forecast(client):
    r = client.post("/consumption/forecast", json={"history": _consumption_rows(60), "days": 30,
                                                   "supply_capacity": 1})
    assert r.status_code == 200
    body = r.json()
    assert len(body["forecast"]["daily"]) == 30
    assert body["forecast"]["daily"][0]["date"] == "2024-05-01"
    assert len(body["forecast"]["weekly"]) == 4
    assert isinstance(body["consumption_change"], int)
    assert body["shortage"]["will_have_shortage"] is True
    assert body["shortage"]["shortage_start_date"] == "2024-05-01"


def test_consumption_forecast_short_history(client):
    r = client.post("/consumption/forecast", json={"history": _consumption_rows(5)})
    assert r.status_code == 422

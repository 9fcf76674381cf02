from __future__ import annotations
import tempfile
import unittest
from datetime import date, timedelta
from unittest.mock import patch

import numpy as np

from src.irrigation_forecast.errors import InsufficientDataError, ModelNotReadyError, TrainingFailedError
from src.irrigation_forecast.forecaster import ModelState, SignalConfig
from src.irrigation_forecast.reservoir import (ConsumptionForecaster, ForecastBundle, ForecastPoint,
                                               ReservoirForecaster, ReservoirObservation, TimeSeriesPoint,
                                               critical_points, summarize_outlook)
from src.irrigation_forecast.allocation import recommend
from src.irrigation_forecast.synthetic import generate_consumption_history, generate_reservoir_history

START = date(2024, 6, 1)
CONFIG = SignalConfig(window_size=14, look_ahead=1, hidden_sizes=(16, 8), dropout=0.2,
                      epochs=3, batch_size=32, forecast_days=30, seed=1)


class TestReservoirEndToEnd(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.history = generate_reservoir_history(60, end_date=START, rng=np.random.default_rng(7))
        cls.forecaster = ReservoirForecaster(CONFIG)
        cls.forecaster.train(cls.history)
        cls.bundle = cls.forecaster.forecast(cls.history, 30, start_date=START)

    def test_state_ready(self):
        self.assertEqual(self.forecaster.state, ModelState.READY)

    def test_daily_forecast(self):
        daily = self.bundle.daily
        self.assertEqual(len(daily), 30)
        self.assertEqual(daily[0].date, START)
        self.assertEqual(daily[-1].date, START + timedelta(days=29))
        for p in daily:
            self.assertGreaterEqual(p.inflow, 0.0)
            self.assertGreaterEqual(p.outflow, 0.0)
            self.assertGreaterEqual(p.level, 0.0)
            self.assertIsNone(p.value)

    def test_weekly_and_monthly_samples(self):
        self.assertEqual(len(self.bundle.weekly), 30 // 7)
        self.assertEqual(self.bundle.weekly, [self.bundle.daily[i] for i in (6, 13, 20, 27)])
        self.assertEqual(self.bundle.monthly, [self.bundle.daily[29]])

    def test_signals_have_own_normalization(self):
        params = {n: m.norm_params for n, m in self.forecaster.signals.items()}
        self.assertEqual(params["level"].max, max(o.level for o in self.history))
        self.assertEqual(params["inflow"].min, min(o.inflow for o in self.history))
        self.assertNotEqual(params["inflow"], params["level"])

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            paths = self.forecaster.save(tmpdir)
            self.assertEqual(set(paths), {"inflow", "outflow", "level"})
            loaded = ReservoirForecaster.load(tmpdir)
        again = loaded.forecast(self.history, 30, start_date=START)
        self.assertEqual(loaded.state, ModelState.READY)
        for a, b in zip(again.daily, self.bundle.daily):
            self.assertAlmostEqual(a.level, b.level, delta=1e-3 * max(1.0, b.level))

    def test_raw_signal_forecasts_feed_recommend(self):
        levels = self.forecaster.signals["level"].forecast([o.level for o in self.history], 7)
        inflow = self.forecaster.signals["inflow"].forecast([o.inflow for o in self.history], 7)
        outflow = self.forecaster.signals["outflow"].forecast([o.outflow for o in self.history], 7)
        self.assertIsInstance(levels, np.ndarray)
        rec = recommend("corn", 2.0, 30, levels, 1e7, None, forecasted_inflow=inflow,
                        forecasted_outflow=outflow, start_date=START)
        self.assertGreaterEqual(rec.recommended_date, START)
        self.assertLessEqual(rec.recommended_date, START + timedelta(days=6))
        self.assertGreater(rec.recommended_amount, 0)


class TestReservoirForecaster(unittest.TestCase):

    def setUp(self):
        self.history = generate_reservoir_history(20, end_date=START, rng=np.random.default_rng(1))

    def test_short_history_rejected(self):
        f = ReservoirForecaster(CONFIG)
        with self.assertRaises(InsufficientDataError):
            f.train(self.history[:10])
        self.assertEqual(f.state, ModelState.IDLE)

    def test_duplicate_dates_rejected(self):
        h = list(self.history)
        h[5] = ReservoirObservation(h[4].date, h[5].inflow, h[5].outflow, h[5].level)
        with self.assertRaises(ValueError):
            ReservoirForecaster(CONFIG).train(h)

    def test_failed_signal_leaves_earlier_signals_trained(self):
        f = ReservoirForecaster(CONFIG)
        with patch.object(f.signals["level"], "_fit_network", side_effect=RuntimeError("boom")):
            with self.assertRaises(TrainingFailedError):
                f.train(self.history)
        self.assertEqual(f.signals["inflow"].state, ModelState.READY)
        self.assertEqual(f.signals["outflow"].state, ModelState.READY)
        self.assertEqual(f.signals["level"].state, ModelState.IDLE)
        self.assertEqual(f.state, ModelState.IDLE)

    def test_forecast_before_training(self):
        with self.assertRaises(ModelNotReadyError):
            ReservoirForecaster(CONFIG).forecast(self.history, 5)

    def test_negative_and_nan_values_clamped(self):
        f = ReservoirForecaster(CONFIG)
        raw = {
            "inflow": np.array([-10.0, 5.0, np.nan]),
            "outflow": np.array([1.0, -0.5, 2.0]),
            "level": np.array([100.0, np.inf, -1.0]),
        }
        patches = [patch.object(m, "forecast", return_value=raw[n]) for n, m in f.signals.items()]
        for p in patches:
            p.start()
        try:
            bundle = f.forecast(self.history, 3, start_date=START)
        finally:
            for p in patches:
                p.stop()
        self.assertEqual([p.inflow for p in bundle.daily], [0.0, 5.0, 0.0])
        self.assertEqual([p.outflow for p in bundle.daily], [1.0, 0.0, 2.0])
        self.assertEqual([p.level for p in bundle.daily], [100.0, 0.0, 0.0])


class TestConsumptionForecaster(unittest.TestCase):

    def test_train_and_forecast(self):
        history = generate_consumption_history(60, end_date=START, rng=np.random.default_rng(3))
        config = SignalConfig(window_size=7, hidden_sizes=(8,), dropout=0.0, epochs=2, seed=0)
        f = ConsumptionForecaster(config)
        f.train(history)
        self.assertEqual(f.state, ModelState.READY)

        bundle = f.forecast(history, 30)
        self.assertEqual(len(bundle.daily), 30)
        self.assertEqual(bundle.daily[0].date, START)
        self.assertEqual(bundle.daily[-1].date, START + timedelta(days=29))
        self.assertEqual(len(bundle.weekly), 4)
        self.assertEqual(len(bundle.monthly), 1)
        for p in bundle.daily:
            self.assertIsNone(p.level)
            self.assertTrue(np.isfinite(p.value))

    def test_train_rejects_unordered_dates(self):
        history = generate_consumption_history(20, end_date=START, rng=np.random.default_rng(3))
        history[3], history[4] = history[4], history[3]
        f = ConsumptionForecaster(SignalConfig(window_size=7, hidden_sizes=(8,), epochs=1))
        with self.assertRaises(ValueError):
            f.train(history)
        self.assertEqual(f.state, ModelState.IDLE)

    def test_dates_continue_after_history(self):
        history = [TimeSeriesPoint(START + timedelta(days=i), 1000.0 + i) for i in range(20)]
        f = ConsumptionForecaster()
        with patch.object(f.model, "forecast", return_value=np.arange(14, dtype=float)):
            bundle = f.forecast(history, 14)
        self.assertEqual(bundle.daily[0].date, history[-1].date + timedelta(days=1))
        self.assertEqual([p.value for p in bundle.daily], list(np.arange(14, dtype=float)))
        self.assertEqual(len(bundle.weekly), 2)
        self.assertEqual(bundle.monthly, [])
        self.assertIsNone(bundle.daily[0].level)


def _daily(levels, inflow=10.0, outflow=4.0):
    return [ForecastPoint(START + timedelta(days=i), inflow=inflow, outflow=outflow, level=lv)
            for i, lv in enumerate(levels)]


def test_bundle_sampling_short_horizon():
    bundle = ForecastBundle.from_daily(_daily(range(14)))
    assert [p.level for p in bundle.weekly] == [6, 13]
    assert bundle.monthly == []


def test_bundle_to_dict_omits_missing_fields():
    d = ForecastBundle.from_daily(_daily([1.0])).to_dict()
    assert d["daily"] == [{"date": "2024-06-01", "inflow": 10.0, "outflow": 4.0, "level": 1.0}]
    assert d["weekly"] == [] and d["monthly"] == []


def test_outlook():
    daily = _daily([100, 110, 120, 90, 95, 100, 130, 140])
    week = summarize_outlook(daily, 7)
    assert week.days == 7
    assert week.avg_inflow == 10.0 and week.avg_outflow == 4.0
    assert week.net_change == 30
    assert summarize_outlook(daily).net_change == 40


def test_critical_points_first_occurrence():
    daily = _daily([100, 150, 80, 150, 80])
    crit = critical_points(daily)
    assert crit.highest_level == 150 and crit.highest_date == START + timedelta(days=1)
    assert crit.lowest_level == 80 and crit.lowest_date == START + timedelta(days=2)

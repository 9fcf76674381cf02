"""Exceptions raised by the forecasting core."""


class ForecastError(Exception):
    """Base class for all forecasting errors."""


class InsufficientDataError(ForecastError, ValueError):
    """A series is too short for the configured window (and look-ahead)."""

    def __init__(self, required: int, actual: int, what: str = "series"):
        self.required = required
        self.actual = actual
        super().__init__(f"{what} needs at least {required} points, got {actual}")


class ModelNotReadyError(ForecastError, RuntimeError):
    """Inference was requested before training finished, or training is already running."""


class PredictionStepError(ForecastError):
    """A single iterative step produced an unusable value. Recovered by the forecaster."""


class TrainingFailedError(ForecastError):
    """Training aborted; the original exception is attached as ``__cause__``."""

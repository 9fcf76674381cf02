from __future__ import annotations
import datetime as dt
from pydantic import BaseModel, Field
from typing import List, Optional

class Observation(BaseModel):
    date: dt.date
    inflow: float
    outflow: float
    level: float

class CropRequest(BaseModel):
    crop_type: Optional[str] = None
    field_size_hectares: float = Field(ge=0)
    days_since_planting: int = Field(ge=0)
    irrigation_method: Optional[str] = None
    reservoir_capacity: float = Field(gt=0)
    current_reservoir_level: Optional[float] = None

class TrainRequest(BaseModel):
    history: List[Observation]

class ForecastRequest(BaseModel):
    history: List[Observation]
    days: int = Field(30, ge=1, le=365)
    start_date: Optional[dt.date] = None
    crop: Optional[CropRequest] = None

class RecommendRequest(CropRequest):
    forecasted_levels: List[float]
    forecasted_inflow: Optional[List[float]] = None
    forecasted_outflow: Optional[List[float]] = None
    start_date: Optional[dt.date] = None

class ForecastPointOut(BaseModel):
    date: dt.date
    inflow: Optional[float] = None
    outflow: Optional[float] = None
    level: Optional[float] = None
    value: Optional[float] = None

class ForecastBundleOut(BaseModel):
    daily: List[ForecastPointOut]
    weekly: List[ForecastPointOut]
    monthly: List[ForecastPointOut]

class RecommendationOut(BaseModel):
    recommendedAmount: float
    recommendedDate: dt.date
    status: str
    message: str
    projectedReservoirLevel: float
    impactMessage: str

class ForecastResponse(BaseModel):
    forecast: ForecastBundleOut
    recommendation: Optional[RecommendationOut] = None

class TrainResponse(BaseModel):
    reservoir_id: str
    state: str
    normalization: dict

class ConsumptionObservation(BaseModel):
    date: dt.date
    value: float

class ConsumptionRequest(BaseModel):
    history: List[ConsumptionObservation]
    days: int = Field(30, ge=1, le=365)
    supply_capacity: Optional[float] = Field(None, gt=0)

class ShortageOut(BaseModel):
    will_have_shortage: bool
    shortage_start_date: Optional[dt.date] = None
    shortage_amount: float
    shortage_percentage: int

class ConsumptionResponse(BaseModel):
    forecast: ForecastBundleOut
    consumption_change: int
    shortage: ShortageOut

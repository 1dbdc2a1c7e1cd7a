"""
Insight models shared by the analysis, forecast and dashboard layers.
Keeps business structures separate from transport / persistence concerns.

Every string tag the LLM or a client can send (impact, priority, trend, ...)
is a closed enum so that rendering tables can be checked for exhaustiveness.
"""

import json
from enum import Enum
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field, field_validator


# ── Closed tag sets ─────────────────────────────────────────────────────

class DataType(str, Enum):
    SALES = "sales"
    CUSTOMER_FEEDBACK = "customer_feedback"
    SUPPORT_CHATS = "support_chats"
    PRODUCT_REVIEWS = "product_reviews"
    MIXED = "mixed"
    OTHER = "other"


class AnalysisStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Level(str, Enum):
    """high / medium / low scale used for impact, priority, confidence and severity."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class SourceType(str, Enum):
    GOOGLE_SHEETS = "google_sheets"
    CSV_URL = "csv_url"
    JSON_API = "json_api"
    MANUAL_UPLOAD = "manual_upload"


class SyncFrequency(str, Enum):
    MANUAL = "manual"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class DigestDay(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def _normalise_tag(value):
    return value.strip().lower() if isinstance(value, str) else value


# LLM replies vary in case ("High", " medium"); normalise before enum lookup
Impact = Annotated[Level, BeforeValidator(_normalise_tag)]
Priority = Impact
Confidence = Impact
Severity = Impact
TrendTag = Annotated[Trend, BeforeValidator(_normalise_tag)]
DayTag = Annotated[DigestDay, BeforeValidator(_normalise_tag)]


# ── Analysis result (LLM output) ────────────────────────────────────────

class KeyInsight(BaseModel):
    title: str
    description: str = ""
    impact: Impact


class Recommendation(BaseModel):
    action: str
    priority: Priority
    expected_impact: str = ""


class AnalysisResult(BaseModel):
    """Structured findings returned by the analysis prompt."""
    summary: str
    key_insights: List[KeyInsight] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    anomalies: List[str] = Field(default_factory=list)
    metrics: Dict[str, Union[int, float, str]] = Field(default_factory=dict)
    sentiment_score: Optional[float] = None

    @field_validator("anomalies", mode="before")
    @classmethod
    def _anomalies_as_text(cls, value):
        if value is None:
            return []
        return [a if isinstance(a, str) else json.dumps(a) for a in value]

    @field_validator("metrics", mode="before")
    @classmethod
    def _scalar_metrics(cls, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("metrics must be an object")
        scalars = {}
        for key, raw in value.items():
            if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
                raw = json.dumps(raw) if isinstance(raw, (dict, list)) else str(raw)
            scalars[str(key)] = raw
        return scalars

    @field_validator("sentiment_score")
    @classmethod
    def _clamp_sentiment(cls, value):
        if value is None:
            return None
        return min(1.0, max(0.0, float(value)))


# ── Forecast (LLM output, never persisted) ──────────────────────────────

class TimeframeForecast(BaseModel):
    timeframe: str = ""
    prediction: str = ""
    confidence: Confidence
    trend: TrendTag


class RiskFactor(BaseModel):
    factor: str
    severity: Severity
    mitigation: str = ""


class ForecastPoint(BaseModel):
    period: str
    value: float
    confidence_low: Optional[float] = None
    confidence_high: Optional[float] = None


class Forecast(BaseModel):
    short_term: TimeframeForecast
    medium_term: TimeframeForecast
    long_term: TimeframeForecast
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    optimization_actions: List[str] = Field(default_factory=list)
    forecast_data: List[ForecastPoint] = Field(default_factory=list)


# ── User preferences ────────────────────────────────────────────────────

class NotificationPreferences(BaseModel):
    anomaly_alerts: bool = True
    forecast_updates: bool = True
    data_sync_notifications: bool = False


class UserPreferences(BaseModel):
    weekly_digest: bool = True
    digest_day: DayTag = DigestDay.MONDAY
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

"""
Predictive forecast panel.

A ForecastPanel is the server-held state of one mounted forecast view over
one analysis. It issues at most one LLM call per mount: the call happens on
the first render that sees a completed analysis, and the result is held
until the panel is unmounted. Only an explicit retry after an error issues
another call.
"""

import json
import logging
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import ValidationError

from insightgen.insight_models import AnalysisStatus, Forecast
from insightgen.llm_service import LLMClient, LLMServiceError
from insightgen.renderer import render_forecast

logger = logging.getLogger(__name__)

FORECAST_ERROR_MESSAGE = "Failed to generate forecast. Please try again."

_LEVEL_ENUM = {"type": "string", "enum": ["high", "medium", "low"]}
_TIMEFRAME_SCHEMA = {
    "type": "object",
    "properties": {
        "timeframe": {"type": "string"},
        "prediction": {"type": "string"},
        "confidence": _LEVEL_ENUM,
        "trend": {"type": "string", "enum": ["up", "down", "stable"]},
    },
}

FORECAST_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "short_term": _TIMEFRAME_SCHEMA,
        "medium_term": _TIMEFRAME_SCHEMA,
        "long_term": _TIMEFRAME_SCHEMA,
        "risk_factors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "factor": {"type": "string"},
                    "severity": _LEVEL_ENUM,
                    "mitigation": {"type": "string"},
                },
            },
        },
        "optimization_actions": {"type": "array", "items": {"type": "string"}},
        "forecast_data": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "period": {"type": "string"},
                    "value": {"type": "number"},
                    "confidence_low": {"type": "number"},
                    "confidence_high": {"type": "number"},
                },
            },
        },
    },
}


def build_forecast_prompt(analysis: dict) -> str:
    anomalies = ", ".join(analysis.get("anomalies") or []) or "None"
    return f"""You are an expert data scientist and business forecaster. Based on the following business analysis, generate predictive insights and forecasts.

CURRENT ANALYSIS:
Title: {analysis.get("title")}
Data Type: {analysis.get("data_type")}
Summary: {analysis.get("summary")}
Key Insights: {json.dumps(analysis.get("key_insights"), indent=2)}
Recommendations: {json.dumps(analysis.get("recommendations"), indent=2)}
Metrics: {json.dumps(analysis.get("metrics"), indent=2)}
Anomalies: {anomalies}

Generate a predictive analysis including:
1. Short-term forecast (next 1-3 months)
2. Medium-term forecast (3-6 months)
3. Long-term forecast (6-12 months)
4. Key risk factors that could impact predictions
5. Confidence levels for each prediction
6. Recommended actions to optimize future outcomes

Be specific, data-driven, and provide actionable predictions. Include both optimistic and realistic scenarios."""


async def generate_forecast(analysis: dict, llm: LLMClient) -> Forecast:
    raw = await llm.ainvoke(build_forecast_prompt(analysis), response_json_schema=FORECAST_RESPONSE_SCHEMA)
    return Forecast.model_validate(raw)


class PanelState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class PanelStateError(Exception):
    """Operation not allowed in the panel's current state."""


class ForecastPanel:
    def __init__(self, analysis: dict, llm: LLMClient, panel_id: Optional[str] = None):
        self.id = panel_id or uuid4().hex
        self.analysis = analysis
        self.llm = llm
        self.state = PanelState.IDLE
        self.forecast: Optional[Forecast] = None
        self.error: Optional[str] = None
        self.llm_calls = 0

    @property
    def analysis_id(self) -> str:
        return str(self.analysis["id"])

    def _should_generate(self) -> bool:
        return (
            self.analysis.get("status") == AnalysisStatus.COMPLETED.value
            and self.state is PanelState.IDLE
        )

    async def render(self, analysis: Optional[dict] = None) -> dict:
        """Mount or re-render; generates only the first time a completed analysis is seen."""
        if analysis is not None:
            self.analysis = analysis
        if self._should_generate():
            await self._generate()
        return self.to_dict()

    async def retry(self) -> dict:
        if self.state is not PanelState.ERROR:
            raise PanelStateError(f"Retry is only allowed after an error (state is {self.state.value})")
        await self._generate()
        return self.to_dict()

    async def _generate(self) -> None:
        self.state = PanelState.LOADING
        self.error = None
        self.llm_calls += 1
        try:
            self.forecast = await generate_forecast(self.analysis, self.llm)
        except (LLMServiceError, ValidationError) as e:
            logger.error(f"Forecast for analysis {self.analysis_id} failed: {e}")
            self.error = FORECAST_ERROR_MESSAGE
            self.state = PanelState.ERROR
            return
        self.state = PanelState.READY
        logger.info(f"Forecast ready for analysis {self.analysis_id} (panel {self.id})")

    def to_dict(self) -> dict:
        return {
            "panel_id": self.id,
            "analysis_id": self.analysis_id,
            "state": self.state.value,
            "error": self.error,
            "can_retry": self.state is PanelState.ERROR,
            "forecast": render_forecast(self.forecast) if self.forecast else None,
        }

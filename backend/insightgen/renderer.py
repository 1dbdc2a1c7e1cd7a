"""
Dashboard and forecast view builders.

Pure functions from stored records to the JSON the dashboard page renders.
Every tag-driven lookup goes through a table keyed by a closed enum, and the
tables are checked for completeness at import time, so a tag can never
render as nothing.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from insightgen.helpers import page_url
from insightgen.insight_models import (
    AnalysisStatus,
    DataType,
    Forecast,
    Level,
    SourceStatus,
    Trend,
)

INSIGHT_TITLE_CHARS = 20


def _exhaustive(enum_cls, table: Dict) -> Dict:
    missing = [m.value for m in enum_cls if m not in table]
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} table is missing {missing}")
    return table


IMPACT_SCORES = _exhaustive(Level, {Level.HIGH: 3, Level.MEDIUM: 2, Level.LOW: 1})

# impact, priority and severity badges share one palette
LEVEL_TONES = _exhaustive(Level, {Level.HIGH: "red", Level.MEDIUM: "yellow", Level.LOW: "blue"})
CONFIDENCE_TONES = _exhaustive(Level, {Level.HIGH: "green", Level.MEDIUM: "yellow", Level.LOW: "orange"})

TREND_INDICATORS = _exhaustive(Trend, {
    Trend.UP: "trending_up",
    Trend.DOWN: "trending_down",
    Trend.STABLE: "steady",
})

DATA_TYPE_TONES = _exhaustive(DataType, {
    DataType.SALES: "green",
    DataType.CUSTOMER_FEEDBACK: "blue",
    DataType.SUPPORT_CHATS: "purple",
    DataType.PRODUCT_REVIEWS: "pink",
    DataType.MIXED: "indigo",
    DataType.OTHER: "slate",
})

STATUS_TONES = _exhaustive(AnalysisStatus, {
    AnalysisStatus.PROCESSING: "yellow",
    AnalysisStatus.COMPLETED: "green",
    AnalysisStatus.FAILED: "red",
})

SOURCE_STATUS_TONES = _exhaustive(SourceStatus, {
    SourceStatus.ACTIVE: "green",
    SourceStatus.INACTIVE: "slate",
    SourceStatus.ERROR: "red",
})

TIMEFRAMES = (("short_term", "Short Term"), ("medium_term", "Medium Term"), ("long_term", "Long Term"))


# ── Formatting ──────────────────────────────────────────────────────────

def tag_label(tag: str) -> str:
    """sales_data -> SALES DATA"""
    return str(tag).replace("_", " ").upper()


def format_metric_value(value: Any) -> str:
    """Numbers get thousands separators and at most three decimals."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{int(value):,}"


def format_date(iso_value: Optional[str]) -> Optional[str]:
    if not iso_value:
        return None
    dt = datetime.fromisoformat(iso_value)
    return f"{dt.month}/{dt.day}/{dt.year}"


def short_title(title: str) -> str:
    return (title or "")[:INSIGHT_TITLE_CHARS] + "..."


# ── Dashboard ───────────────────────────────────────────────────────────

def _insight_view(insight: dict) -> dict:
    impact = Level(insight["impact"])
    return {
        "title": insight.get("title", ""),
        "description": insight.get("description", ""),
        "impact": impact.value,
        "badge": {"text": f"{impact.value} impact", "tone": LEVEL_TONES[impact]},
        "why_this_matters": (
            f"This insight was identified by analyzing patterns in your data. The {impact.value} impact "
            "rating indicates this finding could significantly affect your business performance and "
            "should be prioritized in your strategic planning."
        ),
    }


def _recommendation_view(rec: dict) -> dict:
    priority = Level(rec["priority"])
    return {
        "action": rec.get("action", ""),
        "priority": priority.value,
        "badge": {"text": f"{priority.value} priority", "tone": LEVEL_TONES[priority]},
        "expected_impact": rec.get("expected_impact", ""),
        "reasoning": (
            "This recommendation was generated by analyzing correlations in your data, comparing "
            f"against industry benchmarks, and identifying optimization opportunities. The {priority.value} "
            "priority rating suggests implementing this action could yield significant improvements "
            "in the identified areas."
        ),
    }


def impact_chart(key_insights: List[dict]) -> List[dict]:
    return [
        {"name": short_title(i.get("title", "")), "impact": IMPACT_SCORES[Level(i["impact"])]}
        for i in key_insights
    ]


def metric_pairs(metrics: Dict[str, Any]) -> List[dict]:
    return [{"label": tag_label(k), "value": format_metric_value(v)} for k, v in metrics.items()]


def no_selection_view() -> dict:
    return {
        "state": "no_analysis_selected",
        "message": "No analysis selected",
        "upload_url": page_url("Upload"),
    }


def _header(analysis: dict) -> dict:
    data_type = DataType(analysis["data_type"])
    status = AnalysisStatus(analysis["status"])
    return {
        "id": analysis["id"],
        "title": analysis["title"],
        "data_type": data_type.value,
        "data_type_label": tag_label(data_type.value),
        "data_type_tone": DATA_TYPE_TONES[data_type],
        "status": status.value,
        "status_tone": STATUS_TONES[status],
        "generated_on": format_date(analysis.get("created_date")),
    }


def render_dashboard(analysis: Optional[dict], show_predictions: bool = False) -> dict:
    """Build the dashboard view for one analysis record (as from analysis_to_dict)."""
    if analysis is None:
        return {"state": "not_found", "message": "Analysis not found", "upload_url": page_url("Upload")}

    status = AnalysisStatus(analysis["status"])
    header = _header(analysis)
    if status is AnalysisStatus.PROCESSING:
        return {
            "state": "processing",
            "analysis": header,
            "message": "Our AI is processing your data and generating insights...",
            "events_url": f"/analyses/{analysis['id']}/events",
        }
    if status is AnalysisStatus.FAILED:
        return {
            "state": "failed",
            "analysis": header,
            "message": "Failed to process your data. Please try again.",
            "failure_reason": analysis.get("failure_reason"),
            "upload_url": page_url("Upload"),
        }

    key_insights = analysis.get("key_insights") or []
    view = {
        "state": "completed",
        "analysis": header,
        "summary": analysis.get("summary") or "",
        "key_insights": [_insight_view(i) for i in key_insights],
        "impact_chart": impact_chart(key_insights),
        "anomalies": list(analysis.get("anomalies") or []),
        "recommendations": [_recommendation_view(r) for r in analysis.get("recommendations") or []],
        "metrics": metric_pairs(analysis.get("metrics") or {}),
        "source_files": [
            {"label": f"File {n}", "url": url} for n, url in enumerate(analysis.get("file_urls") or [], start=1)
        ],
        "sentiment_score": analysis.get("sentiment_score"),
        "show_predictions": show_predictions,
        "chat_assistant": {"mount_url": f"/analyses/{analysis['id']}/chat-sessions"},
        "toggle_predictions_url": page_url(
            "Dashboard", id=analysis["id"], show_predictions="false" if show_predictions else "true"
        ),
    }
    if show_predictions:
        view["forecast_panel"] = {"mount_url": f"/analyses/{analysis['id']}/forecast-panels"}
    return view


# ── Forecast ────────────────────────────────────────────────────────────

def render_forecast(forecast: Forecast) -> dict:
    timeline = []
    for key, label in TIMEFRAMES:
        entry = getattr(forecast, key)
        timeline.append({
            "key": key,
            "label": label,
            "timeframe": entry.timeframe,
            "prediction": entry.prediction,
            "confidence": entry.confidence.value,
            "confidence_tone": CONFIDENCE_TONES[entry.confidence],
            "trend": entry.trend.value,
            "trend_indicator": TREND_INDICATORS[entry.trend],
        })
    return {
        "timeline": timeline,
        "risk_factors": [
            {
                "factor": r.factor,
                "severity": r.severity.value,
                "severity_tone": LEVEL_TONES[r.severity],
                "mitigation": r.mitigation,
            }
            for r in forecast.risk_factors
        ],
        "optimization_actions": list(forecast.optimization_actions),
        "chart": [p.model_dump() for p in forecast.forecast_data],
    }

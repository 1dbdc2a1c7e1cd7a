import pytest

from insightgen.insight_models import AnalysisStatus, DataType, Level, SourceStatus, Trend
from insightgen.renderer import (
    CONFIDENCE_TONES,
    DATA_TYPE_TONES,
    IMPACT_SCORES,
    LEVEL_TONES,
    SOURCE_STATUS_TONES,
    STATUS_TONES,
    TREND_INDICATORS,
    format_metric_value,
    render_dashboard,
    tag_label,
)


def _record(**fields):
    record = {
        "id": "a1",
        "title": "Q4 Sales",
        "data_type": "customer_feedback",
        "status": "completed",
        "file_urls": ["/files/x/one.csv", "/files/y/two.csv"],
        "summary": "Revenue grew.",
        "key_insights": [
            {"title": "Holiday demand drove record December sales", "description": "d", "impact": "high"},
            {"title": "Short", "description": "d", "impact": "low"},
        ],
        "recommendations": [{"action": "Stock up", "priority": "medium", "expected_impact": "+5%"}],
        "anomalies": ["Dec 27 spike"],
        "metrics": {"total_revenue": 1250000, "avg_order_value": 84.5},
        "sentiment_score": 0.7,
        "created_date": "2024-12-31T10:00:00",
    }
    record.update(fields)
    return record


@pytest.mark.parametrize(
    "enum_cls, table",
    [
        (Level, IMPACT_SCORES),
        (Level, LEVEL_TONES),
        (Level, CONFIDENCE_TONES),
        (Trend, TREND_INDICATORS),
        (DataType, DATA_TYPE_TONES),
        (AnalysisStatus, STATUS_TONES),
        (SourceStatus, SOURCE_STATUS_TONES),
    ],
)
def test_tag_tables_cover_every_member(enum_cls, table):
    assert set(table) == set(enum_cls)


def test_completed_view():
    view = render_dashboard(_record())
    assert view["state"] == "completed"
    assert view["analysis"]["data_type_label"] == "CUSTOMER FEEDBACK"
    assert view["analysis"]["generated_on"] == "12/31/2024"
    assert view["impact_chart"] == [
        {"name": "Holiday demand drove...", "impact": 3},
        {"name": "Short...", "impact": 1},
    ]
    assert view["key_insights"][0]["badge"] == {"text": "high impact", "tone": "red"}
    assert "high impact rating" in view["key_insights"][0]["why_this_matters"]
    assert "medium priority" in view["recommendations"][0]["reasoning"]
    assert view["metrics"] == [
        {"label": "TOTAL REVENUE", "value": "1,250,000"},
        {"label": "AVG ORDER VALUE", "value": "84.5"},
    ]
    assert [f["label"] for f in view["source_files"]] == ["File 1", "File 2"]
    assert "forecast_panel" not in view
    assert view["toggle_predictions_url"] == "/dashboard?id=a1&show_predictions=true"


def test_predictions_toggle_adds_forecast_panel_hint():
    view = render_dashboard(_record(), show_predictions=True)
    assert view["forecast_panel"] == {"mount_url": "/analyses/a1/forecast-panels"}


def test_missing_optional_sections_render_empty():
    view = render_dashboard(_record(key_insights=None, recommendations=None, anomalies=None, metrics=None))
    assert view["key_insights"] == []
    assert view["impact_chart"] == []
    assert view["metrics"] == []


def test_processing_and_failed_states():
    processing = render_dashboard(_record(status="processing"))
    assert processing["state"] == "processing"
    assert processing["events_url"] == "/analyses/a1/events"

    failed = render_dashboard(_record(status="failed", failure_reason="boom"))
    assert failed["state"] == "failed"
    assert failed["failure_reason"] == "boom"


def test_unknown_tag_is_an_error_not_a_blank():
    with pytest.raises(ValueError):
        render_dashboard(_record(key_insights=[{"title": "t", "impact": "critical"}]))


def test_metric_formatting():
    assert format_metric_value(1234567) == "1,234,567"
    assert format_metric_value(1234.5678) == "1,234.568"
    assert format_metric_value(12.0) == "12"
    assert format_metric_value("EU") == "EU"
    assert tag_label("net_promoter_score") == "NET PROMOTER SCORE"


def test_dashboard_route_states(client, make_analysis):
    assert client.get("/dashboard").json()["state"] == "no_analysis_selected"
    assert client.get("/dashboard", params={"id": "00000000-0000-0000-0000-000000000000"}).json()["state"] == "not_found"
    assert client.get("/dashboard", params={"id": "garbage"}).json()["state"] == "not_found"

    analysis = make_analysis()
    view = client.get("/dashboard", params={"id": analysis["id"], "show_predictions": "true"}).json()
    assert view["state"] == "completed"
    assert view["analysis"]["data_type_label"] == "SALES"
    assert view["forecast_panel"]["mount_url"] == f"/analyses/{analysis['id']}/forecast-panels"

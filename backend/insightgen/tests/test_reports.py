from datetime import datetime, timedelta

import pytest

from insightgen.sentiment import (
    SENTIMENT_WINDOW,
    build_sentiment_tracking,
    change_label,
    chart_date,
    sentiment_label,
)


def _scored(*scores):
    """Newest first, one day apart."""
    start = datetime(2024, 3, 20)
    return [
        {
            "title": f"Customer feedback batch {i}",
            "sentiment_score": s,
            "created_date": (start - timedelta(days=i)).isoformat(),
        }
        for i, s in enumerate(scores)
    ]


def test_declining_sentiment():
    # newest first: 0.3 is the latest, 0.8 the one before it
    tracking = build_sentiment_tracking(_scored(0.3, 0.8))
    assert [p["score"] for p in tracking["chart"]] == [0.8, 0.3]
    assert tracking["change"]["value"] == pytest.approx(-0.5)
    assert tracking["change"]["label"] == "Declining"
    assert tracking["change"]["percent"] == "-50.0%"
    assert tracking["latest"]["label"] == "Somewhat Negative"
    assert tracking["average"]["score"] == pytest.approx(0.55)


def test_single_score_is_stable():
    tracking = build_sentiment_tracking(_scored(0.65))
    assert tracking["change"]["value"] == 0
    assert tracking["change"]["label"] == "Stable"
    assert tracking["latest"]["icon"] == "smile"


def test_window_takes_newest_ten_oldest_first():
    records = _scored(*[round(0.1 * (i % 10), 1) for i in range(15)])
    records.insert(3, {"title": "unscored", "sentiment_score": None, "created_date": None})
    chart = build_sentiment_tracking(records)["chart"]
    assert len(chart) == SENTIMENT_WINDOW
    assert chart[-1]["date"] == "Mar 20"
    assert chart[0]["date"] == "Mar 11"
    assert chart[-1]["title"] == "Customer feedback ba..."


def test_nothing_scored_means_no_tracking():
    assert build_sentiment_tracking([{"title": "x", "sentiment_score": None}]) is None
    assert build_sentiment_tracking([]) is None


@pytest.mark.parametrize(
    "score, label",
    [
        (0.95, "Very Positive"),
        (0.7, "Very Positive"),
        (0.6, "Positive"),
        (0.55, "Somewhat Positive"),
        (0.4, "Neutral"),
        (0.3, "Somewhat Negative"),
        (0.1, "Negative"),
    ],
)
def test_sentiment_labels(score, label):
    assert sentiment_label(score) == label


def test_change_label_and_dates():
    assert change_label(0.1) == "Improving"
    assert change_label(0) == "Stable"
    assert chart_date("2024-03-05T09:30:00") == "Mar 5"


def test_reports_route(client, make_analysis):
    done = make_analysis()
    pending = make_analysis(status="processing", title="December returns")

    body = client.get("/reports").json()
    entries = body["reports"]
    assert [e["id"] for e in entries] == [pending["id"], done["id"]]
    assert entries[0]["summary"] == "Analysis in progress..."
    assert entries[1]["insight_count"] == 2
    assert entries[1]["dashboard_url"] == f"/dashboard?id={done['id']}"
    assert entries[1]["data_type_label"] == "sales"
    assert body["sentiment"]["latest"]["score"] == 0.72


def test_reports_route_when_empty(client):
    body = client.get("/reports").json()
    assert body["reports"] == []
    assert body["sentiment"] is None

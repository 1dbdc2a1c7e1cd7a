"""
Sentiment tracking across recent analyses (Reports page).
"""

from datetime import datetime
from typing import Iterable, List, Optional

from insightgen.renderer import short_title

SENTIMENT_WINDOW = 10

_LABELS = (
    (0.7, "Very Positive"),
    (0.6, "Positive"),
    (0.5, "Somewhat Positive"),
    (0.4, "Neutral"),
    (0.3, "Somewhat Negative"),
)


def sentiment_label(score: float) -> str:
    for threshold, label in _LABELS:
        if score >= threshold:
            return label
    return "Negative"


def sentiment_mood(score: float) -> dict:
    if score >= 0.6:
        return {"icon": "smile", "tone": "green"}
    if score >= 0.4:
        return {"icon": "meh", "tone": "yellow"}
    return {"icon": "frown", "tone": "red"}


def change_label(change: float) -> str:
    if change > 0:
        return "Improving"
    if change < 0:
        return "Declining"
    return "Stable"


def chart_date(iso_value: Optional[str]) -> str:
    """2024-03-05T... -> "Mar 5" """
    if not iso_value:
        return ""
    dt = datetime.fromisoformat(iso_value)
    return f"{dt:%b} {dt.day}"


def build_sentiment_tracking(analyses_newest_first: Iterable[dict]) -> Optional[dict]:
    """
    Summarise sentiment over the newest scored analyses.

    Takes up to SENTIMENT_WINDOW records carrying a score, ordered
    oldest -> newest for charting. Returns None when nothing is scored.
    """
    scored: List[dict] = [a for a in analyses_newest_first if a.get("sentiment_score") is not None]
    window = list(reversed(scored[:SENTIMENT_WINDOW]))
    if not window:
        return None

    series = [
        {
            "date": chart_date(a.get("created_date")),
            "score": a["sentiment_score"],
            "title": short_title(a.get("title", "")),
        }
        for a in window
    ]
    scores = [point["score"] for point in series]
    latest = scores[-1]
    previous = scores[-2] if len(scores) > 1 else latest
    average = sum(scores) / len(scores)
    change = latest - previous

    return {
        "latest": {"score": latest, "label": sentiment_label(latest), **sentiment_mood(latest)},
        "average": {"score": average, "label": sentiment_label(average), **sentiment_mood(average)},
        "change": {
            "value": change,
            "percent": f"{'+' if change > 0 else ''}{change * 100:.1f}%",
            "label": change_label(change),
        },
        "chart": series,
    }

"""
Reports page: every analysis, newest first, plus sentiment over time.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from insightgen.database import SessionLocal
from insightgen.entity_store import EntityStore
from insightgen.helpers import analysis_to_dict, page_url
from insightgen.insight_models import DataType
from insightgen.models import Analysis
from insightgen.renderer import DATA_TYPE_TONES
from insightgen.sentiment import build_sentiment_tracking

logger = logging.getLogger(__name__)
router = APIRouter()

SENTIMENT_SOURCE_LIMIT = 50
IN_PROGRESS_TEXT = "Analysis in progress..."


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _report_entry(record: dict) -> dict:
    data_type = DataType(record["data_type"])
    created = datetime.fromisoformat(record["created_date"]) if record.get("created_date") else None
    return {
        "id": record["id"],
        "title": record["title"],
        "status": record["status"],
        "data_type": data_type.value,
        "data_type_label": data_type.value.replace("_", " "),
        "data_type_tone": DATA_TYPE_TONES[data_type],
        "summary": record.get("summary") or IN_PROGRESS_TEXT,
        "created_on": f"{created:%b} {created.day}, {created.year}" if created else None,
        "insight_count": len(record.get("key_insights") or []),
        "action_count": len(record.get("recommendations") or []),
        "dashboard_url": page_url("Dashboard", id=record["id"]),
    }


@router.get("/reports")
def reports(db: Session = Depends(get_db)):
    records = [analysis_to_dict(a) for a in EntityStore(db, Analysis).list("-created_date")]
    return {
        "reports": [_report_entry(r) for r in records],
        "sentiment": build_sentiment_tracking(records[:SENTIMENT_SOURCE_LIMIT]) if records else None,
        "new_analysis_url": page_url("Upload"),
    }

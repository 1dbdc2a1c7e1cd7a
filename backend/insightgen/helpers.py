"""
Shared helper functions used by multiple route modules.
Avoids duplication and keeps route files focused on HTTP handling.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlencode
from uuid import UUID

from fastapi import HTTPException

from insightgen.entity_store import coerce_uuid
from insightgen.models import Analysis, DataSource

logger = logging.getLogger(__name__)

PAGES = ("Home", "Upload", "Dashboard", "Reports", "Integrations", "Settings")


# ── UUID parsing ────────────────────────────────────────────────────────

def parse_uuid(value: str, field_name: str = "id") -> UUID:
    """Parse a string into a UUID or raise a 400 HTTPException."""
    parsed = coerce_uuid(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}")
    return parsed


# ── Navigation ──────────────────────────────────────────────────────────

def page_url(page: str, **params: Any) -> str:
    """URL of a page, e.g. page_url("Dashboard", id=x) -> "/dashboard?id=x"."""
    if page not in PAGES:
        raise ValueError(f"Unknown page '{page}'")
    path = "/" if page == "Home" else f"/{page.lower()}"
    query = {k: str(v) for k, v in params.items() if v is not None}
    return f"{path}?{urlencode(query)}" if query else path


# ── Serialisers ─────────────────────────────────────────────────────────

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def analysis_to_dict(a: Analysis) -> dict:
    return {
        "id": str(a.id),
        "title": a.title,
        "data_type": a.data_type,
        "file_urls": list(a.file_urls or []),
        "status": a.status,
        "summary": a.summary,
        "key_insights": a.key_insights,
        "recommendations": a.recommendations,
        "anomalies": a.anomalies,
        "metrics": a.metrics,
        "sentiment_score": a.sentiment_score,
        "failure_reason": a.failure_reason,
        "created_by": a.created_by,
        "created_date": _iso(a.created_date),
        "updated_date": _iso(a.updated_date),
    }


def data_source_to_dict(s: DataSource) -> dict:
    return {
        "id": str(s.id),
        "name": s.name,
        "source_type": s.source_type,
        "connection_url": s.connection_url,
        "sync_frequency": s.sync_frequency,
        "auto_analyze": bool(s.auto_analyze),
        "status": s.status,
        "last_synced": _iso(s.last_synced),
        "created_date": _iso(s.created_date),
    }

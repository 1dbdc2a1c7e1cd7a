"""
Data source registry: create / delete / sync / test over the data_sources
table. Every mutation answers with the re-fetched list, newest first.

Sync only stamps last_synced and marks the source active; no data moves.
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from insightgen.connectors import get_connector
from insightgen.entity_store import EntityNotFound, EntityStore
from insightgen.helpers import data_source_to_dict
from insightgen.insight_models import SourceStatus, SourceType, SyncFrequency
from insightgen.models import DataSource
from insightgen.renderer import SOURCE_STATUS_TONES

logger = logging.getLogger(__name__)

EMPTY_STATE_TEXT = "No data sources connected yet. Add your first source to enable automatic analysis."


class DataSourceValidationError(Exception):
    pass


class DataSourceCreate(BaseModel):
    name: str = ""
    source_type: SourceType = SourceType.GOOGLE_SHEETS
    connection_url: Optional[str] = None
    sync_frequency: SyncFrequency = SyncFrequency.MANUAL
    auto_analyze: bool = False
    status: SourceStatus = SourceStatus.INACTIVE


def _source_view(source: DataSource) -> dict:
    view = data_source_to_dict(source)
    view["status_tone"] = SOURCE_STATUS_TONES[SourceStatus(source.status)]
    return view


def list_sources(db: Session) -> dict:
    sources = [_source_view(s) for s in EntityStore(db, DataSource).list("-created_date")]
    return {"data_sources": sources, "empty_state": None if sources else EMPTY_STATE_TEXT}


def create_source(db: Session, payload: DataSourceCreate) -> dict:
    name = (payload.name or "").strip()
    url = (payload.connection_url or "").strip()
    if not name:
        raise DataSourceValidationError("A name is required")
    if payload.source_type is not SourceType.MANUAL_UPLOAD and not url:
        raise DataSourceValidationError("A connection URL is required for this source type")
    EntityStore(db, DataSource).create({
        "name": name,
        "source_type": payload.source_type.value,
        "connection_url": url or None,
        "sync_frequency": payload.sync_frequency.value,
        "auto_analyze": payload.auto_analyze,
        "status": payload.status.value,
    })
    return list_sources(db)


def delete_source(db: Session, source_id: str) -> dict:
    EntityStore(db, DataSource).delete(source_id)
    return list_sources(db)


def sync_source(db: Session, source_id: str) -> dict:
    EntityStore(db, DataSource).update(source_id, {
        "last_synced": datetime.utcnow(),
        "status": SourceStatus.ACTIVE.value,
    })
    logger.info(f"Marked data source {source_id} as synced")
    return list_sources(db)


def probe_source(db: Session, source_id: str) -> dict:
    """Probe the source with its connector and record the outcome as its status."""
    store = EntityStore(db, DataSource)
    source = store.get(source_id)
    if source is None:
        raise EntityNotFound(f"data_sources {source_id} not found")
    try:
        connector = get_connector(source.source_type, source.connection_url or "")
    except ValueError as e:
        raise DataSourceValidationError(str(e))
    outcome, message = connector.test_connection()
    status = SourceStatus.ACTIVE if outcome == "connected" else SourceStatus.ERROR
    updated = store.update(source_id, {"status": status.value})
    logger.info(f"Connection test for data source {source_id}: {outcome} ({message})")
    return {"data_source": _source_view(updated), "result": outcome, "message": message}

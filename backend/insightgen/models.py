"""
All SQLAlchemy models in a single module.
Imported by routes and services; avoids circular dependencies.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, Boolean
from sqlalchemy import JSON as JSON_TYPE
from sqlalchemy.types import Float, String, TIMESTAMP, Text, Uuid as UUID_TYPE

from insightgen.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


# ── Analyses ────────────────────────────────────────────────────────────

class Analysis(Base):
    __tablename__ = "analyses"
    id = Column(UUID_TYPE(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String, nullable=False)
    data_type = Column(String, nullable=False, default="mixed")
    file_urls = Column(JSON_TYPE, nullable=False, default=list)
    status = Column(String, nullable=False, default="processing", index=True)
    summary = Column(Text, nullable=True)
    key_insights = Column(JSON_TYPE, nullable=True)
    recommendations = Column(JSON_TYPE, nullable=True)
    anomalies = Column(JSON_TYPE, nullable=True)
    metrics = Column(JSON_TYPE, nullable=True)
    sentiment_score = Column(Float, nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_by = Column(String, nullable=True, index=True)
    created_date = Column(TIMESTAMP, default=_utcnow, index=True)
    updated_date = Column(TIMESTAMP, default=_utcnow, onupdate=_utcnow)


# ── Data sources ────────────────────────────────────────────────────────

class DataSource(Base):
    __tablename__ = "data_sources"
    id = Column(UUID_TYPE(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    source_type = Column(String, nullable=False)
    connection_url = Column(String, nullable=True)
    sync_frequency = Column(String, nullable=False, default="manual")
    auto_analyze = Column(Boolean, nullable=False, default=False)
    status = Column(String, nullable=False, default="inactive")
    last_synced = Column(TIMESTAMP, nullable=True)
    created_date = Column(TIMESTAMP, default=_utcnow, index=True)


# ── Users & preferences ─────────────────────────────────────────────────

class User(Base):
    __tablename__ = "users"
    id = Column(UUID_TYPE(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=True)
    # Preference columns stay NULL until the user saves once
    weekly_digest = Column(Boolean, nullable=True)
    digest_day = Column(String, nullable=True)
    notification_preferences = Column(JSON_TYPE, nullable=True)
    created_date = Column(TIMESTAMP, default=_utcnow)

"""
View-state routes for the dashboard's forecast panel and chat assistant.

POST mounts a view (creates its state), GET re-renders it, DELETE unmounts
it and drops the state. State lives in the in-process view cache.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from insightgen.cache import cache_delete, cache_get, cache_set
from insightgen.chat_assistant import ChatSession
from insightgen.database import SessionLocal
from insightgen.entity_store import EntityStore
from insightgen.forecast_service import ForecastPanel, PanelStateError
from insightgen.helpers import analysis_to_dict, parse_uuid
from insightgen.insight_models import AnalysisStatus
from insightgen.llm_service import LLMClient, get_llm_client
from insightgen.models import Analysis

logger = logging.getLogger(__name__)
router = APIRouter()

FORECAST_PANELS = "forecast_panel"
CHAT_SESSIONS = "chat_session"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _load_analysis(db: Session, analysis_id: str) -> dict:
    analysis = EntityStore(db, Analysis).get(parse_uuid(analysis_id, "analysis_id"))
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis_to_dict(analysis)


def _refresh_analysis(db: Session, analysis_id: str) -> Optional[dict]:
    analysis = EntityStore(db, Analysis).get(analysis_id)
    return analysis_to_dict(analysis) if analysis else None


def _get_view(ns: str, view_id: str, label: str):
    view = cache_get(ns, view_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return view


# ── Forecast panels ─────────────────────────────────────────────────────

@router.post("/analyses/{analysis_id}/forecast-panels", status_code=201)
async def mount_forecast_panel(
    analysis_id: str,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    analysis = await asyncio.to_thread(_load_analysis, db, analysis_id)
    panel = ForecastPanel(analysis, llm)
    cache_set(FORECAST_PANELS, panel.id, panel)
    view = await panel.render()
    logger.info(f"Mounted forecast panel {panel.id} for analysis {analysis_id}")
    return view


@router.get("/forecast-panels/{panel_id}")
async def render_forecast_panel(panel_id: str, db: Session = Depends(get_db)):
    panel: ForecastPanel = _get_view(FORECAST_PANELS, panel_id, "Forecast panel")
    analysis = await asyncio.to_thread(_refresh_analysis, db, panel.analysis_id)
    view = await panel.render(analysis)
    cache_set(FORECAST_PANELS, panel.id, panel)
    return view


@router.post("/forecast-panels/{panel_id}/retry")
async def retry_forecast_panel(panel_id: str):
    panel: ForecastPanel = _get_view(FORECAST_PANELS, panel_id, "Forecast panel")
    try:
        view = await panel.retry()
    except PanelStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    cache_set(FORECAST_PANELS, panel.id, panel)
    return view


@router.delete("/forecast-panels/{panel_id}")
def unmount_forecast_panel(panel_id: str):
    if not cache_delete(FORECAST_PANELS, panel_id):
        raise HTTPException(status_code=404, detail="Forecast panel not found")
    return {"status": "deleted", "panel_id": panel_id}


# ── Chat sessions ───────────────────────────────────────────────────────

class ChatMessageRequest(BaseModel):
    content: str = ""


@router.post("/analyses/{analysis_id}/chat-sessions", status_code=201)
def open_chat_session(
    analysis_id: str,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    analysis = _load_analysis(db, analysis_id)
    if analysis["status"] != AnalysisStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="Chat is available once the analysis has completed")
    session = ChatSession(analysis, llm)
    cache_set(CHAT_SESSIONS, session.id, session)
    return session.to_dict()


@router.get("/chat-sessions/{session_id}")
def get_chat_session(session_id: str):
    session: ChatSession = _get_view(CHAT_SESSIONS, session_id, "Chat session")
    cache_set(CHAT_SESSIONS, session.id, session)
    return session.to_dict()


@router.post("/chat-sessions/{session_id}/messages")
async def send_chat_message(session_id: str, req: ChatMessageRequest):
    session: ChatSession = _get_view(CHAT_SESSIONS, session_id, "Chat session")
    accepted = await session.submit(req.content)
    cache_set(CHAT_SESSIONS, session.id, session)
    return {**session.to_dict(), "accepted": accepted}


@router.delete("/chat-sessions/{session_id}")
def close_chat_session(session_id: str):
    if not cache_delete(CHAT_SESSIONS, session_id):
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"status": "deleted", "session_id": session_id}

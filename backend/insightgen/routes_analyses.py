"""
Analysis routes: submission (upload page), record lookup, the status event
stream, and the dashboard view.
"""

import json
import logging
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, HTTPException, Query, Response, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from insightgen.analysis_service import (
    AnalysisProcessingError,
    SubmissionValidationError,
    SubmittedFile,
    process_analysis_in_background,
    submit_analysis,
)
from insightgen.database import SessionLocal
from insightgen.entity_store import EntityStore
from insightgen.helpers import analysis_to_dict, page_url, parse_uuid
from insightgen.insight_models import DataType
from insightgen.llm_service import LLMClient, LLMServiceError, get_llm_client
from insightgen.models import Analysis
from insightgen.renderer import no_selection_view, render_dashboard
from insightgen.status_poller import AnalysisStatusPoller, database_fetcher

logger = logging.getLogger(__name__)
router = APIRouter()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class SubmissionMode(str, Enum):
    SYNC = "sync"
    ASYNC = "async"


def _with_redirect(analysis: Analysis) -> dict:
    body = analysis_to_dict(analysis)
    body["redirect_url"] = page_url("Dashboard", id=body["id"])
    return body


# ── Submission ──────────────────────────────────────────────────────────

@router.post("/analyses", status_code=201)
async def create_analysis(
    response: Response,
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    data_type: str = Form(DataType.MIXED.value),
    mode: SubmissionMode = Form(SubmissionMode.SYNC),
    files: Optional[List[UploadFile]] = File(None),
    x_user_email: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm_client),
):
    """
    Upload files and analyse them.
    sync: the whole pipeline runs in the request (201, completed record).
    async: upload + create in the request (202, processing record); the
    analysis runs as a background task.
    """
    submitted = [SubmittedFile(f.filename or "", await f.read()) for f in files or []]
    run_now = mode is SubmissionMode.SYNC
    try:
        analysis = await submit_analysis(
            db,
            title=title,
            data_type=data_type,
            files=submitted,
            llm=llm,
            created_by=x_user_email,
            run_now=run_now,
        )
    except SubmissionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AnalysisProcessingError as e:
        upstream = isinstance(e.__cause__, (LLMServiceError, ValidationError))
        raise HTTPException(
            status_code=502 if upstream else 500,
            detail={"message": e.message, "analysis_id": e.analysis_id},
        )

    if not run_now:
        background_tasks.add_task(process_analysis_in_background, analysis.id, llm)
        response.status_code = 202
    return _with_redirect(analysis)


# ── Records ─────────────────────────────────────────────────────────────

@router.get("/analyses")
def list_analyses(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return [analysis_to_dict(a) for a in EntityStore(db, Analysis).list("-created_date", limit)]


@router.get("/analyses/{analysis_id}")
def get_analysis(analysis_id: str, db: Session = Depends(get_db)):
    analysis = EntityStore(db, Analysis).get(parse_uuid(analysis_id, "analysis_id"))
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return analysis_to_dict(analysis)


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.get("/analyses/{analysis_id}/events")
def analysis_events(analysis_id: str, db: Session = Depends(get_db)):
    """Server-sent `status` events, one per poll, until the analysis leaves processing."""
    aid = parse_uuid(analysis_id, "analysis_id")
    if not EntityStore(db, Analysis).get(aid):
        raise HTTPException(status_code=404, detail="Analysis not found")

    poller = AnalysisStatusPoller(database_fetcher(SessionLocal), str(aid))

    async def stream():
        # Client disconnect cancels this generator, which ends the poll
        async for record in poller.updates():
            if record is None:
                yield _sse("status", {"id": str(aid), "status": "not_found"})
                return
            yield _sse("status", record)
        logger.info(f"Status stream for {aid} finished after {poller.fetch_count} polls")

    return StreamingResponse(stream(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})


# ── Dashboard ───────────────────────────────────────────────────────────

@router.get("/dashboard")
def dashboard(
    analysis_id: Optional[str] = Query(None, alias="id"),
    show_predictions: bool = Query(False),
    db: Session = Depends(get_db),
):
    if not analysis_id:
        return no_selection_view()
    analysis = EntityStore(db, Analysis).get(analysis_id)
    return render_dashboard(analysis_to_dict(analysis) if analysis else None, show_predictions)

"""
Analysis submission pipeline.

validate → upload every file (all-or-nothing) → create the record in
`processing` → fetch file text → one LLM call with a fixed prompt and
response schema → store the findings and mark the record `completed`.

A failure after the record exists marks it `failed` with the reason; a
failure during upload happens before any record is written. Files that
were already stored when another upload fails are left in place.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from insightgen import file_storage
from insightgen.entity_store import EntityStore
from insightgen.insight_models import AnalysisResult, AnalysisStatus, DataType
from insightgen.llm_service import LLMClient
from insightgen.models import Analysis
from insightgen.parsers import SUPPORTED_EXTENSIONS, is_supported

logger = logging.getLogger(__name__)

FILE_SEPARATOR = "\n\n---\n\n"
MAX_DATA_CHARS = 50_000
GENERIC_FAILURE_MESSAGE = "Failed to process your data. Please try again."

ANALYSIS_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "key_insights": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "impact": {"type": "string", "enum": ["high", "medium", "low"]},
                },
            },
        },
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string"},
                    "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                    "expected_impact": {"type": "string"},
                },
            },
        },
        "anomalies": {"type": "array", "items": {"type": "string"}},
        "metrics": {"type": "object", "additionalProperties": True},
        "sentiment_score": {"type": "number"},
    },
}

ANALYSIS_PROMPT_TEMPLATE = """You are an expert business analyst. Analyze the following business data and provide comprehensive insights.

DATA:
{data}

Provide your analysis in the following structure:
1. Executive Summary (2-3 sentences)
2. Key Insights (3-5 bullet points with impact assessment)
3. Detected Patterns & Anomalies
4. Sentiment Analysis (if applicable, as a score between 0 and 1)
5. Actionable Recommendations (3-5 items with priority and expected impact)
6. Key Metrics (extract any numerical data points)

Be specific, data-driven, and actionable. Focus on business impact."""


class SubmissionValidationError(Exception):
    """Bad input caught before any network or storage call."""


class AnalysisProcessingError(Exception):
    """Upload, fetch or LLM failure; carries the user-facing message."""

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE, analysis_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.analysis_id = analysis_id


@dataclass
class SubmittedFile:
    filename: str
    content: bytes


def validate_submission(title: Optional[str], files: Sequence[SubmittedFile], data_type: str) -> Tuple[str, DataType]:
    """Return (clean title, data type) or raise SubmissionValidationError."""
    if not title or not title.strip():
        raise SubmissionValidationError("Please enter a title for your analysis")
    if not files:
        raise SubmissionValidationError("Please upload at least one file")
    for f in files:
        if not is_supported(f.filename):
            raise SubmissionValidationError(
                f"Unsupported file type '{Path(f.filename or '').suffix}'. "
                f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
            )
    try:
        dtype = DataType(data_type)
    except ValueError:
        raise SubmissionValidationError(f"Unknown data type '{data_type}'")
    return title.strip(), dtype


def combine_contents(contents: Sequence[str]) -> str:
    return FILE_SEPARATOR.join(contents)[:MAX_DATA_CHARS]


def build_analysis_prompt(combined_data: str) -> str:
    return ANALYSIS_PROMPT_TEMPLATE.format(data=combined_data[:MAX_DATA_CHARS])


async def upload_all(files: Sequence[SubmittedFile]) -> List[str]:
    """Upload concurrently; the first failure fails the whole batch."""
    results = await asyncio.gather(
        *(asyncio.to_thread(file_storage.upload_file, f.filename, f.content) for f in files)
    )
    return [r["file_url"] for r in results]


async def fetch_contents(file_urls: Sequence[str]) -> List[str]:
    return list(await asyncio.gather(*(asyncio.to_thread(file_storage.read_file_text, u) for u in file_urls)))


def _mark_failed(db: Session, analysis_id, reason: str) -> None:
    db.rollback()
    EntityStore(db, Analysis).update(analysis_id, {"status": AnalysisStatus.FAILED.value, "failure_reason": reason})


async def process_analysis(db: Session, analysis_id, llm: LLMClient) -> Analysis:
    """Run fetch + LLM for an existing `processing` record and store the outcome."""
    store = EntityStore(db, Analysis)
    analysis = await asyncio.to_thread(store.get, analysis_id)
    if analysis is None:
        raise AnalysisProcessingError(analysis_id=str(analysis_id))

    try:
        contents = await fetch_contents(analysis.file_urls or [])
        prompt = build_analysis_prompt(combine_contents(contents))
        raw = await llm.ainvoke(prompt, response_json_schema=ANALYSIS_RESPONSE_SCHEMA)
        result = AnalysisResult.model_validate(raw)
    except Exception as e:
        logger.error(f"Analysis {analysis_id} failed: {type(e).__name__}: {e}")
        await asyncio.to_thread(_mark_failed, db, analysis_id, str(e)[:2000])
        raise AnalysisProcessingError(analysis_id=str(analysis_id)) from e

    fields = result.model_dump(mode="json")
    fields.update(status=AnalysisStatus.COMPLETED.value, failure_reason=None)
    updated = await asyncio.to_thread(store.update, analysis_id, fields)
    logger.info(f"Analysis {analysis_id} completed ({len(result.key_insights)} insights)")
    return updated


async def submit_analysis(
    db: Session,
    *,
    title: Optional[str],
    data_type: str,
    files: Sequence[SubmittedFile],
    llm: LLMClient,
    created_by: Optional[str] = None,
    run_now: bool = True,
) -> Analysis:
    """
    Validate, upload and create the record; with run_now also analyse it.

    Raises SubmissionValidationError before touching storage, and
    AnalysisProcessingError for any later failure.
    """
    clean_title, dtype = validate_submission(title, files, data_type)

    try:
        file_urls = await upload_all(files)
    except Exception as e:
        logger.error(f"Upload failed for analysis '{clean_title}': {type(e).__name__}: {e}")
        raise AnalysisProcessingError() from e

    analysis = await asyncio.to_thread(EntityStore(db, Analysis).create, {
        "title": clean_title,
        "data_type": dtype.value,
        "file_urls": file_urls,
        "status": AnalysisStatus.PROCESSING.value,
        "created_by": created_by,
    })
    if not run_now:
        return analysis
    return await process_analysis(db, analysis.id, llm)


async def process_analysis_in_background(analysis_id, llm: LLMClient) -> None:
    """Background-task entry point; owns its session like the job runners."""
    from insightgen.database import SessionLocal

    db = SessionLocal()
    try:
        await process_analysis(db, analysis_id, llm)
    except AnalysisProcessingError:
        # Outcome is already recorded on the analysis row
        logger.warning(f"Background analysis {analysis_id} ended in failure")
    finally:
        db.close()

import os
import tempfile

import pytest

# Point the app at a throwaway database and upload dir before it is imported
_TEST_DIR = tempfile.mkdtemp(prefix="insightgen-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["FILE_BASE_URL"] = ""
os.environ["STATUS_POLL_INTERVAL_SECONDS"] = "0.01"
for _key in ("LLM_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"):
    os.environ.pop(_key, None)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from insightgen import models  # noqa: E402,F401
from insightgen.cache import cache_clear  # noqa: E402
from insightgen.database import Base, engine as app_engine  # noqa: E402
from insightgen.llm_service import LLMServiceError, get_llm_client  # noqa: E402


SAMPLE_RESULT = {
    "summary": "Q4 revenue grew 12% quarter over quarter, led by December holiday demand.",
    "key_insights": [
        {
            "title": "Holiday demand drove record December sales",
            "description": "December alone contributed 46% of quarterly revenue.",
            "impact": "High",
        },
        {"title": "Returns rose", "description": "Return rate climbed to 7%.", "impact": "medium"},
    ],
    "recommendations": [
        {"action": "Expand holiday inventory", "priority": "high", "expected_impact": "+8% Q4 revenue"},
        {"action": "Audit return reasons", "priority": "low", "expected_impact": "Lower return rate"},
    ],
    "anomalies": ["Spike in returns on Dec 27"],
    "metrics": {"total_revenue": 1250000, "avg_order_value": 84.5, "top_region": "EU"},
    "sentiment_score": 0.72,
}

SAMPLE_FORECAST = {
    "short_term": {"timeframe": "1-3 months", "prediction": "Post-holiday dip", "confidence": "high", "trend": "down"},
    "medium_term": {"timeframe": "3-6 months", "prediction": "Recovery", "confidence": "Medium", "trend": "stable"},
    "long_term": {"timeframe": "6-12 months", "prediction": "Growth", "confidence": "low", "trend": "up"},
    "risk_factors": [{"factor": "Supply delays", "severity": "high", "mitigation": "Dual-source"}],
    "optimization_actions": ["Pre-order Q4 stock in Q3"],
    "forecast_data": [
        {"period": "Jan", "value": 90.0, "confidence_low": 80.0, "confidence_high": 100.0},
        {"period": "Feb", "value": 95.0},
    ],
}


class FakeLLM:
    """Records prompts; answers from a queue (last reply repeats). Exceptions in the queue are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def invoke(self, prompt, model=None, response_json_schema=None):
        self.calls.append({"prompt": prompt, "schema": response_json_schema})
        if not self.replies:
            raise LLMServiceError("no reply configured")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def ainvoke(self, prompt, model=None, response_json_schema=None):
        return self.invoke(prompt, model, response_json_schema)


@pytest.fixture(scope="session")
def engine():
    Base.metadata.create_all(app_engine)
    return app_engine


@pytest.fixture(scope="function")
def db_session(engine):
    # clean tables between tests
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _clear_view_state():
    cache_clear()
    yield
    cache_clear()


@pytest.fixture
def llm():
    return FakeLLM(SAMPLE_RESULT)


@pytest.fixture
def client(db_session, llm):
    from insightgen.main import app

    app.dependency_overrides[get_llm_client] = lambda: llm
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_analysis(db_session):
    """Insert an analysis row directly; returns its dict form."""
    from insightgen.entity_store import EntityStore
    from insightgen.helpers import analysis_to_dict
    from insightgen.models import Analysis

    def _make(status="completed", **fields):
        values = {"title": "Q4 Sales", "data_type": "sales", "file_urls": ["/files/abc/q4.csv"], "status": status}
        if status == "completed":
            values.update(SAMPLE_RESULT)
            values["key_insights"] = [{**i, "impact": i["impact"].lower()} for i in SAMPLE_RESULT["key_insights"]]
        values.update(fields)
        return analysis_to_dict(EntityStore(db_session, Analysis).create(values))

    return _make

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

# Load environment variables before anything reads them
load_dotenv()

from insightgen import models  # noqa: E402,F401  (registers tables on Base)
from insightgen.database import Base, SessionLocal, engine  # noqa: E402
from insightgen.helpers import page_url  # noqa: E402
from insightgen.routes_analyses import router as analyses_router  # noqa: E402
from insightgen.routes_files import router as files_router  # noqa: E402
from insightgen.routes_integrations import router as integrations_router  # noqa: E402
from insightgen.routes_reports import router as reports_router  # noqa: E402
from insightgen.routes_settings import router as settings_router  # noqa: E402
from insightgen.routes_views import router as views_router  # noqa: E402

# Logging setup (structured-ish JSON)
logging.basicConfig(
    level=logging.INFO,
    format='{"time":"%(asctime)s","level":"%(levelname)s","message":"%(message)s","module":"%(name)s"}',
)
logger = logging.getLogger(__name__)

FEATURES = [
    {"title": "Smart Summarization", "description": "Generate clear overviews of performance metrics and sentiment trends instantly"},
    {"title": "Pattern Detection", "description": "Detect key patterns and anomalies across your business data automatically"},
    {"title": "Action Recommendations", "description": "Get human-style suggestions to improve performance and customer satisfaction"},
    {"title": "Real-Time Insights", "description": "Transform raw data into actionable insights in seconds, not days"},
]

NAVIGATION = [
    {"title": "Home", "url": page_url("Home")},
    {"title": "New Analysis", "url": page_url("Upload")},
    {"title": "Reports", "url": page_url("Reports")},
    {"title": "Integrations", "url": page_url("Integrations")},
    {"title": "Settings", "url": page_url("Settings")},
]


def create_db_and_tables():
    logger.info("Connecting to database to create tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created successfully.")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(title="InsightGen.ai", lifespan=lifespan)

app.include_router(analyses_router)
app.include_router(views_router)
app.include_router(reports_router)
app.include_router(integrations_router)
app.include_router(settings_router)
app.include_router(files_router)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.get("/")
def read_root():
    return {
        "name": "InsightGen.ai",
        "tagline": "Transform raw business data into actionable insights with advanced AI.",
        "features": FEATURES,
        "navigation": NAVIGATION,
        "get_started_url": page_url("Upload"),
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database_connection": "successful"}
    except Exception as e:
        return {"status": "error", "database_connection": "failed", "error": str(e)}

"""
Guest Review Hub FastAPI Application
====================================

REST API over the review store: listing, moderation, dashboards and
channel sync.

Endpoints:
    GET  /api/health        - Health check
    /api/reviews/...        - Review queries, moderation, export, sync
    /api/dashboard/...      - Analytics views
    /api/google/...         - Google place reviews

Usage:
    uvicorn src.api.main:app --reload --port 8000

    Or with CLI:
    python -m src.api.main
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from ..data.config import get_settings
from ..data.store import StoreError
from ..orchestrator.logging_config import setup_logging
from .models import HealthResponse
from .review_routes import router as review_router
from .dashboard_routes import router as dashboard_router
from .google_routes import router as google_router
from . import db

settings = get_settings()

setup_logging(
    level=settings.logging.level,
    json_output=settings.logging.json_logs,
    log_file=settings.logging.log_file,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Guest Review Hub API...")

    try:
        await db.get_store()
        logger.info(f"Store ready ({settings.store.backend})")
    except (StoreError, ValueError) as e:
        # Requests retry the connection lazily
        logger.warning(f"Store not available at startup: {e}")

    yield

    await db.close_store()
    logger.info("Shutting down Guest Review Hub API...")


# Create FastAPI app
app = FastAPI(
    title="Guest Review Hub API",
    description="Guest review aggregation, moderation and analytics",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS configuration
# In production, set CORS_ORIGINS env var (comma-separated)
_default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
_default_origins.extend(o for o in settings.api.cors_origins if o not in _default_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(review_router)
app.include_router(dashboard_router)
app.include_router(google_router)


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Reports store connectivity and whether each provider runs live or on
    mock data.
    """
    store_health = await db.check_health()
    overall = "healthy" if store_health["status"] == "connected" else "degraded"

    return HealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.environment,
        store=store_health["status"],
        storeBackend=store_health["backend"],
        hostaway="mock" if settings.hostaway.use_mock else "live",
        google="mock" if settings.google.use_mock else "live",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("src.api.main:app", host="0.0.0.0", port=8000, reload=True)

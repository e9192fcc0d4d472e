import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.dependencies import get_orchestrator
from app.routers import activities as activities_router
from app.routers import metrics as metrics_router
from app.core.errors import (
    EcoHuntException,
    ecohunt_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the worker's orchestrator up front so the first submission
    # does not pay for it.
    get_orchestrator()
    logger.info(
        "EcoHunt reward engine started (env=%s, seasonal_mode=%s, subcheck_policy=%s)",
        settings.APP_ENV, settings.SEASONAL_MODE, settings.SUBCHECK_FAILURE_POLICY,
    )
    yield
    logger.info("EcoHunt reward engine stopped")


app = FastAPI(
    title="EcoHunt Reward Engine API",
    description=(
        "**Activity Scoring & Reward Engine**\n\n"
        "Verifies photographed eco-activities, scores their environmental impact "
        "and user behavior, and issues capped GREEN token rewards.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first
app.add_exception_handler(EcoHuntException, ecohunt_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(activities_router.router)
app.include_router(metrics_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    `status: ok` when the database answers. Also reports which reward
    rules this worker runs with, so a misconfigured deploy is visible.
    HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": "unreachable"},
        )
    return {
        "status": "ok",
        "db": "ok",
        "env": settings.APP_ENV,
        "seasonal_mode": settings.SEASONAL_MODE,
        "max_daily_reward": settings.MAX_DAILY_REWARD,
    }

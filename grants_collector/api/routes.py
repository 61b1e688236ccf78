"""HTTP trigger and status endpoints for the extract collector.

POST /collect         run one collection pass synchronously
GET  /collect/status  opportunity count and the last 24h of change entries
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..adapters import GrantsGovExtractFetcher
from ..config import Config, load_config
from ..database import SupabaseClient
from ..errors import ServiceSetupError
from ..pipeline import collect_grants

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/collect", tags=["Collection"])


# =============================================================================
# Response Models
# =============================================================================


class CollectResponse(BaseModel):
    """Outcome of a triggered collection pass."""

    success: bool
    processed: int
    errors: List[str]
    durationSeconds: int
    timestamp: str


class ChangeOpportunity(BaseModel):
    title: Optional[str] = None
    agency: Optional[str] = None


class ChangeEntry(BaseModel):
    type: str
    date: datetime
    source: Optional[str] = None
    opportunity: ChangeOpportunity


class StatusResponse(BaseModel):
    totalOpportunities: int
    recentChanges: List[ChangeEntry]
    lastUpdated: Optional[datetime] = None


# =============================================================================
# Process-scoped resources
# =============================================================================


def get_config(request: Request) -> Config:
    config = getattr(request.app.state, "config", None)
    if config is None:
        try:
            config = load_config()
        except Exception as e:
            raise ServiceSetupError(str(e)) from e
        request.app.state.config = config
    return config


def get_db(request: Request, config: Config = Depends(get_config)) -> SupabaseClient:
    """One storage client per process, created on first use."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        try:
            db = SupabaseClient(config.supabase_url, config.supabase_key)
        except Exception as e:
            raise ServiceSetupError(f"storage client unavailable: {e}") from e
        request.app.state.db = db
    return db


def get_fetcher(config: Config = Depends(get_config)) -> GrantsGovExtractFetcher:
    return GrantsGovExtractFetcher.from_config(config)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=CollectResponse)
async def trigger_collection(
    config: Config = Depends(get_config),
    db: SupabaseClient = Depends(get_db),
    fetcher: GrantsGovExtractFetcher = Depends(get_fetcher),
):
    """Run one full collection pass and return its report.

    On timeout the pass is cancelled at its current await. A batch already
    handed to a worker thread finishes its writes after the 500 is returned;
    no later batch starts.
    """
    logger.info("Manual grants collection triggered via API")
    start = time.monotonic()
    try:
        report = await asyncio.wait_for(
            collect_grants(db, fetcher=fetcher, batch_size=config.batch_size),
            timeout=config.collect_max_duration_seconds,
        )
    except asyncio.TimeoutError:
        message = f"Collection failed: exceeded {config.collect_max_duration_seconds}s limit"
        return _failure_response(message)
    except Exception as e:
        logger.error(f"Collection API error: {e}", exc_info=True)
        return _failure_response(f"Collection failed: {e}")

    duration = round(time.monotonic() - start)
    logger.info(f"Collection completed in {duration}s")
    return CollectResponse(
        success=report.success,
        processed=report.processed,
        errors=report.errors,
        durationSeconds=duration,
        timestamp=_now_iso(),
    )


def _failure_response(message: str) -> JSONResponse:
    logger.error(message)
    body = CollectResponse(
        success=False,
        processed=0,
        errors=[message],
        durationSeconds=0,
        timestamp=_now_iso(),
    )
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


@router.get("/status", response_model=StatusResponse)
def collection_status(db: SupabaseClient = Depends(get_db)):
    """Total opportunity count and up to 10 changes from the last 24 hours."""
    try:
        current = db.get_collection_status()
    except Exception as e:
        logger.error(f"Status check error: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get collection status"},
        )

    return StatusResponse(
        totalOpportunities=current.total_opportunities,
        recentChanges=[
            ChangeEntry(
                type=change.type,
                date=change.date,
                source=change.source,
                opportunity=ChangeOpportunity(title=change.title, agency=change.agency),
            )
            for change in current.recent_changes
        ],
        lastUpdated=current.last_updated,
    )


# =============================================================================
# Application
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    db = getattr(app.state, "db", None)
    if db is not None:
        db.close()
        app.state.db = None


async def setup_error_handler(request: Request, exc: ServiceSetupError) -> JSONResponse:
    """Dependency setup failed before the endpoint ran; answer in its error shape."""
    logger.error(f"Service setup failed on {request.url.path}: {exc}", exc_info=exc)
    if request.url.path.rstrip("/").endswith("/status"):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to get collection status"},
        )
    return _failure_response(f"Collection failed: {exc}")


def create_app() -> FastAPI:
    app = FastAPI(title="Grants Collector", lifespan=lifespan)
    app.add_exception_handler(ServiceSetupError, setup_error_handler)
    app.include_router(router)
    return app

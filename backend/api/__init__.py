"""
FastAPI routes for the sentiment dashboard backend.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Depends, UploadFile, File
from pydantic import BaseModel, Field

from adapter.csvfile import DataProcessingError, SkippedRow, decode_csv_bytes
from adapter.models import Post, SentimentLabel
from adapter.sample import MAX_SAMPLE_SIZE
from aggregator import AnalyticsData, RESOLUTION_MAP, AUTO_RESOLUTION, MAX_TIME_BUCKETS
from core import DashboardSession, SessionState
from monitoring import monitor, EventType

logger = logging.getLogger(__name__)

# Router for API endpoints
router = APIRouter(prefix="/api/v1", tags=["Sentiment Dashboard"])

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


# ============================================================================
# Request/Response Models
# ============================================================================

class DatasetResponse(BaseModel):
    """Summary of a freshly loaded dataset."""
    source: str
    filename: Optional[str] = None
    total_posts: int
    total_rows: int = Field(description="Rows read, including skipped ones")
    skipped_rows: List[SkippedRow] = Field(default_factory=list)
    loaded_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    has_data: bool
    total_posts: int


class PostsResponse(BaseModel):
    """A page of the post table."""
    total: int = Field(description="Posts matching the filters")
    limit: int
    offset: int
    posts: List[Post]


# ============================================================================
# Dependency Injection - these get set by the main app
# ============================================================================

_session: Optional[DashboardSession] = None
_max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES


def set_dependencies(session: DashboardSession, max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES):
    """Set the service dependencies (called from main app)."""
    global _session, _max_upload_bytes
    _session = session
    _max_upload_bytes = max_upload_bytes


def get_session() -> DashboardSession:
    if _session is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _session


def _validate_resolution(resolution: Optional[str]) -> None:
    valid = list(RESOLUTION_MAP.keys()) + [AUTO_RESOLUTION]
    if resolution and resolution not in valid:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid resolution: {resolution}. Valid options: {valid}"
        )


# ============================================================================
# Routes
# ============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(session: DashboardSession = Depends(get_session)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        has_data=session.has_data,
        total_posts=len(session.posts),
    )


# ----------------------------------------------------------------------------
# Dataset
# ----------------------------------------------------------------------------

@router.post("/data/upload", response_model=DatasetResponse)
async def upload_csv(
    file: UploadFile = File(..., description="CSV file with a header row"),
    session: DashboardSession = Depends(get_session)
):
    """
    Replace the dataset with posts parsed from an uploaded CSV file.

    Malformed rows are skipped and listed in the response. A file with no
    valid rows is rejected with a single error message.
    """
    raw = await file.read(_max_upload_bytes + 1)
    if len(raw) > _max_upload_bytes:
        logger.warning(f"Rejected upload {file.filename}: larger than {_max_upload_bytes} bytes")
        raise HTTPException(
            status_code=413,
            detail=f"File too large (limit {_max_upload_bytes} bytes)"
        )

    try:
        text = decode_csv_bytes(raw)
        result = session.load_csv(text, filename=file.filename)
    except (DataProcessingError, ValueError) as e:
        logger.warning(f"Rejected upload {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    state = session.state()
    return DatasetResponse(
        source=state.source.value,
        filename=state.filename,
        total_posts=result.valid_rows,
        total_rows=result.total_rows,
        skipped_rows=result.skipped,
        loaded_at=state.loaded_at,
    )


@router.post("/data/sample", response_model=DatasetResponse)
async def load_sample(
    count: Optional[int] = Query(default=None, ge=1, le=MAX_SAMPLE_SIZE, description="Number of posts to generate"),
    seed: Optional[int] = Query(default=None, description="Seed for repeatable sample data"),
    session: DashboardSession = Depends(get_session)
):
    """Replace the dataset with generated demo posts."""
    try:
        posts = session.load_sample(count=count, seed=seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to generate sample data: {e}")

    state = session.state()
    return DatasetResponse(
        source=state.source.value,
        total_posts=len(posts),
        total_rows=len(posts),
        loaded_at=state.loaded_at,
    )


@router.delete("/data", status_code=204)
async def reset_data(session: DashboardSession = Depends(get_session)):
    """Drop the loaded dataset (back to the upload screen)."""
    session.reset()


@router.get("/data/status", response_model=SessionState)
async def data_status(session: DashboardSession = Depends(get_session)):
    """Current dataset status, including the last load error."""
    return session.state()


# ----------------------------------------------------------------------------
# Analytics
# ----------------------------------------------------------------------------

@router.get("/analytics", response_model=AnalyticsData)
async def get_analytics(
    resolution: Optional[str] = Query(default=None, description=f"Time-series resolution. Options: {list(RESOLUTION_MAP.keys()) + [AUTO_RESOLUTION]}"),
    top_n: Optional[int] = Query(default=None, ge=1, le=100, description="Length of brand/topic rankings"),
    session: DashboardSession = Depends(get_session)
):
    """
    Get sentiment analytics for the loaded dataset.

    Analytics are recomputed from all posts for any non-default
    resolution or ranking length.
    """
    _validate_resolution(resolution)

    try:
        analytics = session.get_analytics(resolution=resolution, top_n=top_n)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if analytics is None:
        raise HTTPException(status_code=404, detail="No data loaded")
    return analytics


@router.get("/posts", response_model=PostsResponse)
async def list_posts(
    limit: int = Query(default=50, ge=1, le=500, description="Number of posts to return"),
    offset: int = Query(default=0, ge=0, description="Posts to skip"),
    sentiment: Optional[SentimentLabel] = Query(default=None, description="Filter by sentiment label"),
    brand: Optional[str] = Query(default=None, description="Filter by brand"),
    topic: Optional[str] = Query(default=None, description="Filter by topic"),
    platform: Optional[str] = Query(default=None, description="Filter by platform"),
    search: Optional[str] = Query(default=None, description="Substring of the post text"),
    session: DashboardSession = Depends(get_session)
):
    """Get a page of posts for the data table, newest first."""
    if not session.has_data:
        raise HTTPException(status_code=404, detail="No data loaded")

    total, posts = session.list_posts(
        limit=limit,
        offset=offset,
        sentiment=sentiment,
        brand=brand,
        topic=topic,
        platform=platform,
        search=search,
    )
    return PostsResponse(total=total, limit=limit, offset=offset, posts=posts)


# ----------------------------------------------------------------------------
# Resolutions
# ----------------------------------------------------------------------------

@router.get("/resolutions")
async def list_resolutions(session: DashboardSession = Depends(get_session)):
    """List the available time-series resolutions."""
    return {
        "resolutions": list(RESOLUTION_MAP.keys()) + [AUTO_RESOLUTION],
        "default": session.default_resolution,
        "max_buckets": MAX_TIME_BUCKETS,
        "details": {k: f"{v} seconds" for k, v in RESOLUTION_MAP.items()}
    }


# ----------------------------------------------------------------------------
# Monitoring
# ----------------------------------------------------------------------------

@router.get("/monitor/status")
async def monitor_status():
    """Health, metrics and recent activity in one payload."""
    return monitor.get_dashboard_data()


@router.get("/monitor/events")
async def monitor_events(
    limit: int = Query(default=50, ge=1, le=500),
    event_type: Optional[EventType] = Query(default=None, description="Filter by event type")
):
    """Recent system events, most recent first."""
    return {"events": monitor.activity.get_recent(limit=limit, event_type=event_type)}


__all__ = ["router", "set_dependencies", "get_session"]

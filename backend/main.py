"""
Sentiment Dashboard Backend - Main FastAPI Application

Run with:
    uvicorn main:app --reload --port 8000
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from adapter.sample import DEFAULT_SAMPLE_SIZE
from aggregator import AUTO_RESOLUTION, DEFAULT_TOP_N
from api import router, set_dependencies, DEFAULT_MAX_UPLOAD_BYTES
from core import DashboardSession
from monitoring import monitor

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


UNMONITORED_PATHS = {"/", "/docs", "/redoc", "/openapi.json"}


def _endpoint_name(path: str) -> str:
    return path.removeprefix(router.prefix) or "/"


async def monitor_requests(request: Request, call_next) -> Response:
    """Record per-endpoint request counts and latency; 5xx responses count as errors."""
    if request.url.path in UNMONITORED_PATHS:
        return await call_next(request)

    endpoint = _endpoint_name(request.url.path)
    started = time.perf_counter()
    failed = True
    try:
        response = await call_next(request)
        failed = response.status_code >= 500
        return response
    finally:
        monitor.metrics.record_request(endpoint, (time.perf_counter() - started) * 1000, error=failed)


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value else default


def create_session() -> DashboardSession:
    """Build the dashboard session from environment settings."""
    return DashboardSession(
        sample_size=_env_int("SAMPLE_SIZE", DEFAULT_SAMPLE_SIZE),
        sample_seed=_env_int("SAMPLE_SEED", None),
        default_resolution=os.environ.get("DEFAULT_RESOLUTION", AUTO_RESOLUTION),
        top_n=_env_int("TOP_N", DEFAULT_TOP_N),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - setup and teardown.
    """
    logger.info("Starting sentiment dashboard backend...")

    session = create_session()
    max_upload_bytes = _env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    set_dependencies(session, max_upload_bytes=max_upload_bytes)

    logger.info(
        f"✓ Session ready (sample size: {session.sample_size}, "
        f"resolution: {session.default_resolution}, top N: {session.top_n})"
    )
    logger.info(f"✓ Upload limit: {max_upload_bytes} bytes")

    monitor.set_component_status("session", "healthy", {
        "sample_size": session.sample_size,
        "default_resolution": session.default_resolution,
    })

    logger.info("📊 Monitoring available at /api/v1/monitor/*")
    logger.info("Sentiment dashboard backend ready!")

    yield

    logger.info("Shutting down sentiment dashboard backend...")
    session.reset()
    logger.info("Goodbye!")


app = FastAPI(
    title="Sentiment Dashboard API",
    description="Sentiment and engagement analytics for social-media posts",
    version="1.0.0",
    lifespan=lifespan,
)

app.middleware("http")(monitor_requests)

# Browser front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    return {"name": "Sentiment Dashboard API", "version": "1.0.0", "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8000")),
        reload=True,
    )

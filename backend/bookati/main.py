# backend/bookati/main.py
"""
Bookati API application.

Run with ``uvicorn bookati.main:app``.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator

from fastapi import FastAPI, Response
from pydantic import BaseModel

from . import __version__
from .core.config import settings
from .core.logging_config import setup_logging
from .database import get_db_pool_status
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .middleware.request_id import RequestIdMiddleware
from .monitoring.prometheus_metrics import PrometheusMetrics
from .routes.v1 import api_v1

setup_logging()
logger = logging.getLogger(__name__)

BRAND_NAME = "Bookati"


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: str
    database: dict


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=f"{BRAND_NAME} API",
    description="Slot capacity, booking locks, bookings and package quota",
    version=__version__,
    lifespan=app_lifespan,
)

# Last added runs first: the request id is bound before metrics and handlers run.
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestIdMiddleware)

register_error_handlers(app)

app.include_router(api_v1)


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower()}-api",
        version=__version__,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        database=get_db_pool_status(),
    )


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    return Response(
        content=PrometheusMetrics.get_metrics(),
        media_type=PrometheusMetrics.get_content_type(),
        headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
    )

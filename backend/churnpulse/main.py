# This file bootstraps the FastAPI app, wires up middlewares for
# logging/metrics/security, sets up CORS, and includes the routers
# for the two ingestion entry points.

import logging
import os

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from churnpulse.api.dependencies import CORS_HEADERS
from churnpulse.core.cors import EmptyPreflightCORSMiddleware
from churnpulse.core.db import Base, engine
from churnpulse.core.logging import APILoggingMiddleware, configure_logging
from churnpulse.core.metrics import MetricsMiddleware
from churnpulse.core.request_context import RequestContextMiddleware
from churnpulse.core.security_headers import SecurityHeadersMiddleware
from churnpulse.core.startup_checks import run_startup_checks
from churnpulse.core.versioning import API_PREFIX, API_V1_PREFIX
import churnpulse.models  # noqa: F401  (registers tables on Base.metadata)

from churnpulse.api.csv_upload import router as csv_upload_router
from churnpulse.api.track import router as track_router

configure_logging()
logger = logging.getLogger(__name__)

# Create DB tables right away so the app doesn't hit missing
# schema issues later. Alembic owns the schema when SKIP_MIGRATIONS=1.
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="ChurnPulse")


@app.on_event("startup")
def _run_startup_checks() -> None:
    run_startup_checks()


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(
        "request.unhandled_exception",
        extra={"path": request.url.path, "request_id": getattr(request.state, "request_id", None)},
        exc_info=exc,
    )
    # Raised errors skip the CORS middleware, so browsers need the headers here.
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=CORS_HEADERS,
    )


# Observability and security layers
app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# Routers grouped by version + compatibility
api_v1 = APIRouter(prefix=API_V1_PREFIX)
api_legacy = APIRouter(prefix=API_PREFIX)
api_root = APIRouter(prefix="")

routers = [
    csv_upload_router,
    track_router,
]

for r in routers:
    api_v1.include_router(r)
    api_legacy.include_router(r)
    api_root.include_router(r)

app.include_router(api_v1)
app.include_router(api_legacy)
app.include_router(api_root)

# Attach request context (request_id, user agent) early.
app.add_middleware(RequestContextMiddleware)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# /ping endpoint and versioned health
@app.get("/ping")
@app.get(f"{API_V1_PREFIX}/health")
def ping():
    return {"message": "pong"}


# CORS setup
# Both ingestion endpoints are called from customer sites and SDKs,
# so any origin may call them. Credentials travel in headers, not cookies.
app.add_middleware(
    EmptyPreflightCORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

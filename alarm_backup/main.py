# alarm_backup/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, the health router and the
catch-all gateway router (alarm webhook, video queries, summary).

Run: uvicorn alarm_backup.main:app --host 0.0.0.0 --port 8080
"""

import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from alarm_backup.config import settings
from alarm_backup.database import create_tables
from alarm_backup.routers import gateway, health
from alarm_backup.services.request_router import ROUTE_ALARM
from alarm_backup.utils.logger import get_logger
from alarm_backup.utils.responses import ERROR_INTERNAL

logger = get_logger(__name__)

app = FastAPI(
    title="Alarm Backup API",
    description="Camera alarm webhook ingestion, event/video backup and daily summaries.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Amz-Date", "Authorization", "X-Api-Key", "X-Amz-Security-Token"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for the read-only endpoints.
    The alarm webhook is excluded, the camera console doesn't send keys.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        path = request.url.path.rstrip("/")
        if (
            not settings.API_KEY
            or request.method == "OPTIONS"
            or path in self.open_paths
            or path.lower().endswith("/" + ROUTE_ALARM)
        ):
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"msg": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"msg": ERROR_INTERNAL},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])
app.include_router(gateway.router, tags=["📡 Alarm Gateway"])   # catch-all, keep last


# ── Startup ──────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Alarm Backup starting up...")
    create_tables()
    logger.info("✅ Summary tables ready")
    logger.info(f"🪣 Bucket: {settings.STORAGE_BUCKET or 'NOT CONFIGURED'}")
    logger.info(f"📬 Queue: {settings.ALARM_PROCESSING_QUEUE_URL or 'NOT CONFIGURED'} "
                f"(delay {settings.PROCESSING_DELAY_SECONDS}s)")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Alarm Backup shutting down...")

"""
REPCOACH Backend API
Rep-counting engine for camera-based workouts

FastAPI application entry point. Clients run pose estimation on-device
and push landmark frames; the workout service counts reps and hold time.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from shared.utils import setup_logger, parse_log_level

# ============================================
# Configure Root Logger First
# ============================================
LOG_LEVEL = parse_log_level(settings.LOG_LEVEL)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from workout_service.router import router as workout_router
from workout_service.models import ExerciseKind, frame_sample_rate, get_session_handler

logger = setup_logger("repcoach.main", level=LOG_LEVEL)
request_logger = setup_logger("repcoach.requests", level=LOG_LEVEL)

# Polled by monitors; logged at DEBUG only
QUIET_PATHS = {"/health"}


# ============================================
# Request Logging Middleware
# ============================================

def _status_emoji(status_code: int) -> str:
    if status_code < 300:
        return "✅"
    if status_code < 400:
        return "↪️"
    if status_code < 500:
        return "⚠️"
    return "❌"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each HTTP request with status and timing; frame posts go to DEBUG."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        path = request.url.path
        log = request_logger.debug if path in QUIET_PATHS or path.endswith("/frames") else request_logger.info

        query_string = f"?{request.url.query}" if request.url.query else ""
        log(f"➡️  {request.method} {path}{query_string}")

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            request_logger.exception(
                f"💥 {request.method} {path} → {type(e).__name__}: {e} ({elapsed_ms:.1f}ms)"
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.1f}"
        log(f"{_status_emoji(response.status_code)} {request.method} {path} → {response.status_code} ({elapsed_ms:.1f}ms)")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info(f"🚀 {settings.APP_NAME} API starting up...")
    logger.info(
        f"🎯 Confidence gate: feedback ≥ {settings.MIN_CONFIDENCE_FOR_FEEDBACK}, "
        f"counting ≥ {settings.MIN_CONFIDENCE_FOR_COUNTING}"
    )
    rates = ", ".join(f"{kind.value}=1/{frame_sample_rate(kind)}" for kind in ExerciseKind)
    logger.info(f"🎞️ Frame sampling: {rates}")
    if not settings.AUTO_PAUSE_ON_BODY_LOSS:
        logger.warning("⚠️ Auto-pause on body loss disabled")
    logger.info(f"✅ {settings.APP_NAME} API ready! (max {settings.MAX_ACTIVE_SESSIONS} sessions)")

    yield

    # ===== SHUTDOWN =====
    logger.info(f"👋 {settings.APP_NAME} API shutting down...")
    handler = get_session_handler()
    logger.info(f"🗑️ Disposing {handler.session_count} session(s)")
    handler.clear()
    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="REPCOACH API",
    description="Exercise rep-counting engine - landmark frames in, reps and hold time out",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "repcoach-api",
        "active_sessions": get_session_handler().session_count
    }


@app.get("/stats")
async def get_stats():
    """Live sessions grouped by state and exercise."""
    return {"sessions": get_session_handler().get_stats()}


app.include_router(workout_router, prefix="/api/workout", tags=["Workout Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

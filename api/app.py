"""Main FastAPI application with modularized routes."""
import threading

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config import LOG_LEVEL
from api.database import init_db
from api.dependencies import get_session_registry
from api.routes import attempts, sessions, tests
from api.services.cleanup_service import schedule_attempts_cleanup
from core.logging_setup import setup_console_logging

setup_console_logging(LOG_LEVEL)

app = FastAPI(title="Assessment Delivery API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_cleanup_stop: threading.Event | None = None


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and schedule cleanup tasks on startup."""
    global _cleanup_stop
    init_db()
    _cleanup_stop = schedule_attempts_cleanup()


@app.on_event("shutdown")
def shutdown_events() -> None:
    """Abandon live sessions and stop background cleanup."""
    get_session_registry().shutdown()
    if _cleanup_stop is not None:
        _cleanup_stop.set()


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Include routers
app.include_router(tests.router)
app.include_router(sessions.router)
app.include_router(attempts.router)

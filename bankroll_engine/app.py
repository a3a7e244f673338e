"""
Bankroll Engine API - Main Application

Money management service for sports betting sessions:
- Computes every stake with deterministic strategy calculators
- Tracks the bankroll bet by bet toward a target return
- Stores sessions and bets through a persistence collaborator
- Recommends strategies from past sessions

The presentation layer lives elsewhere; this service only calculates and records.
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Configure logging FIRST (before other imports)
from .logging_config import setup_logging, safe_log
from .config import (
    ENGINE_VERSION,
    API_TITLE,
    API_DESCRIPTION,
    API_HOST,
    API_PORT,
    PERSISTENCE_BACKEND,
    validate_config
)

logger = setup_logging()

logger.info(safe_log("=" * 80))
logger.info(safe_log(f"[START] Bankroll Engine v{ENGINE_VERSION} Initializing..."))
logger.info(safe_log("=" * 80))

try:
    validate_config()
    logger.info(safe_log("[OK] Configuration validated"))
except ValueError as e:
    logger.error(safe_log(f"[ERROR] Configuration validation failed: {e}"))
    raise

from .engine import initialize_engine, get_engine_status, get_available_strategies
from .exceptions import (
    EngineError,
    InvalidConfiguration,
    InvalidOdds,
    SequenceExhausted,
    NoActiveSession,
    SessionNotFound,
    PersistenceError,
    ConfigurationError,
)
from .services import SessionOrchestrator, create_repository

initialize_engine()
logger.info(safe_log(f"[OK] Engine initialized | Strategies: {', '.join(get_available_strategies())}"))

app = FastAPI(
    title=API_TITLE,
    version=ENGINE_VERSION,
    description=API_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.orchestrator = SessionOrchestrator(create_repository(PERSISTENCE_BACKEND))
logger.info(safe_log(f"[SERVICE] Session orchestrator ready | Persistence: {PERSISTENCE_BACKEND}"))

from .routers import sessions_router, strategies_router, recommendations_router, health_router

app.include_router(sessions_router)
app.include_router(strategies_router)
app.include_router(recommendations_router)
app.include_router(health_router)

from .middleware import RequestLoggingMiddleware
app.add_middleware(RequestLoggingMiddleware)


# Exception handlers
ERROR_STATUS = [
    (InvalidConfiguration, 400, "Invalid configuration"),
    (InvalidOdds, 400, "Invalid odds"),
    (SequenceExhausted, 409, "Sequence exhausted"),
    (NoActiveSession, 404, "No active session"),
    (SessionNotFound, 404, "Session not found"),
    (PersistenceError, 502, "Persistence failed"),
    (ConfigurationError, 500, "Configuration error"),
]


def status_for(exc: EngineError):
    for error_class, status_code, title in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code, title
    return 500, "Engine error"


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """Translate typed engine errors into JSON error bodies."""
    request_id = getattr(request.state, "request_id", "unknown")
    status_code, title = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(safe_log(f"[{request_id}] {type(exc).__name__}: {exc.message}"))

    return JSONResponse(
        status_code=status_code,
        content={
            "error": title,
            "error_code": exc.error_code,
            "detail": exc.message,
            "details": exc.details,
            "status_code": status_code,
            "request_id": request_id
        }
    )


@app.get("/")
async def root():
    """Service information endpoint."""
    return {
        "service": API_TITLE,
        "version": ENGINE_VERSION,
        "status": "operational" if get_engine_status().get("initialized") else "degraded",
        "description": API_DESCRIPTION,
        "available_strategies": get_available_strategies(),
        "documentation": "/docs",
        "health_check": "/health",
        "engine_info": "/engine-info",
        "strategies_info": "/api/v1/strategies"
    }


@app.on_event("startup")
async def startup_event():
    logger.info(safe_log("=" * 80))
    logger.info(safe_log("[START] Application startup complete"))
    logger.info(safe_log(f"[START] Engine Version: {ENGINE_VERSION}"))
    logger.info(safe_log(f"[START] Persistence: {PERSISTENCE_BACKEND}"))
    logger.info(safe_log("[START] Ready to accept requests"))
    logger.info(safe_log("=" * 80))


@app.on_event("shutdown")
async def shutdown_event():
    app.state.orchestrator.repository.close()
    logger.info(safe_log("=" * 80))
    logger.info(safe_log("[SHUTDOWN] Application shutting down"))
    logger.info(safe_log("=" * 80))


def main():
    logger.info(safe_log("[START] Starting uvicorn server..."))
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level="info")


if __name__ == "__main__":
    main()

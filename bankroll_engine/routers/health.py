"""
Health Check and System Information Endpoints

Provides health checks, system status, and engine information.
"""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..config import (
    ENGINE_VERSION,
    LOG_DIR,
    PERSISTENCE_BACKEND,
    DEFAULT_ODDS,
    DEFAULT_EV_THRESHOLD,
    RECOMMENDER_CONFIDENCE_CAP,
    get_config
)
from ..engine import get_engine_status, get_strategy_info
from ..services import SessionOrchestrator
from .dependencies import get_orchestrator

logger = logging.getLogger("bankroll_api.routers")
router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """
    Health check endpoint for monitoring.

    Returns:
        - Service status
        - Engine availability
        - Active session flag
        - Persistence backend
    """
    engine_status = get_engine_status()
    engine_available = engine_status.get("initialized", False)

    health_response = {
        "status": "operational" if engine_available else "degraded",
        "service": "bankroll-engine",
        "engine_version": ENGINE_VERSION,
        "engine_available": engine_available,
        "active_session": orchestrator.has_active_session,
        "persistence": PERSISTENCE_BACKEND,
        "log_dir": "exists" if os.path.exists(LOG_DIR) else "missing",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoints": {
            "/api/v1/session": "POST/GET/DELETE - Active session lifecycle",
            "/api/v1/session/outcome": "POST - Record a win or loss",
            "/api/v1/strategies": "GET - List available strategies",
            "/api/v1/recommendations": "GET/POST - Strategy recommendations",
            "/health": "GET - Health check",
            "/engine-info": "GET - Detailed engine information",
            "/docs": "GET - Interactive API documentation"
        }
    }

    logger.info(f"[HEALTH] Health check requested - Status: {health_response['status']}")
    return health_response


@router.get("/engine-info")
async def engine_info():
    """Engine capabilities, strategies and calculation defaults."""
    engine_status = get_engine_status()

    logger.info("[ENGINE INFO] Engine info requested")
    return {
        "name": "Bankroll Engine",
        "version": ENGINE_VERSION,
        "description": (
            "Deterministic stake calculators for money management sessions "
            "with bankroll tracking and strategy recommendations"
        ),
        "engine_available": engine_status.get("initialized", False),
        "available_strategies": engine_status.get("strategies", []),
        "strategies": get_strategy_info(),
        "defaults": {
            "odds": DEFAULT_ODDS,
            "ev_threshold": DEFAULT_EV_THRESHOLD,
            "recommender_confidence_cap": RECOMMENDER_CONFIDENCE_CAP,
        },
        "capabilities": {
            "pure_calculators": True,
            "atomic_outcome_recording": True,
            "kelly_risk_cap": True,
            "beat_delay_advisory": True,
            "badges": True,
        },
        "configuration": get_config()
    }

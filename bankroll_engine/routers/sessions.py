"""
Session Endpoints

Active session lifecycle and stored history:
- POST/GET/DELETE /session - Start, inspect and reset the active session
- POST /session/outcome - Record a win or loss
- POST /session/odds - Re-quote the pending stake
- GET /sessions, /sessions/{id}/bets, /sessions/{id}/badges - Stored history
"""

import logging
from fastapi import APIRouter, Depends

from ..schemas import (
    BadgeItem,
    BadgeList,
    BetList,
    OddsRequest,
    RecordOutcomeRequest,
    SessionList,
    SessionSnapshot,
    StartSessionRequest,
)
from ..services import SessionOrchestrator
from .dependencies import get_orchestrator, get_request_id

logger = logging.getLogger("bankroll_api.routers")
router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.post("/session", response_model=SessionSnapshot, status_code=201)
def start_session(
    payload: StartSessionRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id)
):
    """Start a new session; any previous active session is discarded."""
    logger.info(f"[{request_id}] [SESSION] Start requested | Strategy: {payload.strategy}")
    return orchestrator.start_session(payload)


@router.get("/session", response_model=SessionSnapshot)
def current_session(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.snapshot()


@router.post("/session/outcome", response_model=SessionSnapshot)
def record_outcome(
    payload: RecordOutcomeRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id)
):
    """Settle the pending bet as a win or loss and quote the next stake."""
    logger.info(f"[{request_id}] [BET] Outcome: {'WIN' if payload.win else 'LOSS'}")
    return orchestrator.record_outcome(payload.win, payload.current_odds)


@router.post("/session/odds", response_model=SessionSnapshot)
def set_odds(
    payload: OddsRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    return orchestrator.set_odds(payload.odds)


@router.delete("/session")
def reset_session(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id)
):
    session_id = orchestrator.reset_session()
    logger.info(f"[{request_id}] [SESSION] Session #{session_id} reset")
    return {"status": "reset", "sessionId": session_id}


@router.get("/sessions", response_model=SessionList)
def list_sessions(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    sessions = orchestrator.list_sessions()
    return SessionList(sessions=sessions, total=len(sessions))


@router.get("/sessions/{session_id}/bets", response_model=BetList)
def list_bets(session_id: int, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    bets = orchestrator.list_bets(session_id)
    return BetList(session_id=session_id, bets=bets, total=len(bets))


@router.get("/sessions/{session_id}/badges", response_model=BadgeList)
def session_badges(session_id: int, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    badges = [BadgeItem(**badge.to_dict()) for badge in orchestrator.badges(session_id)]
    return BadgeList(
        session_id=session_id,
        badges=badges,
        unlocked=sum(1 for badge in badges if badge.unlocked)
    )

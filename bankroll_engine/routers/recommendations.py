"""
Recommendation Endpoints

- POST /recommendations - Recommend strategies for a supplied history
- GET /recommendations - Recommend strategies from stored sessions
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from ..engine import Recommendation, get_recommendations
from ..schemas import RecommendationItem, RecommendationRequest, RecommendationResponse
from ..services import SessionOrchestrator
from .dependencies import get_orchestrator, get_request_id

logger = logging.getLogger("bankroll_api.routers")
router = APIRouter(prefix="/api/v1", tags=["recommendations"])


def _to_response(recommendations: List[Recommendation], sessions_analyzed: int) -> RecommendationResponse:
    return RecommendationResponse(
        recommendations=[RecommendationItem(**r.to_dict()) for r in recommendations],
        sessions_analyzed=sessions_analyzed
    )


@router.post("/recommendations", response_model=RecommendationResponse)
async def recommend_for_history(
    payload: RecommendationRequest,
    request_id: str = Depends(get_request_id)
):
    logger.info(f"[{request_id}] [RECOMMEND] Supplied history: {len(payload.sessions)} sessions")
    recommendations = get_recommendations(payload.sessions, payload.bets_by_session)
    return _to_response(recommendations, len(payload.sessions))


@router.get("/recommendations", response_model=RecommendationResponse)
def recommend_from_store(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    sessions = orchestrator.list_sessions()
    return _to_response(orchestrator.recommendations(), len(sessions))

# bankroll_engine/schemas.py

from pydantic import Field
from typing import List, Dict, Any, Optional, Union, Literal

from .config import DEFAULT_EV_THRESHOLD, POISSON_MAX_GOALS
from .models import (
    Bet,
    CamelModel,
    KellyAllocation,
    KellyEvent,
    Session,
    StrategyState,
)


# ---------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------

class StartSessionRequest(CamelModel):
    """Bankroll and strategy values are checked by the orchestrator so they map to 400, not 422."""
    name: str = Field(default="Session", max_length=120)
    initial_bankroll: float
    target_return: float = Field(default=10.0, ge=0)
    strategy: str
    strategy_settings: Union[str, Dict[str, Any]] = Field(default_factory=dict)
    current_odds: Optional[float] = None


class RecordOutcomeRequest(CamelModel):
    win: bool
    current_odds: Optional[float] = None


class OddsRequest(CamelModel):
    odds: float


class SessionProgress(CamelModel):
    profit: float
    roi: float
    target_amount: float
    target_progress: float
    target_reached: bool


class SessionSnapshot(CamelModel):
    session: Session
    next_stake: float
    potential_win: float
    odds: float
    state: StrategyState
    progress: SessionProgress
    advisory: Dict[str, Any] = Field(default_factory=dict)
    is_terminal: bool = False


class SessionList(CamelModel):
    sessions: List[Session]
    total: int


class BetList(CamelModel):
    session_id: int
    bets: List[Bet]
    total: int


class BadgeItem(CamelModel):
    id: str
    name: str
    description: str
    level: str
    unlocked: bool


class BadgeList(CamelModel):
    session_id: int
    badges: List[BadgeItem]
    unlocked: int


# ---------------------------------------------------------------------
# Stateless calculators
# ---------------------------------------------------------------------

class StakePreviewRequest(CamelModel):
    strategy: str
    strategy_settings: Union[str, Dict[str, Any]] = Field(default_factory=dict)
    bankroll: float
    previous_outcome: Optional[bool] = None
    state: Optional[Dict[str, Any]] = None
    current_odds: Optional[float] = None
    settled_stake: Optional[float] = None
    settled_odds: Optional[float] = None


class StakePreviewResponse(CamelModel):
    strategy: str
    stake: float
    odds: Optional[float] = None
    potential_win: Optional[float] = None
    state: StrategyState
    advisory: Dict[str, Any] = Field(default_factory=dict)


class KellyPlanRequest(CamelModel):
    bankroll: float
    kelly_fraction: Optional[float] = Field(default=None, gt=0, le=1)
    risk_tolerance: Optional[float] = Field(default=None, ge=0, le=100)
    max_risk_percentage: float = Field(default=20.0, gt=0, le=100)
    max_single_stake: float = Field(default=100.0, gt=0)
    events: List[KellyEvent] = Field(default_factory=list)


class KellyPlanResponse(CamelModel):
    kelly_fraction: float
    allocations: List[KellyAllocation]
    total_stake: float
    risk_cap: float
    capped: bool
    recommended_count: int


class ProbabilityRequest(CamelModel):
    method: Literal["odds", "poisson"] = "odds"
    odds: List[float] = Field(default_factory=list)
    avg_home: Optional[float] = None
    avg_away: Optional[float] = None
    max_goals: int = Field(default=POISSON_MAX_GOALS, ge=0, le=15)


class KellyOutcome(CamelModel):
    classic: float
    reduced: float


class ProbabilityResponse(CamelModel):
    method: str
    probabilities: Dict[str, float]
    kelly: Dict[str, KellyOutcome] = Field(default_factory=dict)
    best_outcome: Optional[str] = None
    recommendation: Optional[str] = None


class BeatDelayRequest(CamelModel):
    current_delay: float = Field(ge=0)
    historical_frequency: float = Field(ge=0, le=100)
    avg_delay: float = Field(ge=0)
    max_delay: float = Field(ge=0)
    odds: float
    recovery_rate: Optional[float] = Field(default=None, ge=0, le=1)
    ev_threshold: float = DEFAULT_EV_THRESHOLD
    outcomes: List[bool] = Field(default_factory=list)


class BeatDelayResponse(CamelModel):
    anomaly_index: float
    base_probability: float
    estimated_probability: float
    expected_value: float
    should_play: bool
    recovery_alert: bool
    recovery_rate: float


# ---------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------

class RecommendationRequest(CamelModel):
    sessions: List[Session] = Field(default_factory=list)
    bets_by_session: Dict[int, List[Bet]] = Field(default_factory=dict)


class RecommendationItem(CamelModel):
    strategy: str
    confidence: float
    reason: str


class RecommendationResponse(CamelModel):
    recommendations: List[RecommendationItem]
    sessions_analyzed: int

"""
Strategy and Calculator Endpoints

Stateless calculators that never touch the active session:
- GET /strategies - Strategy catalogue
- POST /stake/preview - Single calculator call
- POST /kelly/plan - Kelly allocation for a set of events
- POST /kelly/probabilities - Margin-free or Poisson 1X2 probabilities
- POST /beat-delay/evaluate - Advisory expected value
"""

import logging
from fastapi import APIRouter, Depends

from ..config import DEFAULT_KELLY_FRACTION, DEFAULT_ODDS, DEFAULT_STRATEGY
from ..engine import (
    analyze_outcomes,
    compute_next_stake,
    dynamic_kelly_fraction,
    evaluate_delay,
    get_available_strategies,
    get_strategy_info,
    initial_state,
    normalize_implied_probabilities,
    plan_allocations,
    poisson_outcome_probabilities,
    recovery_rate_from_history,
)
from ..exceptions import InvalidConfiguration
from ..models import normalize_strategy, parse_strategy_settings, parse_strategy_state
from ..schemas import (
    BeatDelayRequest,
    BeatDelayResponse,
    KellyPlanRequest,
    KellyPlanResponse,
    ProbabilityRequest,
    ProbabilityResponse,
    StakePreviewRequest,
    StakePreviewResponse,
)
from ..utils.formatting import get_strategy_display_name
from .dependencies import get_request_id

logger = logging.getLogger("bankroll_api.routers")
router = APIRouter(prefix="/api/v1", tags=["strategies"])


@router.get("/strategies")
async def list_strategies():
    """List supported staking strategies with their settings keys."""
    info = get_strategy_info()
    return {
        "strategies": get_available_strategies(),
        "default": DEFAULT_STRATEGY,
        "details": {
            key: {**details, "displayName": get_strategy_display_name(key)}
            for key, details in info.items()
        },
    }


@router.post("/stake/preview", response_model=StakePreviewResponse)
async def preview_stake(payload: StakePreviewRequest, request_id: str = Depends(get_request_id)):
    """Run one calculator step without creating a session."""
    strategy = normalize_strategy(payload.strategy)
    settings = parse_strategy_settings(payload.strategy_settings, strategy)
    if payload.bankroll <= 0:
        raise InvalidConfiguration(
            f"Bankroll must be positive (got {payload.bankroll})",
            field="bankroll"
        )

    if payload.state is not None:
        state = parse_strategy_state({**payload.state, "strategy": strategy})
    else:
        state = initial_state(settings, payload.bankroll)

    odds = payload.current_odds if payload.current_odds is not None else DEFAULT_ODDS
    result = compute_next_stake(
        strategy,
        settings,
        payload.bankroll,
        payload.previous_outcome,
        state,
        odds,
        settled_stake=payload.settled_stake,
        settled_odds=payload.settled_odds
    )
    quote_odds = result.odds or odds

    logger.info(f"[{request_id}] [STAKE] Preview {strategy} -> {result.stake:.2f} @ {quote_odds:.2f}")
    return StakePreviewResponse(
        strategy=strategy,
        stake=result.stake,
        odds=quote_odds,
        potential_win=result.stake * quote_odds,
        state=result.updated_state,
        advisory=result.advisory
    )


@router.post("/kelly/plan", response_model=KellyPlanResponse)
async def kelly_plan(payload: KellyPlanRequest, request_id: str = Depends(get_request_id)):
    """Size a set of events with fractional Kelly and the simultaneous risk cap."""
    if payload.bankroll <= 0:
        raise InvalidConfiguration(
            f"Bankroll must be positive (got {payload.bankroll})",
            field="bankroll"
        )

    if payload.kelly_fraction is not None:
        fraction = payload.kelly_fraction
    elif payload.risk_tolerance is not None:
        fraction = dynamic_kelly_fraction(payload.risk_tolerance)
    else:
        fraction = DEFAULT_KELLY_FRACTION

    allocations, total = plan_allocations(
        payload.events,
        payload.bankroll,
        fraction,
        payload.max_single_stake,
        payload.max_risk_percentage
    )
    risk_cap = payload.bankroll * payload.max_risk_percentage / 100
    naive_total = sum(
        min(payload.bankroll * a.adjusted_kelly, payload.max_single_stake)
        for a in allocations if a.recommended
    )
    recommended = sum(1 for a in allocations if a.recommended)

    logger.info(
        f"[{request_id}] [KELLY] {len(allocations)} events | {recommended} recommended | "
        f"Total stake: {total:.2f} (cap {risk_cap:.2f})"
    )
    return KellyPlanResponse(
        kelly_fraction=fraction,
        allocations=allocations,
        total_stake=total,
        risk_cap=risk_cap,
        capped=naive_total > risk_cap,
        recommended_count=recommended
    )


@router.post("/kelly/probabilities", response_model=ProbabilityResponse)
async def kelly_probabilities(payload: ProbabilityRequest):
    """1X2 probabilities from bookmaker odds (margin removed) or a Poisson goal model."""
    if payload.method == "odds":
        if len(payload.odds) != 3:
            raise InvalidConfiguration("Odds method needs three odds (1, X, 2)", field="odds")
        probabilities = normalize_implied_probabilities(payload.odds)
    else:
        if payload.avg_home is None or payload.avg_away is None:
            raise InvalidConfiguration(
                "Poisson method needs avgHome and avgAway",
                field="avgHome" if payload.avg_home is None else "avgAway"
            )
        probabilities = poisson_outcome_probabilities(
            payload.avg_home, payload.avg_away, payload.max_goals
        )

    if len(payload.odds) == 3:
        return ProbabilityResponse(method=payload.method, **analyze_outcomes(probabilities, payload.odds))

    return ProbabilityResponse(
        method=payload.method,
        probabilities=dict(zip(("1", "X", "2"), probabilities))
    )


@router.post("/beat-delay/evaluate", response_model=BeatDelayResponse)
async def beat_delay_evaluate(payload: BeatDelayRequest):
    """Advisory expected value for the next Beat the Delay bet."""
    if payload.recovery_rate is not None:
        recovery_rate = payload.recovery_rate
    else:
        recovery_rate = recovery_rate_from_history(payload.outcomes)

    evaluation = evaluate_delay(
        payload.current_delay,
        payload.historical_frequency,
        payload.avg_delay,
        payload.max_delay,
        payload.odds,
        recovery_rate=recovery_rate,
        ev_threshold=payload.ev_threshold
    )
    return BeatDelayResponse(recovery_rate=recovery_rate, **evaluation.to_dict())
